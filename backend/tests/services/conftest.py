"""Service test fixtures — event stores, sample inputs, async DB + FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use the test session factory
    - db_manager patched so the readiness probe sees the test engine

Design Decisions:
    - SQLite in-memory over Postgres: the event log uses only portable column types
    - StaticPool: every session shares the one in-memory connection
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)
from sqlalchemy.pool import StaticPool

import investscore.infrastructure.database as db_module
from investscore.core.domain_types import Operator
from investscore.core.scoring_inputs import CriterionRule, make_asset
from investscore.db.base import Base
from investscore.infrastructure.database import DatabaseSessionManager, get_db
from investscore.infrastructure.memory_event_store import InMemoryEventStore
from investscore.main import app
from investscore.services.calculation_runner import CalculationContext


@pytest.fixture
def memory_store():
    return InMemoryEventStore()


@pytest.fixture
def context():
    return CalculationContext(user_id="user-1", criteria_version_id="cv-1", market="BR")


@pytest.fixture
def criteria():
    return [
        CriterionRule(
            id="c-yield", name="High yield", metric="dividend_yield",
            operator=Operator.GT, value="5.0", points=10, sort_order=0,
        ),
        CriterionRule(
            id="c-pe", name="Fair P/E", metric="pe_ratio",
            operator=Operator.BETWEEN, value="5", value2="15", points=5, sort_order=1,
        ),
    ]


@pytest.fixture
def assets():
    return [
        make_asset("a-1", "ITSA4", {"dividend_yield": "6.0", "pe_ratio": "8.2"}),
        make_asset("a-2", "WEGE3", {"dividend_yield": "1.1", "pe_ratio": "31.0"}),
        make_asset("a-3", "NEWCO", {}),
    ]


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def client(test_engine, test_session_factory):
    """FastAPI test client with DB dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
