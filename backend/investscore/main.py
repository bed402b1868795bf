"""InvestScore API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map InvestScoreError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Logging and the event log database initialized once, in the lifespan

Design Decisions:
    - Lifespan over @app.on_event: cleanup (engine dispose) lives beside setup
    - database_auto_create only for local SQLite; Postgres schema comes from alembic
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from investscore.api.error_handlers import register_error_handlers
from investscore.api.routes import audit, health, scores
from investscore.config import get_settings
from investscore.infrastructure.database import init_db
from investscore.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    if settings.database_auto_create:
        await manager.create_schema()
    logger.info(
        f"InvestScore API started (emission policy: {settings.emission_failure_policy.value})",
    )
    yield
    logger.info("InvestScore API shutting down")
    await manager.dispose()


app = FastAPI(title="InvestScore API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(health.router)
app.include_router(scores.router)
app.include_router(audit.router)
