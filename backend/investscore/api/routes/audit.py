"""Audit Routes — raw event trail and captured inputs of a calculation run."""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from investscore.core.scoring_inputs import asset_to_snapshot, criterion_to_snapshot
from investscore.infrastructure.database import get_db
from investscore.infrastructure.sql_event_store import SqlEventStore
from investscore.schemas.scores import CalculationEventsResponse, CapturedInputsResponse
from investscore.services.audit_service import AuditService

router = APIRouter(prefix="/api/v1/audit", tags=["audit"])


@router.get(
    "/calculations/{correlation_id}", response_model=CalculationEventsResponse,
)
async def calculation_events(correlation_id: str, db: AsyncSession = Depends(get_db)):
    """All events of one run in lifecycle order (404 when none)."""
    events = await AuditService(SqlEventStore(db)).get_calculation_events(correlation_id)
    return CalculationEventsResponse(
        correlation_id=correlation_id,
        user_id=events[0].user_id,
        events=[
            {
                "id": e.id,
                "event_type": e.event_type.value,
                "payload": e.payload,
                "created_at": e.created_at,
            }
            for e in events
        ],
    )


@router.get(
    "/calculations/{correlation_id}/inputs", response_model=CapturedInputsResponse,
)
async def captured_inputs(correlation_id: str, db: AsyncSession = Depends(get_db)):
    """Criteria, fundamentals and market data exactly as the run saw them."""
    captured = await AuditService(SqlEventStore(db)).get_captured_inputs(correlation_id)
    return CapturedInputsResponse(
        correlation_id=captured.correlation_id,
        criteria_version_id=captured.criteria_version_id,
        criteria=[criterion_to_snapshot(c) for c in captured.criteria],
        assets=[asset_to_snapshot(a) for a in captured.assets],
        prices=[asdict(p) for p in captured.prices],
        rates=[asdict(r) for r in captured.rates],
    )
