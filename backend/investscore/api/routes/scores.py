"""Score Routes — audited batch scoring, replay verification, latest results, history.

Invariants:
    - Every calculation goes through CalculationRunner (no unaudited scoring endpoint)
    - Replay is read-only; a determinism violation surfaces as 500 DETERMINISM_VIOLATION
    - Scores travel as strings

Design Decisions:
    - One SqlEventStore per request session; the store is both emitter and reader
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from investscore.config import get_settings
from investscore.infrastructure.database import get_db
from investscore.infrastructure.sql_event_store import SqlEventStore
from investscore.schemas.scores import (
    BatchReplayRequest, CalculateRequest, CalculateResponse,
    LatestScoresResponse, ReplayRequest, ReplayResponse, ScoreHistoryResponse,
)
from investscore.services.audit_service import AuditService
from investscore.services.calculation_runner import (
    CalculationContext, CalculationRunner,
)
from investscore.services.replay_verifier import ReplayVerifier, raise_for_outcome

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/scores", tags=["scores"])


@router.post("/calculate", response_model=CalculateResponse)
async def calculate(body: CalculateRequest, db: AsyncSession = Depends(get_db)):
    """Score every asset against the supplied criteria and record the audit trail."""
    criteria = [c.to_core() for c in body.criteria]
    assets = [a.to_core() for a in body.assets]
    runner = CalculationRunner(
        SqlEventStore(db), policy=get_settings().emission_failure_policy,
    )
    run = await runner.run(
        CalculationContext(
            user_id=body.user_id,
            criteria_version_id=body.criteria_version_id,
            market=body.market,
        ),
        criteria,
        assets,
        prices=[p.to_core() for p in body.prices],
        rates=[r.to_core() for r in body.rates],
    )
    return CalculateResponse(
        correlation_id=run.correlation_id,
        scores=[s.to_dict() for s in run.scores],
        max_possible_score=run.max_possible_score,
        duration_ms=run.duration_ms,
        asset_count=run.asset_count,
        missed_events=[e.value for e in run.missed_events],
    )


@router.post("/replay", response_model=ReplayResponse)
async def replay(body: ReplayRequest, db: AsyncSession = Depends(get_db)):
    """Recompute a recorded run from its captured inputs and compare."""
    outcome = await ReplayVerifier(SqlEventStore(db)).verify_determinism(
        str(body.correlation_id),
    )
    result = raise_for_outcome(outcome)
    return {"verified": outcome.verified, **result.to_dict()}


@router.post("/replay/batch")
async def replay_batch(body: BatchReplayRequest, db: AsyncSession = Depends(get_db)):
    """Verify several runs; failures are reported per run, not raised."""
    summary = await ReplayVerifier(SqlEventStore(db)).replay_batch(
        str(cid) for cid in body.correlation_ids
    )
    if summary.matching < summary.total:
        logger.warning(
            f"Batch replay: {summary.matching}/{summary.total} runs reproduced",
        )
    return summary.to_dict()


@router.get("/latest", response_model=LatestScoresResponse)
async def latest_scores(
    user_id: str = Query(..., min_length=1, max_length=64),
    db: AsyncSession = Depends(get_db),
):
    """Results of the user's most recent completed scoring."""
    correlation_id, computed = await AuditService(SqlEventStore(db)).get_latest_scores(
        user_id,
    )
    return LatestScoresResponse(
        correlation_id=correlation_id,
        max_possible_score=computed.max_possible_score,
        results=[r.to_dict() for r in computed.results],
    )


@router.get("/{asset_id}/history", response_model=ScoreHistoryResponse)
async def score_history(
    asset_id: str,
    user_id: str = Query(..., min_length=1, max_length=64),
    limit: int | None = Query(None, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    """Chronological scores of one asset across the user's runs, with trend."""
    history = await AuditService(SqlEventStore(db)).get_score_history(
        user_id, asset_id, limit or get_settings().replay_history_limit,
    )
    return history.to_dict()
