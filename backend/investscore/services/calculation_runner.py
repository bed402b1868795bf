"""Calculation Runner — wraps batch scoring in the four-event audit sequence.

Invariants:
    - Emits CALC_STARTED, INPUTS_CAPTURED, SCORES_COMPUTED, CALC_COMPLETED, in that order,
      at most once each, all with one freshly generated correlation_id
    - Scores are computed from the decoded INPUTS_CAPTURED snapshot, the same path replay uses
    - A scoring failure still emits CALC_COMPLETED(status=failure) before the error propagates
    - EmissionFailurePolicy.ABORT: an emission failure stops the run and raises EventEmissionError
    - EmissionFailurePolicy.CONTINUE: the failed event type is logged and listed in missed_events
    - No retries here; retry/backoff belongs to the EventEmitter implementation

Design Decisions:
    - EventEmitter injected per runner (no global store) so tests use an in-memory recorder
    - clock/timer/id_factory injectable: run metadata is the only non-deterministic part
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Sequence

from investscore.core.calculation_events import (
    CalcCompleted, CalcStarted, CalculationEvent, InputsCaptured, ScoresComputed,
    capture_inputs, restore_inputs,
)
from investscore.core.domain_types import (
    CompletionStatus, CorrelationId, EmissionFailurePolicy, EventType, RunPhase,
)
from investscore.core.errors import EventEmissionError, InvestScoreError
from investscore.core.repository_protocols import EventEmitter
from investscore.core.run_state import RunState
from investscore.core.score_aggregator import (
    ScoreResult, calculate_scores, max_possible_score,
)
from investscore.core.scoring_inputs import (
    AssetInput, CriterionRule, ExchangeRateSnapshot, PriceSnapshot,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalculationContext:
    """Who is scoring, against which criteria version."""
    user_id: str
    criteria_version_id: str
    market: str | None = None


@dataclass
class CalculationRun:
    """Outcome of one audited scoring run."""
    correlation_id: str
    scores: list[ScoreResult]
    duration_ms: int
    asset_count: int
    max_possible_score: str = "0.0000"
    missed_events: list[EventType] = field(default_factory=list)


class CalculationRunner:
    """Runs calculate_scores between the four audit events."""

    def __init__(
        self,
        emitter: EventEmitter,
        policy: EmissionFailurePolicy = EmissionFailurePolicy.ABORT,
        clock: Callable[[], datetime] | None = None,
        timer: Callable[[], float] = time.perf_counter,
        id_factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ):
        self.emitter = emitter
        self.policy = policy
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._timer = timer
        self._id_factory = id_factory

    async def run(
        self,
        context: CalculationContext,
        criteria: Sequence[CriterionRule],
        assets: Sequence[AssetInput],
        prices: Sequence[PriceSnapshot] = (),
        rates: Sequence[ExchangeRateSnapshot] = (),
    ) -> CalculationRun:
        """Score assets and emit the audit trail. Returns scores + correlation_id."""
        correlation_id = CorrelationId(str(self._id_factory()))
        run = _RunScope(
            context=context,
            state=RunState(correlation_id),
            started=self._timer(),
            asset_count=len(assets),
        )
        logger.info("Calculation started", extra=run.log_extra())

        await self._emit(run, CalcStarted(
            correlation_id=correlation_id,
            user_id=context.user_id,
            criteria_version_id=context.criteria_version_id,
            timestamp=self._clock().isoformat(),
            market=context.market,
        ))

        try:
            snapshot = capture_inputs(
                correlation_id, context.criteria_version_id,
                criteria, assets, prices, rates,
            )
        except Exception as e:
            await self._fail(run, e)
            raise
        await self._emit(run, snapshot)
        run.state.advance(RunPhase.INPUTS_CAPTURED)

        try:
            scores, best = self._compute(snapshot)
        except Exception as e:
            await self._fail(run, e)
            raise
        run.state.advance(RunPhase.COMPUTED)

        await self._emit(run, ScoresComputed(
            correlation_id=correlation_id,
            results=tuple(scores),
            max_possible_score=best,
        ))

        duration_ms = self._elapsed_ms(run)
        await self._emit(run, CalcCompleted(
            correlation_id=correlation_id,
            status=CompletionStatus.SUCCESS,
            duration_ms=duration_ms,
            asset_count=run.asset_count,
        ))
        run.state.complete(CompletionStatus.SUCCESS)

        logger.info(
            "Calculation completed",
            extra={**run.log_extra(), "duration_ms": duration_ms},
        )
        return CalculationRun(
            correlation_id=correlation_id,
            scores=scores,
            duration_ms=duration_ms,
            asset_count=run.asset_count,
            max_possible_score=best,
            missed_events=run.missed_events,
        )

    @staticmethod
    def _compute(snapshot: InputsCaptured) -> tuple[list[ScoreResult], str]:
        criteria, assets = restore_inputs(snapshot)
        scores = calculate_scores(criteria, assets, snapshot.criteria_version_id)
        return scores, max_possible_score(criteria)

    def _elapsed_ms(self, run: "_RunScope") -> int:
        return max(0, int((self._timer() - run.started) * 1000))

    async def _emit(self, run: "_RunScope", event: CalculationEvent) -> None:
        """Send one event, applying the emission failure policy on error."""
        try:
            await self.emitter.emit(run.context.user_id, event)
        except Exception as e:
            extra = {**run.log_extra(), "event_type": event.type.value}
            if self.policy == EmissionFailurePolicy.CONTINUE:
                logger.warning(
                    f"Event emission failed, continuing with audit gap: {e}",
                    extra=extra,
                )
                run.missed_events.append(event.type)
                return
            logger.error(f"Event emission failed, aborting run: {e}", extra=extra)
            if event.type != EventType.CALC_COMPLETED:
                await self._emit_failure(
                    run, "EVENT_EMISSION_FAILED",
                    f"Failed to emit {event.type.value}",
                )
            raise EventEmissionError(event.type.value, run.state.correlation_id) from e

    async def _fail(self, run: "_RunScope", exc: Exception) -> None:
        """Record CALC_COMPLETED(failure) for a scoring error; caller re-raises."""
        code = "INTERNAL_ERROR"
        if isinstance(exc, InvestScoreError):
            code = exc.code
            if exc.context.correlation_id is None:
                exc.context.correlation_id = run.state.correlation_id
        logger.error(
            f"Calculation failed: {exc}",
            extra={**run.log_extra(), "error_code": code},
        )
        await self._emit_failure(run, code, str(exc))

    async def _emit_failure(self, run: "_RunScope", code: str, message: str) -> None:
        if run.state.is_completed:
            return
        run.state.complete(CompletionStatus.FAILURE)
        event = CalcCompleted(
            correlation_id=run.state.correlation_id,
            status=CompletionStatus.FAILURE,
            duration_ms=self._elapsed_ms(run),
            asset_count=run.asset_count,
            error_code=code,
            error_message=message,
        )
        try:
            await self.emitter.emit(run.context.user_id, event)
        except Exception as e:
            logger.error(
                f"Could not record failed calculation: {e}",
                extra={**run.log_extra(), "event_type": event.type.value},
                exc_info=True,
            )
            run.missed_events.append(event.type)


@dataclass
class _RunScope:
    """Per-invocation bookkeeping; never shared between runs."""
    context: CalculationContext
    state: RunState
    started: float
    asset_count: int
    missed_events: list[EventType] = field(default_factory=list)

    def log_extra(self) -> dict:
        return {
            "correlation_id": self.state.correlation_id,
            "user_id": self.context.user_id,
            "criteria_version_id": self.context.criteria_version_id,
            "asset_count": self.asset_count,
        }


async def calculate_scores_with_events(
    context: CalculationContext,
    criteria: Sequence[CriterionRule],
    assets: Sequence[AssetInput],
    emitter: EventEmitter,
    policy: EmissionFailurePolicy = EmissionFailurePolicy.ABORT,
) -> CalculationRun:
    """One-shot form of CalculationRunner.run."""
    return await CalculationRunner(emitter, policy).run(context, criteria, assets)
