"""Replay Verifier — recomputes a recorded run and checks it reproduces the same scores.

Invariants:
    - Read-only: never appends to the event store; calling twice gives the same result
    - Recomputes only from the INPUTS_CAPTURED snapshot (no live criteria or fundamentals)
    - Scores compared per asset by exact string equality
    - verified == result.success; a completed replay with discrepancies is still verified
    - Structural problems are reported as error codes, never raised from verify_determinism:
      EVENTS_NOT_FOUND, INCOMPLETE_EVENT_LOG, REPLAY_FAILED

Design Decisions:
    - Outcome object + raise_for_outcome: batch replay wants values, the HTTP route wants errors
    - Batch replay is sequential; runs are independent and the store session is not shareable
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from investscore.core.calculation_events import (
    InputsCaptured, ScoresComputed, restore_inputs,
)
from investscore.core.domain_types import EventType
from investscore.core.errors import (
    DeterminismViolationError, EventsNotFoundError, IncompleteEventLogError,
    InvestScoreError, ReplayFailedError,
)
from investscore.core.replay_comparison import Discrepancy, compare_results
from investscore.core.repository_protocols import EventStore, StoredEvent
from investscore.core.score_aggregator import ScoreResult, calculate_scores

logger = logging.getLogger(__name__)


@dataclass
class ReplayResult:
    success: bool
    correlation_id: str
    matches: bool = False
    original_results: list[ScoreResult] = field(default_factory=list)
    replay_results: list[ScoreResult] = field(default_factory=list)
    discrepancies: list[Discrepancy] = field(default_factory=list)
    error: str | None = None
    error_code: str | None = None
    missing_event: str | None = None

    def to_dict(self) -> dict:
        data = {
            "success": self.success,
            "correlation_id": self.correlation_id,
            "matches": self.matches,
            "original_results": [r.to_dict() for r in self.original_results],
            "replay_results": [r.to_dict() for r in self.replay_results],
            "discrepancies": [d.to_dict() for d in self.discrepancies],
        }
        if self.error is not None:
            data["error"] = self.error
        if self.error_code is not None:
            data["error_code"] = self.error_code
        return data


@dataclass
class VerificationOutcome:
    verified: bool
    result: ReplayResult


@dataclass
class BatchReplaySummary:
    total: int
    successful: int
    matching: int
    results: list[ReplayResult]

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "successful": self.successful,
            "matching": self.matching,
            "results": [r.to_dict() for r in self.results],
        }


def _failure(
    correlation_id: str, code: str, message: str, missing_event: str | None = None,
) -> VerificationOutcome:
    return VerificationOutcome(
        verified=False,
        result=ReplayResult(
            success=False,
            correlation_id=correlation_id,
            error=message,
            error_code=code,
            missing_event=missing_event,
        ),
    )


def _first_of(events: list[StoredEvent], event_type: EventType) -> StoredEvent | None:
    return next((e for e in events if e.event_type == event_type), None)


class ReplayVerifier:
    """Verifies recorded runs against a read-only EventStore."""

    def __init__(self, store: EventStore):
        self.store = store

    async def verify_determinism(self, correlation_id: str) -> VerificationOutcome:
        events = await self.store.get_by_correlation_id(correlation_id)
        if not events:
            return _failure(
                correlation_id, "EVENTS_NOT_FOUND",
                f"No events found for correlation ID: {correlation_id}",
            )

        for required in (EventType.INPUTS_CAPTURED, EventType.SCORES_COMPUTED):
            if _first_of(events, required) is None:
                return _failure(
                    correlation_id, "INCOMPLETE_EVENT_LOG",
                    f"{required.value} event not found for correlation ID: {correlation_id}",
                    missing_event=required.value,
                )

        try:
            inputs: InputsCaptured = _first_of(events, EventType.INPUTS_CAPTURED).event
            recorded: ScoresComputed = _first_of(events, EventType.SCORES_COMPUTED).event
            criteria, assets = restore_inputs(inputs)
            replayed = calculate_scores(criteria, assets, inputs.criteria_version_id)
        except InvestScoreError as e:
            logger.warning(
                f"Replay recomputation failed: {e.message}",
                extra={"correlation_id": correlation_id, "error_code": e.code},
            )
            return _failure(correlation_id, "REPLAY_FAILED", e.message)
        except (ArithmeticError, KeyError, TypeError, ValueError) as e:
            logger.warning(
                f"Replay snapshot unreadable: {e!r}",
                extra={"correlation_id": correlation_id},
            )
            return _failure(correlation_id, "REPLAY_FAILED", f"Malformed event payload: {e!r}")

        original = list(recorded.results)
        discrepancies = compare_results(original, replayed)
        if discrepancies:
            logger.error(
                f"Replay diverged on {len(discrepancies)} asset(s)",
                extra={"correlation_id": correlation_id},
            )

        return VerificationOutcome(
            verified=True,
            result=ReplayResult(
                success=True,
                correlation_id=correlation_id,
                matches=not discrepancies,
                original_results=original,
                replay_results=replayed,
                discrepancies=discrepancies,
            ),
        )

    async def replay_batch(self, correlation_ids: Iterable[str]) -> BatchReplaySummary:
        results = [
            (await self.verify_determinism(cid)).result for cid in correlation_ids
        ]
        return BatchReplaySummary(
            total=len(results),
            successful=sum(1 for r in results if r.success),
            matching=sum(1 for r in results if r.success and r.matches),
            results=results,
        )


async def verify_determinism(
    correlation_id: str, store: EventStore,
) -> VerificationOutcome:
    return await ReplayVerifier(store).verify_determinism(correlation_id)


def raise_for_outcome(outcome: VerificationOutcome) -> ReplayResult:
    """Return the result of a matching replay; raise the typed error otherwise."""
    result = outcome.result
    cid = result.correlation_id
    if not outcome.verified:
        if result.error_code == "EVENTS_NOT_FOUND":
            raise EventsNotFoundError(cid)
        if result.error_code == "INCOMPLETE_EVENT_LOG":
            raise IncompleteEventLogError(cid, result.missing_event or "UNKNOWN")
        raise ReplayFailedError(cid, result.error or "unknown error")
    if not result.matches:
        raise DeterminismViolationError(cid, [d.to_dict() for d in result.discrepancies])
    return result
