"""Calculation Events — the four audit events of a scoring run and their payload codec.

Invariants:
    - Lifecycle: CALC_STARTED -> INPUTS_CAPTURED -> SCORES_COMPUTED -> CALC_COMPLETED
    - Every event of one run carries the same correlation_id
    - INPUTS_CAPTURED holds a frozen, JSON-safe copy of everything replay needs:
      every criterion field and every asset's fundamentals as decimal strings
    - to_payload() returns a fresh JSON-safe dict; events are never mutated after creation
    - event_from_payload(to_payload(e)) == e for every event type

Design Decisions:
    - Frozen dataclasses + explicit codec over pickled objects: the event log is JSON
    - restore_inputs is the single decoding path used by both the runner and replay
"""

import copy
from dataclasses import dataclass, field
from typing import Sequence, Union

from investscore.core.domain_types import CompletionStatus, EventType
from investscore.core.errors import UnknownEventTypeError
from investscore.core.score_aggregator import ScoreResult
from investscore.core.scoring_inputs import (
    AssetInput, CriterionRule, ExchangeRateSnapshot, PriceSnapshot,
    asset_from_snapshot, asset_to_snapshot,
    criterion_from_snapshot, criterion_to_snapshot,
    price_from_snapshot, price_to_snapshot, rate_from_snapshot, rate_to_snapshot,
)


@dataclass(frozen=True)
class CalcStarted:
    correlation_id: str
    user_id: str
    criteria_version_id: str
    timestamp: str
    market: str | None = None

    type = EventType.CALC_STARTED

    def to_payload(self) -> dict:
        payload = {
            "type": self.type.value,
            "correlation_id": self.correlation_id,
            "user_id": self.user_id,
            "criteria_version_id": self.criteria_version_id,
            "timestamp": self.timestamp,
        }
        if self.market is not None:
            payload["market"] = self.market
        return payload


@dataclass(frozen=True)
class InputsCaptured:
    """Frozen snapshot of the run's inputs. Replay depends on nothing else."""
    correlation_id: str
    criteria_version_id: str
    criteria: tuple[dict, ...] = field(default_factory=tuple)
    assets: tuple[dict, ...] = field(default_factory=tuple)
    asset_ids: tuple[str, ...] = field(default_factory=tuple)
    prices: tuple[dict, ...] = field(default_factory=tuple)
    rates: tuple[dict, ...] = field(default_factory=tuple)

    type = EventType.INPUTS_CAPTURED

    def to_payload(self) -> dict:
        return {
            "type": self.type.value,
            "correlation_id": self.correlation_id,
            "criteria_version_id": self.criteria_version_id,
            "criteria": copy.deepcopy(list(self.criteria)),
            "assets": copy.deepcopy(list(self.assets)),
            "asset_ids": list(self.asset_ids),
            "prices": copy.deepcopy(list(self.prices)),
            "rates": copy.deepcopy(list(self.rates)),
        }


@dataclass(frozen=True)
class ScoresComputed:
    correlation_id: str
    results: tuple[ScoreResult, ...] = field(default_factory=tuple)
    max_possible_score: str = "0.0000"

    type = EventType.SCORES_COMPUTED

    def to_payload(self) -> dict:
        return {
            "type": self.type.value,
            "correlation_id": self.correlation_id,
            "max_possible_score": self.max_possible_score,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass(frozen=True)
class CalcCompleted:
    correlation_id: str
    status: CompletionStatus
    duration_ms: int
    asset_count: int
    error_code: str | None = None
    error_message: str | None = None

    type = EventType.CALC_COMPLETED

    def to_payload(self) -> dict:
        payload = {
            "type": self.type.value,
            "correlation_id": self.correlation_id,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "asset_count": self.asset_count,
        }
        if self.error_code is not None:
            payload["error_code"] = self.error_code
        if self.error_message is not None:
            payload["error_message"] = self.error_message
        return payload


CalculationEvent = Union[CalcStarted, InputsCaptured, ScoresComputed, CalcCompleted]


# ─── Snapshot capture / restore ─────────────────────────────────

def capture_inputs(
    correlation_id: str,
    criteria_version_id: str,
    criteria: Sequence[CriterionRule],
    assets: Sequence[AssetInput],
    prices: Sequence[PriceSnapshot] = (),
    rates: Sequence[ExchangeRateSnapshot] = (),
) -> InputsCaptured:
    """Freeze the run's inputs into an INPUTS_CAPTURED event."""
    return InputsCaptured(
        correlation_id=correlation_id,
        criteria_version_id=criteria_version_id,
        criteria=tuple(criterion_to_snapshot(c) for c in criteria),
        assets=tuple(asset_to_snapshot(a) for a in assets),
        asset_ids=tuple(a.id for a in assets),
        prices=tuple(price_to_snapshot(p) for p in prices),
        rates=tuple(rate_to_snapshot(r) for r in rates),
    )


def restore_inputs(
    event: InputsCaptured,
) -> tuple[list[CriterionRule], list[AssetInput]]:
    """Rebuild criteria and assets from a captured snapshot, in captured order.

    Assets restore positionally, so duplicate ids keep their own fundamentals.
    Snapshots written without per-asset fundamentals fall back to bare asset ids.
    """
    criteria = [criterion_from_snapshot(c) for c in event.criteria]
    if event.assets:
        assets = [asset_from_snapshot(a) for a in event.assets]
    else:
        assets = [
            asset_from_snapshot({"id": asset_id, "symbol": asset_id})
            for asset_id in event.asset_ids
        ]
    return criteria, assets


def restore_market_data(
    event: InputsCaptured,
) -> tuple[list[PriceSnapshot], list[ExchangeRateSnapshot]]:
    """Prices and exchange rates captured for audit; scoring never reads them."""
    return (
        [price_from_snapshot(p) for p in event.prices],
        [rate_from_snapshot(r) for r in event.rates],
    )


# ─── Payload decoding ───────────────────────────────────────────

def _started(p: dict) -> CalcStarted:
    return CalcStarted(
        correlation_id=p["correlation_id"],
        user_id=p["user_id"],
        criteria_version_id=p.get("criteria_version_id", ""),
        timestamp=p.get("timestamp", ""),
        market=p.get("market"),
    )


def _inputs(p: dict) -> InputsCaptured:
    return InputsCaptured(
        correlation_id=p["correlation_id"],
        criteria_version_id=p.get("criteria_version_id", ""),
        criteria=tuple(copy.deepcopy(p.get("criteria", []))),
        assets=tuple(copy.deepcopy(p.get("assets", []))),
        asset_ids=tuple(p.get("asset_ids", [])),
        prices=tuple(copy.deepcopy(p.get("prices", []))),
        rates=tuple(copy.deepcopy(p.get("rates", []))),
    )


def _scores(p: dict) -> ScoresComputed:
    return ScoresComputed(
        correlation_id=p["correlation_id"],
        results=tuple(ScoreResult.from_dict(r) for r in p.get("results", [])),
        max_possible_score=p.get("max_possible_score", "0.0000"),
    )


def _completed(p: dict) -> CalcCompleted:
    return CalcCompleted(
        correlation_id=p["correlation_id"],
        status=CompletionStatus(p["status"]),
        duration_ms=p.get("duration_ms", 0),
        asset_count=p.get("asset_count", 0),
        error_code=p.get("error_code"),
        error_message=p.get("error_message"),
    )


_DECODERS = {
    EventType.CALC_STARTED: _started,
    EventType.INPUTS_CAPTURED: _inputs,
    EventType.SCORES_COMPUTED: _scores,
    EventType.CALC_COMPLETED: _completed,
}


def event_from_payload(payload: dict) -> CalculationEvent:
    """Decode a stored payload back into its typed event."""
    raw_type = payload.get("type")
    try:
        event_type = EventType(raw_type)
    except ValueError:
        raise UnknownEventTypeError(raw_type) from None
    return _DECODERS[event_type](payload)
