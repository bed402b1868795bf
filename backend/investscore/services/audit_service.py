"""Audit Service — read models over the calculation event log.

Invariants:
    - Read-only: only EventStore query methods are called
    - Score history is chronological (oldest first) and built from SCORES_COMPUTED only
    - A run that did not score the asset contributes no history point
"""

from dataclasses import dataclass
from datetime import datetime

from investscore.core.calculation_events import (
    InputsCaptured, ScoresComputed, restore_inputs, restore_market_data,
)
from investscore.core.domain_types import EventType
from investscore.core.errors import (
    EventsNotFoundError, IncompleteEventLogError, ResourceNotFoundError,
)
from investscore.core.repository_protocols import EventStore, StoredEvent
from investscore.core.score_trend import TrendAnalysis, calculate_trend
from investscore.core.scoring_inputs import (
    AssetInput, CriterionRule, ExchangeRateSnapshot, PriceSnapshot,
)


@dataclass(frozen=True)
class HistoryPoint:
    correlation_id: str
    score: str
    criteria_version_id: str
    recorded_at: datetime | None

    def to_dict(self) -> dict:
        return {
            "correlation_id": self.correlation_id,
            "score": self.score,
            "criteria_version_id": self.criteria_version_id,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
        }


@dataclass(frozen=True)
class ScoreHistory:
    asset_id: str
    points: list[HistoryPoint]
    trend: TrendAnalysis | None

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "points": [p.to_dict() for p in self.points],
            "trend": self.trend.to_dict() if self.trend else None,
        }


@dataclass(frozen=True)
class CapturedInputs:
    """Decoded INPUTS_CAPTURED snapshot of one run."""
    correlation_id: str
    criteria_version_id: str
    criteria: list[CriterionRule]
    assets: list[AssetInput]
    prices: list[PriceSnapshot]
    rates: list[ExchangeRateSnapshot]


class AuditService:
    def __init__(self, store: EventStore):
        self.store = store

    async def get_calculation_events(self, correlation_id: str) -> list[StoredEvent]:
        """All events of one run in lifecycle order."""
        events = await self.store.get_by_correlation_id(correlation_id)
        if not events:
            raise EventsNotFoundError(correlation_id)
        return events

    async def get_captured_inputs(self, correlation_id: str) -> CapturedInputs:
        """The exact criteria, fundamentals and market data a run scored against."""
        events = await self.get_calculation_events(correlation_id)
        stored = next(
            (e for e in events if e.event_type == EventType.INPUTS_CAPTURED), None,
        )
        if stored is None:
            raise IncompleteEventLogError(
                correlation_id, EventType.INPUTS_CAPTURED.value,
            )
        snapshot: InputsCaptured = stored.event
        criteria, assets = restore_inputs(snapshot)
        prices, rates = restore_market_data(snapshot)
        return CapturedInputs(
            correlation_id=correlation_id,
            criteria_version_id=snapshot.criteria_version_id,
            criteria=criteria,
            assets=assets,
            prices=prices,
            rates=rates,
        )

    async def get_latest_scores(self, user_id: str) -> tuple[str, ScoresComputed]:
        """Most recent SCORES_COMPUTED for a user, with its correlation id."""
        latest = await self.store.get_by_event_type(
            user_id, EventType.SCORES_COMPUTED, limit=1,
        )
        if not latest:
            raise ResourceNotFoundError("Score calculation", user_id)
        return latest[0].correlation_id, latest[0].event

    async def get_score_history(
        self, user_id: str, asset_id: str, limit: int = 100,
    ) -> ScoreHistory:
        runs = await self.store.get_by_event_type(
            user_id, EventType.SCORES_COMPUTED, limit=limit,
        )
        points = []
        for stored in reversed(runs):
            computed: ScoresComputed = stored.event
            match = next((r for r in computed.results if r.asset_id == asset_id), None)
            if match is not None:
                points.append(HistoryPoint(
                    correlation_id=stored.correlation_id,
                    score=match.score,
                    criteria_version_id=match.criteria_version_id,
                    recorded_at=stored.created_at,
                ))
        if not points:
            raise ResourceNotFoundError("Score history", asset_id)
        return ScoreHistory(
            asset_id=asset_id,
            points=points,
            trend=calculate_trend([p.score for p in points]),
        )
