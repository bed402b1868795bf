"""Score Schemas — request/response models for calculation, replay, and audit endpoints.

Invariants:
    - Operators restricted to the wire vocabulary via Literal
    - Threshold values accepted as strings or JSON numbers; strings are preferred
      because JSON numbers may already be binary floats
    - Payloads convert to core types (CriterionRule, AssetInput) via to_core();
      threshold parsing stays in core so a malformed rule fails the run, not the request

Design Decisions:
    - Scores in responses are strings, never numbers (four fractional digits, exact)
    - Response models mirror the core to_dict() keys so routes can pass dicts through
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from investscore.core.domain_types import Operator
from investscore.core.scoring_inputs import (
    AssetInput, CriterionRule, ExchangeRateSnapshot, PriceSnapshot, make_asset,
)

OperatorName = Literal["gt", "gte", "lt", "lte", "eq", "equals", "between", "exists"]
DecimalInput = str | int | float


# --- Requests ------------------------------------------------------------------

class CriterionPayload(BaseModel):
    """One scoring rule as sent by the client."""
    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=200)
    metric: str = Field(min_length=1, max_length=64)
    operator: OperatorName
    value: DecimalInput = "0"
    value2: DecimalInput | None = None
    points: int
    required_fundamentals: list[str] | None = None
    sort_order: int = 0

    def to_core(self) -> CriterionRule:
        return CriterionRule(
            id=self.id,
            name=self.name,
            metric=self.metric,
            operator=Operator(self.operator),
            value=self.value,
            value2=self.value2,
            points=self.points,
            required_fundamentals=(
                None if self.required_fundamentals is None
                else frozenset(self.required_fundamentals)
            ),
            sort_order=self.sort_order,
        )


class AssetPayload(BaseModel):
    """Asset identity plus fundamentals; null means "not reported"."""
    id: str = Field(min_length=1, max_length=64)
    symbol: str = Field(min_length=1, max_length=32)
    fundamentals: dict[str, DecimalInput | None] = Field(default_factory=dict)

    def to_core(self) -> AssetInput:
        return make_asset(self.id, self.symbol, self.fundamentals)


class PricePayload(BaseModel):
    asset_id: str
    symbol: str
    price: str
    currency: str = Field(min_length=3, max_length=3)
    fetched_at: datetime
    source: str

    def to_core(self) -> PriceSnapshot:
        return PriceSnapshot(
            asset_id=self.asset_id, symbol=self.symbol, price=self.price,
            currency=self.currency, fetched_at=self.fetched_at.isoformat(),
            source=self.source,
        )


class RatePayload(BaseModel):
    from_currency: str = Field(min_length=3, max_length=3)
    to_currency: str = Field(min_length=3, max_length=3)
    rate: str
    fetched_at: datetime
    source: str

    def to_core(self) -> ExchangeRateSnapshot:
        return ExchangeRateSnapshot(
            from_currency=self.from_currency, to_currency=self.to_currency,
            rate=self.rate, fetched_at=self.fetched_at.isoformat(),
            source=self.source,
        )


class CalculateRequest(BaseModel):
    """Batch scoring request — every asset against one criteria version."""
    user_id: str = Field(min_length=1, max_length=64)
    criteria_version_id: str = Field(min_length=1, max_length=64)
    market: str | None = Field(None, max_length=16)
    criteria: list[CriterionPayload] = Field(default_factory=list, max_length=200)
    assets: list[AssetPayload] = Field(default_factory=list, max_length=1000)
    prices: list[PricePayload] = Field(default_factory=list)
    rates: list[RatePayload] = Field(default_factory=list)

    @field_validator("user_id", "criteria_version_id")
    @classmethod
    def strip_ids(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("identifier cannot be empty or whitespace")
        return v


class ReplayRequest(BaseModel):
    correlation_id: UUID


class BatchReplayRequest(BaseModel):
    correlation_ids: list[UUID] = Field(min_length=1, max_length=100)


# --- Responses -----------------------------------------------------------------

class BreakdownEntryResponse(BaseModel):
    criterion_id: str
    criterion_name: str
    matched: bool
    points_awarded: int
    actual_value: str | None = None
    skipped_reason: str | None = None


class ScoreResultResponse(BaseModel):
    asset_id: str
    symbol: str
    score: str
    criteria_version_id: str
    breakdown: list[BreakdownEntryResponse]


class CalculateResponse(BaseModel):
    correlation_id: str
    scores: list[ScoreResultResponse]
    max_possible_score: str
    duration_ms: int
    asset_count: int
    missed_events: list[str] = Field(default_factory=list)


class DiscrepancyResponse(BaseModel):
    asset_id: str
    original_score: str | None
    replay_score: str | None


class ReplayResponse(BaseModel):
    verified: bool
    success: bool
    correlation_id: str
    matches: bool
    original_results: list[ScoreResultResponse]
    replay_results: list[ScoreResultResponse]
    discrepancies: list[DiscrepancyResponse]


class LatestScoresResponse(BaseModel):
    correlation_id: str
    max_possible_score: str
    results: list[ScoreResultResponse]


class TrendResponse(BaseModel):
    start_score: str
    end_score: str
    change_percent: str
    direction: Literal["up", "down", "stable"]
    data_points: int


class HistoryPointResponse(BaseModel):
    correlation_id: str
    score: str
    criteria_version_id: str
    recorded_at: datetime | None = None


class ScoreHistoryResponse(BaseModel):
    asset_id: str
    points: list[HistoryPointResponse]
    trend: TrendResponse | None = None


class StoredEventResponse(BaseModel):
    id: str
    event_type: str
    payload: dict
    created_at: datetime | None = None


class CalculationEventsResponse(BaseModel):
    correlation_id: str
    user_id: str
    events: list[StoredEventResponse]


class CapturedInputsResponse(BaseModel):
    correlation_id: str
    criteria_version_id: str
    criteria: list[dict]
    assets: list[dict]
    prices: list[dict]
    rates: list[dict]
