"""Scoring Inputs — criterion rules, asset fundamentals, and market snapshots.

Invariants:
    - AssetInput is immutable; fundamentals are parsed to Decimal (or None) on construction
    - CriterionRule keeps value/value2 as given: parsing happens in validate_criterion,
      so a malformed threshold surfaces as a configuration error during the run
    - required_fundamentals None means "the metric itself"; an empty set means "nothing"
    - *_to_snapshot produces JSON-safe dicts with sorted keys; *_from_snapshot inverts it

Design Decisions:
    - Frozen dataclasses over pydantic models: core stays free of shell dependencies
    - Snapshot codecs live beside the types they encode (same pattern as state snapshots)
"""

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from investscore.core.decimal_math import DecimalLike, parse_decimal, to_decimal_string
from investscore.core.domain_types import Operator
from investscore.core.errors import InvalidCriterionError


@dataclass(frozen=True)
class CriterionRule:
    """One scoring rule — metric, operator, threshold(s), points."""
    id: str
    name: str
    metric: str
    operator: Operator
    value: DecimalLike = "0"
    value2: DecimalLike | None = None
    points: int = 0
    required_fundamentals: frozenset[str] | None = None
    sort_order: int = 0

    @property
    def required(self) -> tuple[str, ...]:
        """Metric names that must be present and non-null, in stable order."""
        if self.required_fundamentals is None:
            return (self.metric,)
        return tuple(sorted(self.required_fundamentals))


@dataclass(frozen=True)
class AssetInput:
    """Immutable per-run snapshot of one asset's fundamentals."""
    id: str
    symbol: str
    fundamentals: Mapping[str, Decimal | None] = field(
        default_factory=lambda: MappingProxyType({}),
    )

    def __post_init__(self):
        parsed = {
            name: None if raw is None else parse_decimal(raw)
            for name, raw in sorted(self.fundamentals.items())
        }
        object.__setattr__(self, "fundamentals", MappingProxyType(parsed))


@dataclass(frozen=True)
class PriceSnapshot:
    """Asset price captured at calculation time (decimal string)."""
    asset_id: str
    symbol: str
    price: str
    currency: str
    fetched_at: str
    source: str


@dataclass(frozen=True)
class ExchangeRateSnapshot:
    """Exchange rate captured at calculation time (decimal string)."""
    from_currency: str
    to_currency: str
    rate: str
    fetched_at: str
    source: str


# ─── Constructors ────────────────────────────────────────────────

def make_asset(
    asset_id: str, symbol: str, fundamentals: Mapping[str, DecimalLike | None],
) -> AssetInput:
    """Build an AssetInput; fundamentals are parsed on construction."""
    return AssetInput(id=asset_id, symbol=symbol, fundamentals=fundamentals)


def parse_operator(criterion_id: str, raw: str | Operator) -> Operator:
    """Map a wire operator onto the Operator enum or raise InvalidCriterionError."""
    try:
        return Operator(raw)
    except ValueError:
        raise InvalidCriterionError(
            criterion_id, f"unknown operator {raw!r}",
        ) from None


# ─── Snapshot codecs ─────────────────────────────────────────────

def _raw_to_str(value: DecimalLike) -> str:
    if isinstance(value, Decimal):
        return to_decimal_string(value)
    if isinstance(value, float):
        return repr(value)
    return str(value)


def criterion_to_snapshot(rule: CriterionRule) -> dict:
    """Serialize every field of a rule; replay needs all of them."""
    return {
        "id": rule.id,
        "name": rule.name,
        "metric": rule.metric,
        "operator": rule.operator.value,
        "value": _raw_to_str(rule.value),
        "value2": None if rule.value2 is None else _raw_to_str(rule.value2),
        "points": rule.points,
        "required_fundamentals": (
            None if rule.required_fundamentals is None
            else sorted(rule.required_fundamentals)
        ),
        "sort_order": rule.sort_order,
    }


def criterion_from_snapshot(data: dict) -> CriterionRule:
    required = data.get("required_fundamentals")
    return CriterionRule(
        id=data["id"],
        name=data["name"],
        metric=data["metric"],
        operator=parse_operator(data["id"], data["operator"]),
        value=data.get("value", "0"),
        value2=data.get("value2"),
        points=data.get("points", 0),
        required_fundamentals=None if required is None else frozenset(required),
        sort_order=data.get("sort_order", 0),
    )


def asset_to_snapshot(asset: AssetInput) -> dict:
    return {
        "id": asset.id,
        "symbol": asset.symbol,
        "fundamentals": {
            name: None if value is None else to_decimal_string(value)
            for name, value in sorted(asset.fundamentals.items())
        },
    }


def asset_from_snapshot(data: dict) -> AssetInput:
    return make_asset(data["id"], data["symbol"], data.get("fundamentals", {}))


def price_to_snapshot(price: PriceSnapshot) -> dict:
    return {
        "asset_id": price.asset_id,
        "symbol": price.symbol,
        "price": price.price,
        "currency": price.currency,
        "fetched_at": price.fetched_at,
        "source": price.source,
    }


def price_from_snapshot(data: dict) -> PriceSnapshot:
    return PriceSnapshot(**{k: data[k] for k in (
        "asset_id", "symbol", "price", "currency", "fetched_at", "source",
    )})


def rate_to_snapshot(rate: ExchangeRateSnapshot) -> dict:
    return {
        "from_currency": rate.from_currency,
        "to_currency": rate.to_currency,
        "rate": rate.rate,
        "fetched_at": rate.fetched_at,
        "source": rate.source,
    }


def rate_from_snapshot(data: dict) -> ExchangeRateSnapshot:
    return ExchangeRateSnapshot(**{k: data[k] for k in (
        "from_currency", "to_currency", "rate", "fetched_at", "source",
    )})
