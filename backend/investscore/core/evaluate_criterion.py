"""Criterion Evaluation — applies one rule to one asset's fundamentals.

Invariants:
    - All functions are PURE: no IO, no async, no side effects
    - Missing/None required fundamental => skipped (matched=False, points=0), never an error
    - skipped_reason set => matched is False and points_awarded is 0
    - Points are awarded verbatim on match (zero and negative included)
    - Malformed criteria raise InvalidCriterionError from validate_criterion

Design Decisions:
    - One predicate table keyed by Operator: a single evaluator, no per-operator branches
    - validate_criterion returns parsed thresholds so batch scoring parses each rule once
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Mapping

from investscore.core.decimal_math import (
    DecimalLike, compare, equals, parse_decimal, to_decimal_string,
)
from investscore.core.domain_types import Operator, SkipReason
from investscore.core.errors import InvalidCriterionError, InvalidDecimalError
from investscore.core.scoring_inputs import CriterionRule


@dataclass(frozen=True)
class Thresholds:
    """Parsed comparison bounds. upper is only set for BETWEEN."""
    lower: Decimal | None = None
    upper: Decimal | None = None


@dataclass(frozen=True)
class ScoreBreakdownEntry:
    """Per-criterion evaluation detail attached to a ScoreResult."""
    criterion_id: str
    criterion_name: str
    matched: bool
    points_awarded: int
    actual_value: str | None
    skipped_reason: SkipReason | None = None

    def to_dict(self) -> dict:
        return {
            "criterion_id": self.criterion_id,
            "criterion_name": self.criterion_name,
            "matched": self.matched,
            "points_awarded": self.points_awarded,
            "actual_value": self.actual_value,
            "skipped_reason": (
                self.skipped_reason.value if self.skipped_reason else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScoreBreakdownEntry":
        reason = data.get("skipped_reason")
        return cls(
            criterion_id=data["criterion_id"],
            criterion_name=data["criterion_name"],
            matched=data["matched"],
            points_awarded=data["points_awarded"],
            actual_value=data.get("actual_value"),
            skipped_reason=SkipReason(reason) if reason else None,
        )


_Predicate = Callable[[Decimal, Thresholds], bool]

_PREDICATES: dict[Operator, _Predicate] = {
    Operator.GT: lambda v, t: compare(v, t.lower) > 0,
    Operator.GTE: lambda v, t: compare(v, t.lower) >= 0,
    Operator.LT: lambda v, t: compare(v, t.lower) < 0,
    Operator.LTE: lambda v, t: compare(v, t.lower) <= 0,
    Operator.EQ: lambda v, t: equals(v, t.lower),
    Operator.EQUALS: lambda v, t: equals(v, t.lower),
    Operator.BETWEEN: lambda v, t: (
        compare(v, t.lower) >= 0 and compare(v, t.upper) <= 0
    ),
    Operator.EXISTS: lambda v, t: True,
}


# ─── Validation ──────────────────────────────────────────────────

def _parse_bound(criterion: CriterionRule, raw: DecimalLike, field: str) -> Decimal:
    try:
        return parse_decimal(raw)
    except InvalidDecimalError as e:
        raise InvalidCriterionError(
            criterion.id, f"{field} {raw!r} is not a finite decimal",
        ) from e


def validate_criterion(criterion: CriterionRule) -> Thresholds:
    """Check a rule is well-formed and return its parsed thresholds."""
    try:
        operator = Operator(criterion.operator)
    except ValueError:
        raise InvalidCriterionError(
            criterion.id, f"unknown operator {criterion.operator!r}",
        ) from None
    points = criterion.points
    if isinstance(points, bool) or not isinstance(points, int):
        raise InvalidCriterionError(
            criterion.id, f"points must be an integer, got {points!r}",
        )

    if operator == Operator.EXISTS:
        return Thresholds()
    lower = _parse_bound(criterion, criterion.value, "value")
    if operator != Operator.BETWEEN:
        return Thresholds(lower=lower)

    if criterion.value2 is None:
        raise InvalidCriterionError(criterion.id, "between requires value2")
    upper = _parse_bound(criterion, criterion.value2, "value2")
    return Thresholds(lower=lower, upper=upper)


# ─── Evaluation ──────────────────────────────────────────────────

def _as_decimal(raw: DecimalLike | None) -> Decimal | None:
    if raw is None or isinstance(raw, Decimal):
        return raw
    return parse_decimal(raw)


def has_required_fundamentals(
    criterion: CriterionRule, fundamentals: Mapping[str, DecimalLike | None],
) -> bool:
    """True when every required metric is present and non-null."""
    return all(fundamentals.get(name) is not None for name in criterion.required)


def evaluate_with_thresholds(
    criterion: CriterionRule,
    thresholds: Thresholds,
    fundamentals: Mapping[str, DecimalLike | None],
) -> ScoreBreakdownEntry:
    """Evaluate an already-validated rule. Never raises for parsed fundamentals."""
    if not has_required_fundamentals(criterion, fundamentals):
        return ScoreBreakdownEntry(
            criterion_id=criterion.id,
            criterion_name=criterion.name,
            matched=False,
            points_awarded=0,
            actual_value=None,
            skipped_reason=SkipReason.MISSING_FUNDAMENTAL,
        )

    actual = _as_decimal(fundamentals.get(criterion.metric))
    if actual is None:
        matched = False
    else:
        matched = _PREDICATES[Operator(criterion.operator)](actual, thresholds)

    return ScoreBreakdownEntry(
        criterion_id=criterion.id,
        criterion_name=criterion.name,
        matched=matched,
        points_awarded=criterion.points if matched else 0,
        actual_value=None if actual is None else to_decimal_string(actual),
    )


def evaluate_criterion(
    criterion: CriterionRule, fundamentals: Mapping[str, DecimalLike | None],
) -> ScoreBreakdownEntry:
    """Validate then evaluate a single rule against one asset's fundamentals."""
    return evaluate_with_thresholds(
        criterion, validate_criterion(criterion), fundamentals,
    )
