"""Score Aggregation — sums criterion outcomes into a formatted per-asset score.

Invariants:
    - All functions are PURE: no IO, no clock, no randomness
    - Criteria evaluated in sort_order (ties keep input order); breakdown keeps that order
    - score == decimal sum of points_awarded over all entries, four fractional digits
    - Every criterion is validated before any asset is scored (config errors abort the batch)
    - Empty criteria => "0.0000" with empty breakdown; empty assets => []

Design Decisions:
    - Asset-major loop: result order follows asset input order, breakdown follows sort_order
    - Results carry no calculated_at timestamp; wall-clock time lives on the events
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Sequence

from investscore.core.decimal_math import add, format_score
from investscore.core.domain_types import ScoreString
from investscore.core.evaluate_criterion import (
    ScoreBreakdownEntry, Thresholds, evaluate_with_thresholds, validate_criterion,
)
from investscore.core.scoring_inputs import AssetInput, CriterionRule


@dataclass(frozen=True)
class ScoreResult:
    """Score and breakdown for one asset against one criteria version."""
    asset_id: str
    symbol: str
    score: ScoreString
    criteria_version_id: str
    breakdown: tuple[ScoreBreakdownEntry, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "symbol": self.symbol,
            "score": self.score,
            "criteria_version_id": self.criteria_version_id,
            "breakdown": [entry.to_dict() for entry in self.breakdown],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScoreResult":
        return cls(
            asset_id=data["asset_id"],
            symbol=data.get("symbol", data["asset_id"]),
            score=ScoreString(data["score"]),
            criteria_version_id=data.get("criteria_version_id", ""),
            breakdown=tuple(
                ScoreBreakdownEntry.from_dict(b) for b in data.get("breakdown", [])
            ),
        )


def order_criteria(criteria: Iterable[CriterionRule]) -> list[CriterionRule]:
    """Stable sort by sort_order."""
    return sorted(criteria, key=lambda c: c.sort_order)


def _validate_all(
    criteria: Iterable[CriterionRule],
) -> list[tuple[CriterionRule, Thresholds]]:
    return [(rule, validate_criterion(rule)) for rule in order_criteria(criteria)]


def _score_asset(
    asset: AssetInput,
    validated: Sequence[tuple[CriterionRule, Thresholds]],
    criteria_version_id: str,
) -> ScoreResult:
    breakdown = tuple(
        evaluate_with_thresholds(rule, thresholds, asset.fundamentals)
        for rule, thresholds in validated
    )
    total = add(*(Decimal(entry.points_awarded) for entry in breakdown))
    return ScoreResult(
        asset_id=asset.id,
        symbol=asset.symbol,
        score=format_score(total),
        criteria_version_id=criteria_version_id,
        breakdown=breakdown,
    )


def calculate_score(
    asset: AssetInput,
    criteria: Sequence[CriterionRule],
    criteria_version_id: str = "",
) -> ScoreResult:
    """Score one asset against a rule set."""
    return _score_asset(asset, _validate_all(criteria), criteria_version_id)


def calculate_scores(
    criteria: Sequence[CriterionRule],
    assets: Sequence[AssetInput],
    criteria_version_id: str,
) -> list[ScoreResult]:
    """Score a batch of assets. Validation runs once, before the first asset."""
    validated = _validate_all(criteria)
    return [_score_asset(asset, validated, criteria_version_id) for asset in assets]


def max_possible_score(criteria: Iterable[CriterionRule]) -> ScoreString:
    """Sum of positive points — the best score any asset could reach."""
    return format_score(add(*(
        Decimal(rule.points) for rule in criteria if rule.points > 0
    )))
