"""Score Trend — direction and percent change across an asset's score history.

Invariants:
    - Input is chronological (oldest first); fewer than two points => None
    - Change percent is relative to |start|, rendered with two fractional digits
    - Zero start: end zero => "0.00"/stable, positive => "100.00"/up, negative => "-100.00"/down
    - |change| < 0.01% is stable
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from investscore.core.decimal_math import SCORING_CONTEXT, compare, format_score, parse_decimal
from investscore.core.domain_types import TrendDirection

_PERCENT_QUANTUM = Decimal("0.01")
_STABLE_THRESHOLD = Decimal("0.01")
_HUNDRED = Decimal(100)


@dataclass(frozen=True)
class TrendAnalysis:
    start_score: str
    end_score: str
    change_percent: str
    direction: TrendDirection
    data_points: int

    def to_dict(self) -> dict:
        return {
            "start_score": self.start_score,
            "end_score": self.end_score,
            "change_percent": self.change_percent,
            "direction": self.direction.value,
            "data_points": self.data_points,
        }


def _zero_start(end: Decimal) -> tuple[str, TrendDirection]:
    if end.is_zero():
        return "0.00", TrendDirection.STABLE
    if end > 0:
        return "100.00", TrendDirection.UP
    return "-100.00", TrendDirection.DOWN


def calculate_trend(history: Sequence[str]) -> TrendAnalysis | None:
    """Trend between the first and last score of a chronological history."""
    if len(history) < 2:
        return None

    start = parse_decimal(history[0])
    end = parse_decimal(history[-1])

    if start.is_zero():
        change_percent, direction = _zero_start(end)
    else:
        change = SCORING_CONTEXT.subtract(end, start)
        percent = SCORING_CONTEXT.multiply(
            SCORING_CONTEXT.divide(change, start.copy_abs()), _HUNDRED,
        )
        rounded = percent.quantize(_PERCENT_QUANTUM, context=SCORING_CONTEXT)
        if rounded.is_zero():
            rounded = rounded.copy_abs()
        change_percent = format(rounded, "f")

        if compare(percent.copy_abs(), _STABLE_THRESHOLD) < 0:
            direction = TrendDirection.STABLE
        elif percent > 0:
            direction = TrendDirection.UP
        else:
            direction = TrendDirection.DOWN

    return TrendAnalysis(
        start_score=format_score(start),
        end_score=format_score(end),
        change_percent=change_percent,
        direction=direction,
        data_points=len(history),
    )
