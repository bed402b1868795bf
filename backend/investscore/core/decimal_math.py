"""Decimal Math — exact arithmetic primitive for every score, threshold and sum.

Invariants:
    - All functions are PURE: no IO, no shared mutable state
    - Native binary floats never take part in a comparison or sum
    - Sums and score rounding run under EXACT_CONTEXT (unbounded precision, ROUND_HALF_UP):
      a total is exact no matter how many digits it grows to
    - Division (trend percentages) runs under SCORING_CONTEXT (precision 20, ROUND_HALF_UP)
    - Never the thread's ambient decimal context
    - format_score always renders exactly four fractional digits, never "-0.0000"

Design Decisions:
    - stdlib decimal over a third-party bignum: arbitrary precision, exact base-10
    - float inputs go through repr (shortest round-trip string): 0.3 -> Decimal("0.3")
"""

from decimal import (
    Context, Decimal, Inexact, InvalidOperation, MAX_EMAX, MAX_PREC, MIN_EMIN, ROUND_HALF_UP,
)

from investscore.core.domain_types import SCORE_FRACTION_DIGITS, ScoreString
from investscore.core.errors import InvalidDecimalError

SCORING_CONTEXT = Context(prec=20, rounding=ROUND_HALF_UP)
EXACT_CONTEXT = Context(
    prec=MAX_PREC, rounding=ROUND_HALF_UP, Emax=MAX_EMAX, Emin=MIN_EMIN,
    traps=[InvalidOperation, Inexact],
)

_SCORE_QUANTUM = Decimal(1).scaleb(-SCORE_FRACTION_DIGITS)
_ZERO = Decimal(0)

DecimalLike = str | int | float | Decimal


def parse_decimal(value: DecimalLike) -> Decimal:
    """Parse a str/int/float/Decimal into a finite Decimal.

    Raises InvalidDecimalError for empty strings, booleans, garbage and non-finite values.
    """
    if isinstance(value, bool):
        raise InvalidDecimalError(value)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = _parse_str(repr(value), original=value)
    elif isinstance(value, str):
        result = _parse_str(value, original=value)
    else:
        raise InvalidDecimalError(value)

    if not result.is_finite():
        raise InvalidDecimalError(value)
    return result


def _parse_str(text: str, original: object) -> Decimal:
    stripped = text.strip()
    if not stripped:
        raise InvalidDecimalError(original)
    try:
        return Decimal(stripped)
    except InvalidOperation as e:
        raise InvalidDecimalError(original) from e


def compare(a: Decimal, b: Decimal) -> int:
    """Exact three-way comparison: -1, 0 or 1."""
    return int(EXACT_CONTEXT.compare(a, b))


def add(*values: Decimal) -> Decimal:
    """Exact sum. Empty sum is zero."""
    total = _ZERO
    for value in values:
        total = EXACT_CONTEXT.add(total, value)
    return total


def equals(a: Decimal, b: Decimal) -> bool:
    """Numeric equality ("10" == "10.00", "10" != "10.01")."""
    return compare(a, b) == 0


def format_score(value: Decimal) -> ScoreString:
    """Render with exactly four fractional digits, no separators, no exponent."""
    quantized = value.quantize(_SCORE_QUANTUM, context=_quantize_context(value))
    if quantized.is_zero():
        quantized = quantized.copy_abs()
    return ScoreString(format(quantized, "f"))


def _quantize_context(value: Decimal) -> Context:
    # Enough digits for the integer part plus the four fractional ones.
    digits = max(value.adjusted(), 0) + 1 + SCORE_FRACTION_DIGITS + 1
    return Context(prec=max(digits, SCORING_CONTEXT.prec), rounding=ROUND_HALF_UP)


def to_decimal_string(value: Decimal) -> str:
    """Lossless storage string (positional notation, sign preserved)."""
    return format(value, "f")
