"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - CorrelationId is generated once per run and never reused
    - ScoreString always carries exactly four fractional digits
    - All valid states encoded as Enums — no raw string matching
    - EventType order is the lifecycle order of a calculation run

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (event payloads are JSON)
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

CorrelationId = NewType("CorrelationId", str)


# ─── Value Types ─────────────────────────────────────────────────

ScoreString = NewType("ScoreString", str)   # e.g. "10.0000", "-5.0000"

SCORE_FRACTION_DIGITS = 4


# ─── Enums ───────────────────────────────────────────────────────

class Operator(str, Enum):
    """Comparison vocabulary on the wire. EQUALS is an alias of EQ."""
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EQ = "eq"
    EQUALS = "equals"
    BETWEEN = "between"
    EXISTS = "exists"


class SkipReason(str, Enum):
    """Why a criterion was not evaluated. The only skip is missing data."""
    MISSING_FUNDAMENTAL = "missing_fundamental"


class EventType(str, Enum):
    """Calculation event types, in lifecycle order."""
    CALC_STARTED = "CALC_STARTED"
    INPUTS_CAPTURED = "INPUTS_CAPTURED"
    SCORES_COMPUTED = "SCORES_COMPUTED"
    CALC_COMPLETED = "CALC_COMPLETED"

    @property
    def sequence(self) -> int:
        """Position of this event within one run (0-based)."""
        return _EVENT_SEQUENCE[self]


_EVENT_SEQUENCE = {t: i for i, t in enumerate(EventType)}


class CompletionStatus(str, Enum):
    """Terminal status recorded in CALC_COMPLETED."""
    SUCCESS = "success"
    FAILURE = "failure"


class RunPhase(str, Enum):
    """Calculation run lifecycle — forward-only."""
    STARTED = "started"
    INPUTS_CAPTURED = "inputs_captured"
    COMPUTED = "computed"
    COMPLETED = "completed"


class EmissionFailurePolicy(str, Enum):
    """What the runner does when the EventEmitter raises."""
    ABORT = "abort"
    CONTINUE = "continue"


class TrendDirection(str, Enum):
    """Direction of an asset's score over a history window."""
    UP = "up"
    DOWN = "down"
    STABLE = "stable"
