"""Error Hierarchy — typed, categorized exceptions for all InvestScore failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Configuration errors are fatal to the current run, never retried
    - A determinism violation is CRITICAL and never downgraded to an ordinary failure
    - to_response() produces the REST envelope; core never formats messages for users

Design Decisions:
    - Single hierarchy with InvestScoreError base: FastAPI global handler catches all
      (ADR: uniform error shape)
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DETERMINISM = "determinism"
    DATABASE = "database"
    EVENT_LOG = "event_log"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: str | None = None
    user_id: str | None = None
    criterion_id: str | None = None
    asset_id: str | None = None
    debug_info: dict[str, Any] | None = None


class InvestScoreError(Exception):
    """Base exception for all InvestScore errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "correlation_id": self.context.correlation_id,
                    "criterion_id": self.context.criterion_id,
                    "asset_id": self.context.asset_id,
                },
            }
        }


# ─── Configuration Errors (fatal to the run) ────────────────────

class InvalidDecimalError(InvestScoreError):
    """A value could not be parsed as a finite decimal."""
    def __init__(self, value: object, context: ErrorContext | None = None):
        super().__init__(
            f"Cannot parse {value!r} as a finite decimal",
            "INVALID_DECIMAL", ErrorCategory.CONFIGURATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.value = value


class InvalidCriterionError(InvestScoreError):
    """Criterion rule is malformed (missing bound, bad operator, bad value)."""
    def __init__(
        self, criterion_id: str, reason: str, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.criterion_id = criterion_id
        super().__init__(
            f"Criterion '{criterion_id}' is invalid: {reason}",
            "INVALID_CRITERION", ErrorCategory.CONFIGURATION,
            ErrorSeverity.ERROR, ctx, 400,
        )
        self.criterion_id = criterion_id
        self.reason = reason


class UnknownEventTypeError(InvestScoreError):
    """Event payload carries a type outside the calculation vocabulary."""
    def __init__(self, event_type: object, context: ErrorContext | None = None):
        super().__init__(
            f"Unknown calculation event type: {event_type!r}",
            "UNKNOWN_EVENT_TYPE", ErrorCategory.CONFIGURATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.event_type = event_type


# ─── Event Log Errors ───────────────────────────────────────────

class EventsNotFoundError(InvestScoreError):
    """No events recorded for the given correlation id."""
    def __init__(self, correlation_id: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.correlation_id = correlation_id
        super().__init__(
            f"No events found for correlation ID: {correlation_id}",
            "EVENTS_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.WARNING, ctx, 404,
        )
        self.correlation_id = correlation_id


class IncompleteEventLogError(InvestScoreError):
    """Run exists but lacks an event replay depends on."""
    def __init__(
        self, correlation_id: str, missing_event: str,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.correlation_id = correlation_id
        super().__init__(
            f"{missing_event} event not found for correlation ID: {correlation_id}",
            "INCOMPLETE_EVENT_LOG", ErrorCategory.EVENT_LOG,
            ErrorSeverity.ERROR, ctx, 422,
        )
        self.correlation_id = correlation_id
        self.missing_event = missing_event


class EventEmissionError(InvestScoreError):
    """EventEmitter failed to record an audit event."""
    def __init__(
        self, event_type: str, correlation_id: str,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.correlation_id = correlation_id
        super().__init__(
            f"Failed to emit {event_type} for correlation ID: {correlation_id}",
            "EVENT_EMISSION_FAILED", ErrorCategory.EVENT_LOG,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.event_type = event_type
        self.correlation_id = correlation_id


class ReplayFailedError(InvestScoreError):
    """Replay could not recompute scores from the captured inputs."""
    def __init__(
        self, correlation_id: str, reason: str, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.correlation_id = correlation_id
        super().__init__(
            f"Replay of {correlation_id} failed: {reason}",
            "REPLAY_FAILED", ErrorCategory.INTERNAL,
            ErrorSeverity.ERROR, ctx, 500,
        )
        self.correlation_id = correlation_id


class DeterminismViolationError(InvestScoreError):
    """Replayed scores differ from the recorded ones."""
    def __init__(
        self, correlation_id: str, discrepancies: list[dict],
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.correlation_id = correlation_id
        super().__init__(
            f"Replay of {correlation_id} diverged on {len(discrepancies)} asset(s)",
            "DETERMINISM_VIOLATION", ErrorCategory.DETERMINISM,
            ErrorSeverity.CRITICAL, ctx, 500,
        )
        self.correlation_id = correlation_id
        self.discrepancies = discrepancies

    def to_response(self) -> dict:
        response = super().to_response()
        response["error"]["discrepancies"] = self.discrepancies
        return response


# ─── Resource / Infrastructure Errors ───────────────────────────

class ResourceNotFoundError(InvestScoreError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class InvalidRunTransitionError(InvestScoreError):
    """Calculation run attempted a backward or skipping phase transition."""
    def __init__(self, current: str, target: str, context: ErrorContext | None = None):
        super().__init__(
            f"Cannot transition calculation run from {current} to {target}",
            "INVALID_RUN_TRANSITION", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, context, 500,
        )
        self.current = current
        self.target = target


class DatabaseError(InvestScoreError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
