"""Run State — forward-only lifecycle of one calculation run.

Invariants:
    - STARTED -> INPUTS_CAPTURED -> COMPUTED -> COMPLETED, one step at a time
    - COMPLETED is terminal; it may be reached from any earlier phase (failure path)
    - No backward transitions, no repeats
"""

from dataclasses import dataclass

from investscore.core.domain_types import CompletionStatus, RunPhase
from investscore.core.errors import ErrorContext, InvalidRunTransitionError

_ORDER = list(RunPhase)


@dataclass
class RunState:
    """Mutable phase tracker owned by a single runner invocation."""
    correlation_id: str
    phase: RunPhase = RunPhase.STARTED
    status: CompletionStatus | None = None

    @property
    def is_completed(self) -> bool:
        return self.phase == RunPhase.COMPLETED

    def advance(self, target: RunPhase) -> None:
        """Move to the next phase. Raises InvalidRunTransitionError otherwise."""
        current = _ORDER.index(self.phase)
        if self.is_completed or _ORDER.index(target) != current + 1:
            raise InvalidRunTransitionError(
                self.phase.value, target.value,
                ErrorContext(correlation_id=self.correlation_id),
            )
        self.phase = target

    def complete(self, status: CompletionStatus) -> None:
        """Jump to COMPLETED from any non-terminal phase."""
        if self.is_completed:
            raise InvalidRunTransitionError(
                self.phase.value, RunPhase.COMPLETED.value,
                ErrorContext(correlation_id=self.correlation_id),
            )
        self.phase = RunPhase.COMPLETED
        self.status = status
