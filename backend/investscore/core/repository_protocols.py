"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - The runner only needs EventEmitter; replay and audit only need EventStore reads
    - get_by_correlation_id returns events in lifecycle order
    - get_by_event_type / get_by_user return newest first
    - Stores are append-only: no update or delete in the contract

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: implementations do IO; the pure scoring functions never await
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from investscore.core.calculation_events import CalculationEvent, event_from_payload
from investscore.core.domain_types import EventType


@dataclass(frozen=True)
class StoredEvent:
    """An event as read back from a store, with its storage metadata."""
    id: str
    correlation_id: str
    user_id: str
    event_type: EventType
    payload: dict
    created_at: datetime | None = None

    @property
    def event(self) -> CalculationEvent:
        return event_from_payload(self.payload)


class EventEmitter(Protocol):
    """Where the runner sends each audit event — implemented by shell."""
    async def emit(self, user_id: str, event: CalculationEvent) -> None: ...


class EventStore(Protocol):
    """Append-only calculation event log — implemented by shell."""
    async def append(self, user_id: str, event: CalculationEvent) -> None: ...
    async def get_by_correlation_id(
        self, correlation_id: str,
    ) -> list[StoredEvent]: ...
    async def get_by_event_type(
        self, user_id: str, event_type: EventType, limit: int = 100,
    ) -> list[StoredEvent]: ...
    async def get_by_user(
        self, user_id: str, limit: int = 100,
    ) -> list[StoredEvent]: ...
