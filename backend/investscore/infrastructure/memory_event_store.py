"""In-Memory Event Store — process-local calculation event log.

Invariants:
    - Append-only list; payloads are copied on write, so callers cannot mutate history
    - Same ordering contract as SqlEventStore

Design Decisions:
    - Used by tests and by callers that score without a database (dry runs)
"""

import copy
import itertools
from datetime import datetime, timezone
from typing import Callable

from investscore.core.calculation_events import CalculationEvent
from investscore.core.domain_types import EventType
from investscore.core.repository_protocols import StoredEvent


class InMemoryEventStore:
    """EventStore + EventEmitter backed by a list."""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._events: list[StoredEvent] = []
        self._ids = itertools.count(1)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def append(self, user_id: str, event: CalculationEvent) -> None:
        self._events.append(StoredEvent(
            id=str(next(self._ids)),
            correlation_id=event.correlation_id,
            user_id=user_id,
            event_type=event.type,
            payload=event.to_payload(),
            created_at=self._clock(),
        ))

    async def emit(self, user_id: str, event: CalculationEvent) -> None:
        await self.append(user_id, event)

    async def get_by_correlation_id(self, correlation_id: str) -> list[StoredEvent]:
        matching = [e for e in self._events if e.correlation_id == correlation_id]
        return [_copy(e) for e in sorted(matching, key=lambda e: e.event_type.sequence)]

    async def get_by_event_type(
        self, user_id: str, event_type: EventType, limit: int = 100,
    ) -> list[StoredEvent]:
        matching = [
            e for e in reversed(self._events)
            if e.user_id == user_id and e.event_type == event_type
        ]
        return [_copy(e) for e in matching[:limit]]

    async def get_by_user(self, user_id: str, limit: int = 100) -> list[StoredEvent]:
        matching = [e for e in reversed(self._events) if e.user_id == user_id]
        return [_copy(e) for e in matching[:limit]]

    def __len__(self) -> int:
        return len(self._events)


def _copy(event: StoredEvent) -> StoredEvent:
    return StoredEvent(
        id=event.id,
        correlation_id=event.correlation_id,
        user_id=event.user_id,
        event_type=event.event_type,
        payload=copy.deepcopy(event.payload),
        created_at=event.created_at,
    )
