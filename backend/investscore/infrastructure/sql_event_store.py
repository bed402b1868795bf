"""SQL Event Store — calculation event log on SQLAlchemy async sessions.

Invariants:
    - Append-only: one INSERT + COMMIT per event, no UPDATE/DELETE
    - get_by_correlation_id returns lifecycle order (sequence, then created_at)
    - get_by_event_type / get_by_user return newest first
    - SQLAlchemy failures roll back and surface as DatabaseError

Design Decisions:
    - Commit per append: an event is durable before the runner moves to the next phase
    - Implements both EventStore and EventEmitter so the runner can write straight to it
"""

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from investscore.core.calculation_events import CalculationEvent
from investscore.core.domain_types import EventType
from investscore.core.repository_protocols import StoredEvent
from investscore.infrastructure.database import to_database_error
from investscore.models.calculation_event import CalculationEventRecord


def _to_stored(record: CalculationEventRecord) -> StoredEvent:
    return StoredEvent(
        id=str(record.id),
        correlation_id=record.correlation_id,
        user_id=record.user_id,
        event_type=EventType(record.event_type),
        payload=record.payload,
        created_at=record.created_at,
    )


class SqlEventStore:
    """EventStore + EventEmitter over a single AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(self, user_id: str, event: CalculationEvent) -> None:
        self.db.add(CalculationEventRecord(
            correlation_id=event.correlation_id,
            user_id=user_id,
            event_type=event.type.value,
            sequence=event.type.sequence,
            payload=event.to_payload(),
        ))
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise to_database_error(e) from e

    async def emit(self, user_id: str, event: CalculationEvent) -> None:
        await self.append(user_id, event)

    async def get_by_correlation_id(self, correlation_id: str) -> list[StoredEvent]:
        result = await self.db.execute(
            select(CalculationEventRecord)
            .where(CalculationEventRecord.correlation_id == correlation_id)
            .order_by(
                CalculationEventRecord.sequence.asc(),
                CalculationEventRecord.created_at.asc(),
            ),
        )
        return [_to_stored(r) for r in result.scalars().all()]

    async def get_by_event_type(
        self, user_id: str, event_type: EventType, limit: int = 100,
    ) -> list[StoredEvent]:
        result = await self.db.execute(
            select(CalculationEventRecord)
            .where(
                CalculationEventRecord.user_id == user_id,
                CalculationEventRecord.event_type == event_type.value,
            )
            .order_by(CalculationEventRecord.created_at.desc())
            .limit(limit),
        )
        return [_to_stored(r) for r in result.scalars().all()]

    async def get_by_user(self, user_id: str, limit: int = 100) -> list[StoredEvent]:
        result = await self.db.execute(
            select(CalculationEventRecord)
            .where(CalculationEventRecord.user_id == user_id)
            .order_by(
                CalculationEventRecord.created_at.desc(),
                CalculationEventRecord.sequence.desc(),
            )
            .limit(limit),
        )
        return [_to_stored(r) for r in result.scalars().all()]
