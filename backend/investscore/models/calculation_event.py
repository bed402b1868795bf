"""CalculationEventRecord ORM — one row per audit event of a scoring run.

Invariants:
    - correlation_id groups the four events of one run
    - sequence is the event's lifecycle position (CALC_STARTED=0 .. CALC_COMPLETED=3)
    - payload is the event's to_payload() dict, stored verbatim
    - Reads of one run order by (sequence, created_at): lifecycle order regardless of clock skew

Design Decisions:
    - JSON column for payload: the event codec owns the shape, not the schema
    - Composite indexes match the two read paths: by correlation_id, by (user_id, event_type)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from investscore.db.base import Base


class CalculationEventRecord(Base):
    """Persisted calculation event — immutable once written."""
    __tablename__ = "calculation_events"
    __table_args__ = (
        Index("ix_calculation_events_correlation", "correlation_id", "sequence"),
        Index(
            "ix_calculation_events_user_type_created",
            "user_id", "event_type", "created_at",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    correlation_id: Mapped[str] = mapped_column(String(36), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
