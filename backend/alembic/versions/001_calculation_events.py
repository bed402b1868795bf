"""Calculation event log — append-only audit trail of scoring runs.

Revision ID: 001_calculation_events
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_calculation_events"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "calculation_events",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("correlation_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("event_type", sa.String(32), nullable=False),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_calculation_events_correlation",
        "calculation_events", ["correlation_id", "sequence"],
    )
    op.create_index(
        "ix_calculation_events_user_type_created",
        "calculation_events", ["user_id", "event_type", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_calculation_events_user_type_created", table_name="calculation_events")
    op.drop_index("ix_calculation_events_correlation", table_name="calculation_events")
    op.drop_table("calculation_events")
