"""ORM Models — SQLAlchemy declarative models for persisted calculation events.

Invariants:
    - All models inherit from Base (db/base.py)
    - Rows are append-only; nothing in the codebase issues UPDATE or DELETE on them

Design Decisions:
    - All models imported here so Base.metadata is complete before create_all/alembic
"""

from investscore.models.calculation_event import CalculationEventRecord  # noqa: F401
