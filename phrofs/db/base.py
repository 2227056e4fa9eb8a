"""
db/base.py
----------
Declarative base and shared mixins.

TimestampMixin: Adds an indexed, server-side created_at column to any model.
                Indexed; admin views order and filter by it.

Every tenant store is a separate SQLite file built from this one metadata,
so ids are integer sequences local to the tenant.
"""

from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class TimestampMixin:
    """Adds a server-side created_at timestamp."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.current_timestamp(),
        nullable=False,
        index=True,
    )
