"""
models/admin_log.py
-------------------
Append-only audit trail of admin actions. Rows are never updated or deleted.
"""

from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from phrofs.db.base import Base, TimestampMixin


class AdminLog(Base, TimestampMixin):
    __tablename__ = "admin_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    detail: Mapped[Optional[str]] = mapped_column(Text)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    school: Mapped[str] = mapped_column(String(32), nullable=False)
