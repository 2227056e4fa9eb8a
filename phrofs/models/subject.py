"""
models/subject.py
-----------------
Subject and Note ORM models.

Subjects are either curated (seeded) or user-submitted. User-submitted
subjects only show up in searches, never in the default listing.
Notes are the legacy per-professor/per-subject uploads; they are read-only.
"""

from typing import Optional

from sqlalchemy import Boolean, Float, ForeignKey, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from phrofs.db.base import Base, TimestampMixin


class Subject(Base, TimestampMixin):
    __tablename__ = "subjects"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    difficulty_avg: Mapped[Optional[float]] = mapped_column(Float)
    is_user_submitted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("0")
    )

    def __repr__(self) -> str:
        return f"<Subject id={self.id} code={self.code}>"


class Note(Base, TimestampMixin):
    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    prof_id: Mapped[Optional[int]] = mapped_column(ForeignKey("professors.id"), index=True)
    subject_id: Mapped[Optional[int]] = mapped_column(ForeignKey("subjects.id"), index=True)
    original_name: Mapped[Optional[str]] = mapped_column(String(255))
    path: Mapped[Optional[str]] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    anonymous: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("0")
    )
