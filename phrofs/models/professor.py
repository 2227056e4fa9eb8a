"""
models/professor.py
-------------------
Professor and Comment ORM models.

rating_avg / rating_count are derived: only RatingAggregator writes them.
Comments and reviews are two independent rating sources that both feed the
same pair, so rating_source records which one wrote last.
"""

from typing import Optional

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from phrofs.db.base import Base, TimestampMixin


class Professor(Base, TimestampMixin):
    __tablename__ = "professors"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # No cascade: deleting a subject leaves its professors in place.
    subject_id: Mapped[Optional[int]] = mapped_column(ForeignKey("subjects.id"), index=True)
    photo_path: Mapped[Optional[str]] = mapped_column(Text)
    workload: Mapped[Optional[str]] = mapped_column(String(64))
    teaching_style: Mapped[Optional[str]] = mapped_column(Text)
    tips: Mapped[Optional[str]] = mapped_column(Text)
    plus_points: Mapped[Optional[str]] = mapped_column(Text)

    rating_avg: Mapped[float] = mapped_column(
        Float, nullable=False, default=0, server_default=text("0")
    )
    rating_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    rating_source: Mapped[Optional[str]] = mapped_column(String(16))

    def __repr__(self) -> str:
        return f"<Professor id={self.id} name={self.name}>"


class Comment(Base, TimestampMixin):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    prof_id: Mapped[int] = mapped_column(ForeignKey("professors.id"), nullable=False, index=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    anonymous: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("0")
    )
    stars: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text)
    flagged: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("0")
    )
