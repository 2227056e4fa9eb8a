"""
models/review.py
----------------
Structured professor review.

rating 0 means "no rating given"; such reviews are stored but never feed
the professor aggregate. When anonymous is set the identity columns
(display_name, photo_path, college, batch_id) are written as NULL.
"""

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from phrofs.db.base import Base, TimestampMixin


class Review(Base, TimestampMixin):
    __tablename__ = "prof_reviews"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    prof_id: Mapped[int] = mapped_column(ForeignKey("professors.id"), nullable=False, index=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), index=True)

    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    anonymous: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("0")
    )
    title: Mapped[Optional[str]] = mapped_column(String(255))
    course_code: Mapped[Optional[str]] = mapped_column(String(32))
    would_take_again: Mapped[Optional[str]] = mapped_column(String(16))
    attainable_4: Mapped[Optional[str]] = mapped_column(String(16))
    deadline_leniency: Mapped[Optional[str]] = mapped_column(String(16))
    workload_rating: Mapped[Optional[str]] = mapped_column(String(16))
    tags: Mapped[Optional[str]] = mapped_column(Text)
    review_text: Mapped[Optional[str]] = mapped_column(Text)
    rating: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    college: Mapped[Optional[str]] = mapped_column(String(255))
    batch_id: Mapped[Optional[str]] = mapped_column(String(32))
    photo_path: Mapped[Optional[str]] = mapped_column(Text)

    view_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    def __repr__(self) -> str:
        return f"<Review id={self.id} prof_id={self.prof_id} rating={self.rating}>"
