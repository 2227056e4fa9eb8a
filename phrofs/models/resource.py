"""
models/resource.py
------------------
Uploaded study resource metadata.

The uploader's display fields are copied onto the row at upload time so
the attribution stays as it was even if the user edits their profile later.
Anonymous uploads store NULL in those columns.
"""

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from phrofs.db.base import Base, TimestampMixin


class Resource(Base, TimestampMixin):
    __tablename__ = "subject_resources"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subjects.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[Optional[int]] = mapped_column(Integer)
    title: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    anonymous: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("0")
    )

    # Snapshot of the uploader at upload time
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    photo_path: Mapped[Optional[str]] = mapped_column(Text)
    college: Mapped[Optional[str]] = mapped_column(String(255))
    batch: Mapped[Optional[str]] = mapped_column(String(32))

    download_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    def __repr__(self) -> str:
        return f"<Resource id={self.id} subject_id={self.subject_id}>"
