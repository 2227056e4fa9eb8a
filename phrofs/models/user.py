"""
models/user.py
--------------
User ORM model.

A user row is created through exactly one identity path:
  - legacy:  school_id_or_email (+ password_hash)
  - oauth:   (provider, provider_id), unique within the tenant store

Profile fields are optional and updated with coalescing semantics by
UserService.update_profile. password_hash is never returned by any schema.
"""

from typing import Optional

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from phrofs.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"
    __table_args__ = (
        Index("ux_users_provider_identity", "provider", "provider_id", unique=True),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    school_id_or_email: Mapped[Optional[str]] = mapped_column(String(320), unique=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255))

    provider: Mapped[Optional[str]] = mapped_column(String(32))
    provider_id: Mapped[Optional[str]] = mapped_column(String(255))
    email: Mapped[Optional[str]] = mapped_column(String(320))

    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    photo_path: Mapped[Optional[str]] = mapped_column(Text)
    college: Mapped[Optional[str]] = mapped_column(String(255))
    course: Mapped[Optional[str]] = mapped_column(String(255))
    batch_id: Mapped[Optional[str]] = mapped_column(String(32))
    bio: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<User id={self.id} display_name={self.display_name}>"
