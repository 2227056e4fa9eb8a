"""
schemas/user.py
---------------
Pydantic models for login, tokens and profiles.

Security note:
  - password_hash is NEVER included in any response schema.
  - ProfileUpdate fields are all optional; a field left out (or null)
    keeps the stored value.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    school_id_or_email: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)


class UserRead(BaseModel):
    id: int
    school_id_or_email: Optional[str] = None
    provider: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_path: Optional[str] = None
    college: Optional[str] = None
    course: Optional[str] = None
    batch_id: Optional[str] = None
    bio: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    school: str
    user: UserRead


class MeResponse(BaseModel):
    user: UserRead
    school: str


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    photo_path: Optional[str] = Field(None, max_length=2048)
    college: Optional[str] = Field(None, max_length=255)
    course: Optional[str] = Field(None, max_length=255)
    batch_id: Optional[str] = Field(None, max_length=32)
    bio: Optional[str] = Field(None, max_length=2000)


class AssertedProfile(BaseModel):
    """Identity claims returned by an external identity provider."""
    provider_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_path: Optional[str] = None
