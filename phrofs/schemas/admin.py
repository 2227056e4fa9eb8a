"""
schemas/admin.py
----------------
Pydantic models for the admin surface.

Fan-out responses carry one entry per school; a school whose store failed
is reported with ok=false and an error message instead of data.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from phrofs.core.security import AdminRole


class AdminLoginRequest(BaseModel):
    password: str = Field(..., min_length=1)


class AdminTokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    role: AdminRole
    expires_in: int


class TenantResultRead(BaseModel):
    school: str
    ok: bool
    result: Any = None
    error: Optional[str] = None


class FanoutResponse(BaseModel):
    results: list[TenantResultRead]


class SummaryResponse(BaseModel):
    results: list[TenantResultRead]
    totals: dict[str, int]


class TaggedRowsResponse(BaseModel):
    """Rows merged from several schools, each tagged with its origin."""
    items: list[dict[str, Any]]
    errors: list[TenantResultRead] = Field(default_factory=list)


class CommentEdit(BaseModel):
    comment: Optional[str] = Field(None, max_length=5000)
    stars: Optional[int] = None
    display_name: Optional[str] = Field(None, max_length=255)


class CommentFlag(BaseModel):
    flagged: bool = True
    reason: Optional[str] = Field(None, max_length=500)


class AdminLogRead(BaseModel):
    id: int
    action: str
    detail: Optional[str] = None
    role: str
    school: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
