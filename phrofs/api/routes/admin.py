"""
api/routes/admin.py
-------------------
Admin surface. Reads can span every school (?school=all, the default) or
one school; moderation always targets one school.

Roles: viewer ⊂ moderator ⊂ admin.
  viewer:    read-only views and the activity stream
  moderator: flag and edit comments
  admin:     everything, including hard deletes

POST   /admin/login                 — Exchange a role password for a token
GET    /admin/users                 — Users per school
GET    /admin/users-extended        — Users with contribution counts
GET    /admin/summary               — Per-school counts plus grand totals
GET    /admin/activity              — Newest comments/reviews/uploads, merged
GET    /admin/logs                  — Admin audit log, merged
POST   /admin/comments/{id}/flag    — Flag / unflag a comment
PUT    /admin/comments/{id}         — Edit a comment
DELETE /admin/comments/{id}         — Delete a comment
GET    /admin/stream                — Live activity (Server-Sent Events)
"""

from datetime import timedelta
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from phrofs.core.config import settings
from phrofs.core.exceptions import Unauthorized
from phrofs.core.logging import get_logger
from phrofs.core.security import AdminPrincipal, AdminRole, create_admin_token, role_for_password
from phrofs.db.registry import TenantStoreRegistry, get_registry
from phrofs.dependencies import require_role
from phrofs.schemas.admin import (
    AdminLoginRequest,
    AdminTokenResponse,
    CommentEdit,
    CommentFlag,
    FanoutResponse,
    SummaryResponse,
    TaggedRowsResponse,
    TenantResultRead,
)
from phrofs.schemas.professor import CommentRead
from phrofs.services.activity_stream import ActivityBroadcaster, get_broadcaster, stream_events
from phrofs.services.admin_service import (
    AdminFanout,
    ModerationService,
    TenantResult,
    list_logs,
    list_users,
    list_users_extended,
    recent_activity,
    tenant_summary,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

SchoolSelector = Annotated[
    Optional[str],
    Query(description="School key, or 'all' for every school"),
]


def get_fanout(
    registry: Annotated[TenantStoreRegistry, Depends(get_registry)],
) -> AdminFanout:
    return AdminFanout(registry)


def _read(results: list[TenantResult]) -> list[TenantResultRead]:
    return [TenantResultRead(**vars(r)) for r in results]


def _single_school(fanout: AdminFanout, school: Optional[str]) -> str:
    return fanout.registry.resolve(school).tenant


@router.post("/login", response_model=AdminTokenResponse, summary="Admin: password login")
async def admin_login(body: AdminLoginRequest) -> AdminTokenResponse:
    role = role_for_password(body.password)
    if role is None:
        logger.warning("Rejected admin login")
        raise Unauthorized("Invalid admin password")
    expires = timedelta(minutes=settings.ADMIN_TOKEN_EXPIRE_MINUTES)
    return AdminTokenResponse(
        token=create_admin_token(role, expires),
        role=role,
        expires_in=int(expires.total_seconds()),
    )


@router.get("/users", response_model=FanoutResponse, summary="Admin: users per school")
async def admin_users(
    fanout: Annotated[AdminFanout, Depends(get_fanout)],
    _: Annotated[AdminPrincipal, Depends(require_role(AdminRole.viewer))],
    school: SchoolSelector = None,
) -> FanoutResponse:
    results = await fanout.query_all(fanout.targets(school), list_users)
    return FanoutResponse(results=_read(results))


@router.get(
    "/users-extended",
    response_model=FanoutResponse,
    summary="Admin: users with contribution counts",
)
async def admin_users_extended(
    fanout: Annotated[AdminFanout, Depends(get_fanout)],
    _: Annotated[AdminPrincipal, Depends(require_role(AdminRole.viewer))],
    school: SchoolSelector = None,
) -> FanoutResponse:
    results = await fanout.query_all(fanout.targets(school), list_users_extended)
    return FanoutResponse(results=_read(results))


@router.get("/summary", response_model=SummaryResponse, summary="Admin: counts and totals")
async def admin_summary(
    fanout: Annotated[AdminFanout, Depends(get_fanout)],
    _: Annotated[AdminPrincipal, Depends(require_role(AdminRole.viewer))],
    school: SchoolSelector = None,
) -> SummaryResponse:
    results = await fanout.query_all(fanout.targets(school), tenant_summary)
    return SummaryResponse(results=_read(results), totals=AdminFanout.sum_numeric(results))


@router.get("/activity", response_model=TaggedRowsResponse, summary="Admin: recent activity")
async def admin_activity(
    fanout: Annotated[AdminFanout, Depends(get_fanout)],
    _: Annotated[AdminPrincipal, Depends(require_role(AdminRole.viewer))],
    school: SchoolSelector = None,
    limit: int = Query(50, ge=1, le=500),
) -> TaggedRowsResponse:
    results = await fanout.query_all(fanout.targets(school), recent_activity(limit))
    return TaggedRowsResponse(
        items=AdminFanout.merge_rows(results, limit=limit),
        errors=[r for r in _read(results) if not r.ok],
    )


@router.get("/logs", response_model=TaggedRowsResponse, summary="Admin: audit log")
async def admin_logs(
    fanout: Annotated[AdminFanout, Depends(get_fanout)],
    _: Annotated[AdminPrincipal, Depends(require_role(AdminRole.viewer))],
    school: SchoolSelector = None,
    limit: int = Query(100, ge=1, le=1000),
) -> TaggedRowsResponse:
    results = await fanout.query_all(fanout.targets(school), list_logs(limit))
    return TaggedRowsResponse(
        items=AdminFanout.merge_rows(results, limit=limit),
        errors=[r for r in _read(results) if not r.ok],
    )


@router.post(
    "/comments/{comment_id}/flag",
    response_model=CommentRead,
    summary="Moderator: flag or unflag a comment",
)
async def flag_comment(
    comment_id: int,
    body: CommentFlag,
    fanout: Annotated[AdminFanout, Depends(get_fanout)],
    principal: Annotated[AdminPrincipal, Depends(require_role(AdminRole.moderator))],
    broadcaster: Annotated[ActivityBroadcaster, Depends(get_broadcaster)],
    school: SchoolSelector = None,
) -> CommentRead:
    target = _single_school(fanout, school)
    async with fanout.registry.session(target) as db:
        comment = await ModerationService.flag_comment(db, target, comment_id, body, principal)
    broadcaster.publish(
        "admin.comment.flag", target, {"id": comment_id, "flagged": comment.flagged, "role": principal.role.value}
    )
    return comment


@router.put(
    "/comments/{comment_id}",
    response_model=CommentRead,
    summary="Moderator: edit a comment",
)
async def edit_comment(
    comment_id: int,
    body: CommentEdit,
    fanout: Annotated[AdminFanout, Depends(get_fanout)],
    principal: Annotated[AdminPrincipal, Depends(require_role(AdminRole.moderator))],
    broadcaster: Annotated[ActivityBroadcaster, Depends(get_broadcaster)],
    school: SchoolSelector = None,
) -> CommentRead:
    target = _single_school(fanout, school)
    async with fanout.registry.session(target) as db:
        comment = await ModerationService.edit_comment(db, target, comment_id, body, principal)
    broadcaster.publish("admin.comment.edit", target, {"id": comment_id, "role": principal.role.value})
    return comment


@router.delete("/comments/{comment_id}", summary="Admin: delete a comment")
async def delete_comment(
    comment_id: int,
    fanout: Annotated[AdminFanout, Depends(get_fanout)],
    principal: Annotated[AdminPrincipal, Depends(require_role(AdminRole.admin))],
    broadcaster: Annotated[ActivityBroadcaster, Depends(get_broadcaster)],
    school: SchoolSelector = None,
) -> dict:
    target = _single_school(fanout, school)
    async with fanout.registry.session(target) as db:
        avg, count = await ModerationService.delete_comment(db, target, comment_id, principal)
    broadcaster.publish("admin.comment.delete", target, {"id": comment_id, "role": principal.role.value})
    return {"ok": True, "school": target, "rating_avg": avg, "rating_count": count}


@router.get(
    "/stream",
    summary="Admin: live activity stream (Server-Sent Events)",
    response_class=StreamingResponse,
)
async def activity_stream(
    request: Request,
    broadcaster: Annotated[ActivityBroadcaster, Depends(get_broadcaster)],
    _: Annotated[AdminPrincipal, Depends(require_role(AdminRole.viewer))],
):
    """
    Each event arrives as:   event: <type>\\ndata: <json>\\n\\n
    Comment lines (": keepalive") are sent while idle.
    """
    return StreamingResponse(
        stream_events(broadcaster, request.is_disconnected),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )
