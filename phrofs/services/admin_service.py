"""
services/admin_service.py
-------------------------
Cross-tenant admin views and comment moderation.

AdminFanout runs one operation against several school stores. Each school
gets its own session and its own error boundary: a failing store yields an
error-flagged entry while the other schools still return data. Results are
always listed in the configured school order, and merged rows carry the
school they came from.

Moderation works on one school at a time and appends an AdminLog row for
every change.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from phrofs.core.exceptions import AppError, NotFound
from phrofs.core.logging import get_logger
from phrofs.core.security import AdminPrincipal
from phrofs.db.registry import TenantStoreRegistry
from phrofs.models.admin_log import AdminLog
from phrofs.models.professor import Comment, Professor
from phrofs.models.resource import Resource
from phrofs.models.review import Review
from phrofs.models.subject import Subject
from phrofs.models.user import User
from phrofs.schemas.admin import AdminLogRead, CommentEdit, CommentFlag
from phrofs.schemas.professor import CommentRead
from phrofs.schemas.user import UserRead
from phrofs.services.rating_service import RatingAggregator, RatingSource

logger = get_logger(__name__)

ALL_SCHOOLS = "all"
TenantOperation = Callable[[AsyncSession, str], Awaitable[Any]]


@dataclass
class TenantResult:
    school: str
    ok: bool
    result: Any = None
    error: Optional[str] = None


class AdminFanout:

    def __init__(self, registry: TenantStoreRegistry) -> None:
        self.registry = registry

    def targets(self, selector: Optional[str]) -> list[str]:
        """'all' (or nothing) means every school; otherwise one resolved school."""
        if selector is None or selector.strip().lower() in ("", ALL_SCHOOLS):
            return list(self.registry.schools)
        return [self.registry.resolve(selector).tenant]

    async def _run_one(self, school: str, operation: TenantOperation) -> TenantResult:
        try:
            async with self.registry.session(school) as db:
                value = await operation(db, school)
            return TenantResult(school=school, ok=True, result=value)
        except Exception as exc:
            logger.warning("Fan-out query failed", school=school, error=str(exc), exc_info=True)
            message = exc.message if isinstance(exc, AppError) else "Query failed for this school"
            return TenantResult(school=school, ok=False, error=message)

    async def query_all(
        self, schools: Iterable[str], operation: TenantOperation
    ) -> list[TenantResult]:
        schools = list(schools)
        return list(await asyncio.gather(*(self._run_one(s, operation) for s in schools)))

    @staticmethod
    def sum_numeric(results: Iterable[TenantResult]) -> dict[str, int]:
        """Add up the numeric fields of every successful per-school dict."""
        totals: dict[str, int] = {}
        for item in results:
            if not item.ok or not isinstance(item.result, dict):
                continue
            for key, value in item.result.items():
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    continue
                totals[key] = totals.get(key, 0) + value
        return totals

    @staticmethod
    def merge_rows(
        results: Iterable[TenantResult],
        order_by: str = "created_at",
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Flatten per-school row lists into one list tagged with 'school'."""
        rows = []
        for item in results:
            if not item.ok:
                continue
            for row in item.result or []:
                rows.append({**row, "school": item.school})
        rows.sort(key=lambda r: (r["school"], r.get("type", ""), r.get("id") or 0))
        rows.sort(key=lambda r: str(r.get(order_by) or ""), reverse=True)
        return rows[:limit] if limit else rows


# ── Per-school operations ─────────────────────────────────────────────────────

async def list_users(db: AsyncSession, school: str) -> list[dict[str, Any]]:
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return [UserRead.model_validate(u).model_dump(mode="json") for u in result.scalars()]


async def list_users_extended(db: AsyncSession, school: str) -> list[dict[str, Any]]:
    """Users with their contribution counts."""
    review_count = (
        select(func.count(Review.id)).where(Review.user_id == User.id).scalar_subquery()
    )
    comment_count = (
        select(func.count(Comment.id)).where(Comment.user_id == User.id).scalar_subquery()
    )
    resource_count = (
        select(func.count(Resource.id)).where(Resource.user_id == User.id).scalar_subquery()
    )
    result = await db.execute(
        select(
            User,
            review_count.label("review_count"),
            comment_count.label("comment_count"),
            resource_count.label("resource_count"),
        ).order_by(User.created_at.desc(), User.id.desc())
    )
    rows = []
    for user, reviews, comments, resources in result:
        row = UserRead.model_validate(user).model_dump(mode="json")
        row.update(review_count=reviews, comment_count=comments, resource_count=resources)
        rows.append(row)
    return rows


async def tenant_summary(db: AsyncSession, school: str) -> dict[str, int]:
    async def count(model) -> int:
        return int(await db.scalar(select(func.count()).select_from(model)) or 0)

    return {
        "users": await count(User),
        "subjects": await count(Subject),
        "professors": await count(Professor),
        "comments": await count(Comment),
        "reviews": await count(Review),
        "resources": await count(Resource),
        "downloads": int(await db.scalar(select(func.coalesce(func.sum(Resource.download_count), 0)))),
        "review_views": int(await db.scalar(select(func.coalesce(func.sum(Review.view_count), 0)))),
    }


def recent_activity(limit: int) -> TenantOperation:
    """Newest comments, reviews and uploads of one school, as plain rows."""

    async def operation(db: AsyncSession, school: str) -> list[dict[str, Any]]:
        comments = await db.execute(
            select(Comment).order_by(Comment.created_at.desc(), Comment.id.desc()).limit(limit)
        )
        reviews = await db.execute(
            select(Review).order_by(Review.created_at.desc(), Review.id.desc()).limit(limit)
        )
        resources = await db.execute(
            select(Resource).order_by(Resource.created_at.desc(), Resource.id.desc()).limit(limit)
        )
        rows = [
            {
                "type": "comment",
                "id": c.id,
                "prof_id": c.prof_id,
                "display_name": c.display_name,
                "stars": c.stars,
                "text": c.comment,
                "flagged": c.flagged,
                "created_at": c.created_at.isoformat() if c.created_at else None,
            }
            for c in comments.scalars()
        ]
        rows += [
            {
                "type": "review",
                "id": r.id,
                "prof_id": r.prof_id,
                "display_name": r.display_name,
                "rating": r.rating,
                "text": r.review_text,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in reviews.scalars()
        ]
        rows += [
            {
                "type": "resource",
                "id": res.id,
                "subject_id": res.subject_id,
                "display_name": res.display_name,
                "text": res.title or res.file_name,
                "created_at": res.created_at.isoformat() if res.created_at else None,
            }
            for res in resources.scalars()
        ]
        return rows

    return operation


def list_logs(limit: int) -> TenantOperation:
    async def operation(db: AsyncSession, school: str) -> list[dict[str, Any]]:
        result = await db.execute(
            select(AdminLog).order_by(AdminLog.created_at.desc(), AdminLog.id.desc()).limit(limit)
        )
        return [AdminLogRead.model_validate(r).model_dump(mode="json") for r in result.scalars()]

    return operation


# ── Moderation ────────────────────────────────────────────────────────────────

class ModerationService:

    @staticmethod
    def log_action(
        db: AsyncSession,
        action: str,
        detail: str,
        principal: AdminPrincipal,
        school: str,
    ) -> None:
        db.add(AdminLog(action=action, detail=detail, role=principal.role.value, school=school))

    @staticmethod
    async def _comment(db: AsyncSession, comment_id: int) -> Comment:
        comment = await db.get(Comment, comment_id)
        if comment is None:
            raise NotFound("Comment not found")
        return comment

    @staticmethod
    async def flag_comment(
        db: AsyncSession,
        school: str,
        comment_id: int,
        data: CommentFlag,
        principal: AdminPrincipal,
    ) -> CommentRead:
        comment = await ModerationService._comment(db, comment_id)
        comment.flagged = data.flagged
        detail = f"comment={comment_id} flagged={data.flagged}"
        if data.reason:
            detail += f" reason={data.reason}"
        ModerationService.log_action(db, "comment.flag", detail, principal, school)
        await db.commit()
        await db.refresh(comment)
        logger.info("Comment flagged", school=school, comment_id=comment_id, flagged=data.flagged)
        return CommentRead.model_validate(comment)

    @staticmethod
    async def edit_comment(
        db: AsyncSession,
        school: str,
        comment_id: int,
        data: CommentEdit,
        principal: AdminPrincipal,
    ) -> CommentRead:
        if data.stars is not None:
            RatingAggregator.validate_stars(data.stars)
        comment = await ModerationService._comment(db, comment_id)

        changed = []
        if data.comment is not None:
            comment.comment = data.comment.strip()
            changed.append("comment")
        if data.display_name is not None:
            comment.display_name = data.display_name.strip()
            changed.append("display_name")
        if data.stars is not None and data.stars != comment.stars:
            comment.stars = data.stars
            changed.append("stars")

        if "stars" in changed:
            await db.flush()
            await RatingAggregator.recompute(db, comment.prof_id, RatingSource.comment)
        ModerationService.log_action(
            db, "comment.edit", f"comment={comment_id} fields={','.join(changed) or '-'}", principal, school
        )
        await db.commit()
        await db.refresh(comment)
        logger.info("Comment edited", school=school, comment_id=comment_id, fields=changed)
        return CommentRead.model_validate(comment)

    @staticmethod
    async def delete_comment(
        db: AsyncSession,
        school: str,
        comment_id: int,
        principal: AdminPrincipal,
    ) -> tuple[float, int]:
        """Hard-delete a comment and re-derive its professor's aggregate."""
        comment = await ModerationService._comment(db, comment_id)
        prof_id = comment.prof_id
        await db.delete(comment)
        await db.flush()
        avg, count = await RatingAggregator.recompute(db, prof_id, RatingSource.comment)
        ModerationService.log_action(
            db, "comment.delete", f"comment={comment_id} prof={prof_id}", principal, school
        )
        await db.commit()
        logger.info("Comment deleted", school=school, comment_id=comment_id, prof_id=prof_id)
        return avg, count
