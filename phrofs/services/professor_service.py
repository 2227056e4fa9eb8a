"""
services/professor_service.py
-----------------------------
Professor lookups and star-rated comments.

Posting a rating is one unit of work: validate, insert the comment,
recompute the comment aggregate, commit. Validation happens before any
statement runs, so a rejected rating leaves no trace.

The comment and the recompute share one transaction: if the recompute
fails, the session rolls back and the comment is discarded with it, so a
stored comment is always reflected in the aggregate.
"""

from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from phrofs.core.exceptions import NotFound
from phrofs.core.logging import get_logger
from phrofs.models.professor import Comment, Professor
from phrofs.models.review import Review
from phrofs.models.subject import Note, Subject
from phrofs.models.user import User
from phrofs.schemas.professor import ProfessorDetail, ProfessorSearchHit, RateRequest
from phrofs.services.rating_service import RatingAggregator, RatingSource

logger = get_logger(__name__)

SEARCH_LIMIT = 50
ANONYMOUS_NAME = "Anonymous"
DEFAULT_NAME = "User"


class ProfessorService:

    @staticmethod
    async def get_professor(db: AsyncSession, prof_id: int) -> Professor:
        prof = await db.get(Professor, prof_id)
        if prof is None:
            raise NotFound("Professor not found")
        return prof

    @staticmethod
    async def list_for_subject(db: AsyncSession, subject_id: int) -> list[Professor]:
        if await db.get(Subject, subject_id) is None:
            raise NotFound("Subject not found")
        result = await db.execute(
            select(Professor).where(Professor.subject_id == subject_id).order_by(Professor.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def search(db: AsyncSession, q: str | None) -> list[ProfessorSearchHit]:
        q = (q or "").strip().lower()
        if not q:
            return []
        like = f"%{q}%"
        result = await db.execute(
            select(
                Professor.id,
                Professor.name,
                Professor.photo_path,
                Subject.code.label("subject_code"),
                Subject.name.label("subject_name"),
            )
            .outerjoin(Subject, Professor.subject_id == Subject.id)
            .where(
                or_(
                    func.lower(Professor.name).like(like),
                    func.lower(Subject.name).like(like),
                    func.lower(Subject.code).like(like),
                )
            )
            .order_by(Professor.name)
            .limit(SEARCH_LIMIT)
        )
        return [ProfessorSearchHit(**row._mapping) for row in result]

    @staticmethod
    async def get_detail(
        db: AsyncSession, prof_id: int
    ) -> tuple[ProfessorDetail, list[Comment], list[Review], list[Note]]:
        """Professor with subject info plus its comments, reviews and notes, newest first."""
        row = (
            await db.execute(
                select(Professor, Subject.code, Subject.name)
                .outerjoin(Subject, Professor.subject_id == Subject.id)
                .where(Professor.id == prof_id)
            )
        ).first()
        if row is None:
            raise NotFound("Professor not found")
        prof, subject_code, subject_name = row

        detail = ProfessorDetail.model_validate(prof).model_copy(
            update={
                "subject_code": subject_code or "N/A",
                "subject_name": subject_name or "N/A",
            }
        )

        comments = await db.execute(
            select(Comment)
            .where(Comment.prof_id == prof_id)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
        )
        reviews = await db.execute(
            select(Review)
            .where(Review.prof_id == prof_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
        notes = await db.execute(
            select(Note)
            .where(Note.prof_id == prof_id)
            .order_by(Note.created_at.desc(), Note.id.desc())
        )
        return (
            detail,
            list(comments.scalars().all()),
            list(reviews.scalars().all()),
            list(notes.scalars().all()),
        )

    @staticmethod
    async def rate(
        db: AsyncSession,
        prof_id: int,
        data: RateRequest,
        user: Optional[User] = None,
    ) -> tuple[Comment, float, int]:
        """
        Store a star rating with its comment and refresh the aggregate.

        Raises InvalidRating before touching the store when stars is out of
        range, and NotFound when the professor does not exist.
        """
        stars = RatingAggregator.validate_stars(data.stars)
        await ProfessorService.get_professor(db, prof_id)

        if data.anonymous:
            display_name = ANONYMOUS_NAME
        elif user is not None and user.display_name:
            display_name = user.display_name
        else:
            display_name = DEFAULT_NAME

        comment = Comment(
            prof_id=prof_id,
            user_id=user.id if user is not None else None,
            display_name=display_name,
            anonymous=data.anonymous,
            stars=stars,
            comment=data.comment.strip(),
        )
        db.add(comment)
        await db.flush()

        avg, count = await RatingAggregator.recompute(db, prof_id, RatingSource.comment)
        await db.commit()
        await db.refresh(comment)

        logger.info("Comment stored", comment_id=comment.id, prof_id=prof_id, stars=stars)
        return comment, avg, count
