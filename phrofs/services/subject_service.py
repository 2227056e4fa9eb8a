"""
services/subject_service.py
---------------------------
Subject listing, search and user submissions.

Curated subjects make up the default listing; user-submitted ones only
appear in search results.
"""

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from phrofs.core.exceptions import Conflict, NotFound
from phrofs.core.logging import get_logger
from phrofs.models.subject import Note, Subject
from phrofs.schemas.subject import SubjectCreate

logger = get_logger(__name__)


class SubjectService:

    @staticmethod
    async def list_subjects(db: AsyncSession, q: str | None = None) -> list[Subject]:
        q = (q or "").strip().lower()
        stmt = select(Subject).order_by(Subject.code.asc())
        if q:
            like = f"%{q}%"
            stmt = stmt.where(
                or_(func.lower(Subject.code).like(like), func.lower(Subject.name).like(like))
            )
        else:
            stmt = stmt.where(Subject.is_user_submitted.is_(False))
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_subject(db: AsyncSession, subject_id: int) -> Subject:
        subject = await db.get(Subject, subject_id)
        if subject is None:
            raise NotFound("Subject not found")
        return subject

    @staticmethod
    async def get_subject_with_notes(
        db: AsyncSession, subject_id: int
    ) -> tuple[Subject, list[Note]]:
        subject = await SubjectService.get_subject(db, subject_id)
        result = await db.execute(
            select(Note)
            .where(Note.subject_id == subject_id)
            .order_by(Note.created_at.desc(), Note.id.desc())
        )
        return subject, list(result.scalars().all())

    @staticmethod
    async def create_subject(db: AsyncSession, data: SubjectCreate) -> Subject:
        """
        Create a user-submitted subject.
        Raises Conflict if the code is already taken.
        """
        existing = await db.execute(select(Subject.id).where(Subject.code == data.code))
        if existing.scalar_one_or_none() is not None:
            raise Conflict(f"Subject code '{data.code}' already exists")

        subject = Subject(code=data.code, name=data.name, is_user_submitted=True)
        db.add(subject)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise Conflict(f"Subject code '{data.code}' already exists")
        await db.refresh(subject)
        logger.info("Subject submitted", subject_id=subject.id, code=subject.code)
        return subject
