"""
services/resource_service.py
----------------------------
Study resources uploaded per subject.

Bytes go to UPLOAD_DIR/<school>/ under a random prefix; the row records
the path. The uploader's display fields are snapshotted onto the row, or
stored as NULL when the upload is anonymous.
"""

import re
import uuid
from pathlib import Path
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from phrofs.core.config import settings
from phrofs.core.exceptions import NotFound, ValidationFailed
from phrofs.core.logging import get_logger
from phrofs.models.resource import Resource
from phrofs.models.subject import Subject
from phrofs.models.user import User
from phrofs.schemas.resource import FileMeta, ResourceRead

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_CHUNK_SIZE = 1024 * 1024


def safe_file_name(raw: Optional[str]) -> str:
    name = Path(raw or "").name.strip()
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    if not name:
        raise ValidationFailed("A file name is required")
    return name[:200]


class ResourceService:

    @staticmethod
    async def require_subject(db: AsyncSession, subject_id: int) -> Subject:
        subject = await db.get(Subject, subject_id)
        if subject is None:
            raise NotFound("Subject not found")
        return subject

    @staticmethod
    async def save_file(school: str, upload: UploadFile) -> FileMeta:
        """Write an uploaded file to the school's blob area and describe it."""
        file_name = safe_file_name(upload.filename)
        target_dir = Path(settings.UPLOAD_DIR) / school
        target_dir.mkdir(parents=True, exist_ok=True)
        stored_name = f"{uuid.uuid4().hex}_{file_name}"
        target = target_dir / stored_name

        size = 0
        with target.open("wb") as fh:
            while chunk := await upload.read(_CHUNK_SIZE):
                size += len(chunk)
                if size > settings.MAX_UPLOAD_BYTES:
                    fh.close()
                    target.unlink(missing_ok=True)
                    raise ValidationFailed("File is too large")
                fh.write(chunk)

        if size == 0:
            target.unlink(missing_ok=True)
            raise ValidationFailed("File is empty")

        return FileMeta(
            file_name=file_name,
            file_path=f"/uploads/{school}/{stored_name}",
            file_size=size,
        )

    @staticmethod
    def discard_file(file_meta: FileMeta) -> None:
        relative = file_meta.file_path.removeprefix("/uploads/")
        (Path(settings.UPLOAD_DIR) / relative).unlink(missing_ok=True)

    @staticmethod
    async def upload(
        db: AsyncSession,
        subject_id: int,
        user: User,
        file_meta: FileMeta,
        title: Optional[str] = None,
        description: Optional[str] = None,
        anonymous: bool = False,
    ) -> int:
        """Record an uploaded file against a subject and return its id."""
        await ResourceService.require_subject(db, subject_id)

        resource = Resource(
            subject_id=subject_id,
            user_id=user.id,
            file_name=file_meta.file_name,
            file_path=file_meta.file_path,
            file_size=file_meta.file_size,
            title=(title or "").strip() or None,
            description=(description or "").strip() or None,
            anonymous=anonymous,
            display_name=None if anonymous else user.display_name,
            photo_path=None if anonymous else user.photo_path,
            college=None if anonymous else user.college,
            batch=None if anonymous else user.batch_id,
        )
        db.add(resource)
        await db.commit()
        await db.refresh(resource)
        logger.info(
            "Resource uploaded",
            resource_id=resource.id,
            subject_id=subject_id,
            size=file_meta.file_size,
            anonymous=anonymous,
        )
        return resource.id

    @staticmethod
    async def get(db: AsyncSession, resource_id: int) -> ResourceRead:
        for item in await ResourceService._select(db, Resource.id == resource_id):
            return item
        raise NotFound("Resource not found")

    @staticmethod
    async def list_for_subject(db: AsyncSession, subject_id: int) -> list[ResourceRead]:
        """Resources for a subject with the uploader's current profile, newest first."""
        await ResourceService.require_subject(db, subject_id)
        return await ResourceService._select(db, Resource.subject_id == subject_id)

    @staticmethod
    async def _select(db: AsyncSession, condition) -> list[ResourceRead]:
        result = await db.execute(
            select(Resource, User.display_name, User.photo_path)
            .outerjoin(User, Resource.user_id == User.id)
            .where(condition)
            .order_by(Resource.created_at.desc(), Resource.id.desc())
        )
        items = []
        for resource, uploader_name, uploader_photo in result:
            item = ResourceRead.model_validate(resource)
            if not resource.anonymous:
                item.uploader_display_name = uploader_name
                item.uploader_photo_path = uploader_photo
            items.append(item)
        return items

    @staticmethod
    async def increment_download(db: AsyncSession, resource_id: int) -> tuple[int, str]:
        """
        Bump the download counter. Every call counts; repeat downloads are
        not deduplicated.

        Returns:
            (download_count, file_path)
        """
        result = await db.execute(
            update(Resource)
            .where(Resource.id == resource_id)
            .values(download_count=Resource.download_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            raise NotFound("Resource not found")
        await db.commit()
        row = (
            await db.execute(
                select(Resource.download_count, Resource.file_path).where(Resource.id == resource_id)
            )
        ).one()
        return int(row.download_count), row.file_path
