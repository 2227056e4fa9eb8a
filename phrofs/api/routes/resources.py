"""
api/routes/resources.py
-----------------------
Study resource endpoints.

POST /subjects/{id}/resources — Upload a file (multipart, auth required)
GET  /subjects/{id}/resources — Resources for a subject, newest first
POST /resources/{id}/download — Count a download (no auth)
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from phrofs.db.registry import TenantResolution
from phrofs.db.session import get_db, get_tenant
from phrofs.dependencies import get_current_user
from phrofs.models.user import User
from phrofs.schemas.resource import DownloadResponse, ResourceCreated, ResourceListResponse
from phrofs.services.activity_stream import ActivityBroadcaster, get_broadcaster
from phrofs.services.resource_service import ResourceService

router = APIRouter(tags=["Resources"])


@router.post(
    "/subjects/{subject_id}/resources",
    response_model=ResourceCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a study resource",
)
async def upload_resource(
    subject_id: int,
    tenant: Annotated[TenantResolution, Depends(get_tenant)],
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    broadcaster: Annotated[ActivityBroadcaster, Depends(get_broadcaster)],
    file: UploadFile = File(...),
    title: Optional[str] = Form(None, max_length=255),
    description: Optional[str] = Form(None, max_length=5000),
    anonymous: bool = Form(False),
) -> ResourceCreated:
    await ResourceService.require_subject(db, subject_id)
    file_meta = await ResourceService.save_file(tenant.tenant, file)
    try:
        resource_id = await ResourceService.upload(
            db,
            subject_id,
            current_user,
            file_meta,
            title=title,
            description=description,
            anonymous=anonymous,
        )
    except Exception:
        ResourceService.discard_file(file_meta)
        raise

    broadcaster.publish(
        "resource.created",
        tenant.tenant,
        {"id": resource_id, "subject_id": subject_id},
    )
    return ResourceCreated(id=resource_id, resource=await ResourceService.get(db, resource_id))


@router.get(
    "/subjects/{subject_id}/resources",
    response_model=ResourceListResponse,
    summary="List resources for a subject",
)
async def list_resources(
    subject_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ResourceListResponse:
    return ResourceListResponse(resources=await ResourceService.list_for_subject(db, subject_id))


@router.post(
    "/resources/{resource_id}/download",
    response_model=DownloadResponse,
    summary="Count a resource download",
)
async def download_resource(
    resource_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DownloadResponse:
    count, file_path = await ResourceService.increment_download(db, resource_id)
    return DownloadResponse(download_count=count, file_path=file_path)
