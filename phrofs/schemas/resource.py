"""
schemas/resource.py
-------------------
Pydantic models for uploaded study resources.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class FileMeta(BaseModel):
    file_name: str
    file_path: str
    file_size: int


class ResourceRead(BaseModel):
    id: int
    subject_id: int
    user_id: int
    file_name: str
    file_path: str
    file_size: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None
    anonymous: bool = False
    display_name: Optional[str] = None
    photo_path: Optional[str] = None
    college: Optional[str] = None
    batch: Optional[str] = None
    download_count: int = 0
    created_at: Optional[datetime] = None
    # Current uploader profile, joined at read time (null when anonymous)
    uploader_display_name: Optional[str] = None
    uploader_photo_path: Optional[str] = None

    model_config = {"from_attributes": True}


class ResourceListResponse(BaseModel):
    resources: list[ResourceRead]


class ResourceCreated(BaseModel):
    id: int
    resource: ResourceRead


class DownloadResponse(BaseModel):
    ok: bool = True
    download_count: int
    file_path: str
