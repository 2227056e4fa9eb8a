"""
schemas/subject.py
------------------
Pydantic models for subjects and legacy notes.
"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

SUBJECT_CODE_PATTERN = re.compile(r"^[A-Z]{7}$")


def validate_subject_code(raw: Optional[str]) -> str:
    code = (raw or "").strip()
    if not SUBJECT_CODE_PATTERN.fullmatch(code):
        raise ValueError("Subject code must be exactly 7 uppercase letters")
    return code


class SubjectCreate(BaseModel):
    code: str = Field(..., examples=["GEMATMW"])
    name: str = Field(..., min_length=1, max_length=255, examples=["Mathematics in the Modern World"])

    @field_validator("code", mode="before")
    @classmethod
    def check_code(cls, v) -> str:
        if v is not None and not isinstance(v, str):
            raise ValueError("Subject code must be a string")
        return validate_subject_code(v)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Subject name is required")
        return v


class SubjectRead(BaseModel):
    id: int
    code: str
    name: str
    difficulty_avg: Optional[float] = None
    is_user_submitted: bool = False

    model_config = {"from_attributes": True}


class SubjectListResponse(BaseModel):
    subjects: list[SubjectRead]


class NoteRead(BaseModel):
    id: int
    prof_id: Optional[int] = None
    subject_id: Optional[int] = None
    original_name: Optional[str] = None
    path: Optional[str] = None
    description: Optional[str] = None
    display_name: Optional[str] = None
    anonymous: bool = False
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SubjectDetailResponse(BaseModel):
    subject: SubjectRead
    notes: list[NoteRead]
