"""
schemas/professor.py
--------------------
Pydantic models for professors and star-rated comments.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from phrofs.schemas.review import ReviewRead
from phrofs.schemas.subject import NoteRead


class ProfessorRead(BaseModel):
    id: int
    name: str
    subject_id: Optional[int] = None
    photo_path: Optional[str] = None
    workload: Optional[str] = None
    rating_avg: float = 0
    rating_count: int = 0
    rating_source: Optional[str] = None

    model_config = {"from_attributes": True}

    # Stores created before the aggregate existed leave these NULL until
    # the first rating
    @field_validator("rating_avg", "rating_count", mode="before")
    @classmethod
    def null_as_zero(cls, v):
        return 0 if v is None else v


class ProfessorSearchHit(BaseModel):
    id: int
    name: str
    photo_path: Optional[str] = None
    subject_code: Optional[str] = None
    subject_name: Optional[str] = None


class ProfessorDetail(ProfessorRead):
    teaching_style: Optional[str] = None
    tips: Optional[str] = None
    plus_points: Optional[str] = None
    subject_code: str = "N/A"
    subject_name: str = "N/A"


class ProfessorListResponse(BaseModel):
    professors: list[ProfessorRead]


class ProfessorSearchResponse(BaseModel):
    professors: list[ProfessorSearchHit]


class CommentRead(BaseModel):
    id: int
    prof_id: int
    display_name: Optional[str] = None
    anonymous: bool = False
    stars: int
    comment: Optional[str] = None
    flagged: bool = False
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("stars", "anonymous", mode="before")
    @classmethod
    def null_as_zero(cls, v):
        return 0 if v is None else v


class ProfessorDetailResponse(BaseModel):
    prof: ProfessorDetail
    comments: list[CommentRead]
    reviews: list[ReviewRead]
    notes: list[NoteRead]


class RateRequest(BaseModel):
    # Range is checked by RatingAggregator so the error is InvalidRating
    stars: int
    comment: str = Field("", max_length=5000)
    anonymous: bool = False


class RateResponse(BaseModel):
    ok: bool = True
    avg: float
    count: int
