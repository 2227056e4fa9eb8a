"""
schemas/review.py
-----------------
Pydantic models for structured professor reviews.

The categorical fields are closed enums; anything else is rejected with a
400 before the request reaches the service layer.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class WouldTakeAgain(str, Enum):
    yes = "Yes"
    no = "No"


class Attainability(str, Enum):
    easy = "Easy"
    moderate = "Moderate"
    hard = "Hard"


class DeadlineLeniency(str, Enum):
    yes = "Yes"
    no = "No"


class WorkloadRating(str, Enum):
    low = "Low"
    medium = "Medium"
    high = "High"


class ReviewCreate(BaseModel):
    course_code: str = Field(..., min_length=1, max_length=32)
    title: Optional[str] = Field(None, max_length=255)
    would_take_again: Optional[WouldTakeAgain] = None
    attainable_4: Optional[Attainability] = None
    deadline_leniency: Optional[DeadlineLeniency] = None
    workload_rating: Optional[WorkloadRating] = None
    tags: list[str] = Field(default_factory=list, max_length=20)
    review_text: str = Field("", max_length=10000)
    rating: int = Field(0, ge=0, le=5, description="0 means no rating")
    anonymous: bool = False

    @field_validator("course_code")
    @classmethod
    def normalise_course_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("course_code is required")
        return v

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: list[str]) -> list[str]:
        return [t.strip() for t in v if t and t.strip()]


class ReviewRead(BaseModel):
    id: int
    prof_id: int
    user_id: Optional[int] = None
    display_name: Optional[str] = None
    anonymous: bool = False
    title: Optional[str] = None
    course_code: Optional[str] = None
    would_take_again: Optional[str] = None
    attainable_4: Optional[str] = None
    deadline_leniency: Optional[str] = None
    workload_rating: Optional[str] = None
    tags: Optional[str] = None
    review_text: Optional[str] = None
    rating: int = 0
    college: Optional[str] = None
    batch_id: Optional[str] = None
    photo_path: Optional[str] = None
    view_count: int = 0
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("rating", "view_count", "anonymous", mode="before")
    @classmethod
    def null_as_zero(cls, v):
        return 0 if v is None else v


class ReviewCreated(BaseModel):
    review: ReviewRead
    rating_avg: float
    rating_count: int


class ReviewListResponse(BaseModel):
    reviews: list[ReviewRead]


class ReviewSummary(BaseModel):
    total_reviews: int
    rated_reviews: int
    average_rating: float
    would_take_again: dict[str, float]
    attainable_4: dict[str, float]
    deadline_leniency: dict[str, float]
    workload_rating: dict[str, float]


class ViewCountResponse(BaseModel):
    ok: bool = True
    view_count: int
