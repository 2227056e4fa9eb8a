"""
api/routes/professors.py
------------------------
Professor, rating and review endpoints.

GET  /professors/search?q=            — Search by professor or subject
GET  /professors/{id}                 — Details with comments, reviews, notes
POST /professors/{id}/rate            — Star rating + comment (auth optional)
POST /professors/{id}/reviews         — Structured review (auth required)
GET  /professors/{id}/reviews         — Reviews, newest first
GET  /professors/{id}/review-summary  — Percentages per dimension + average
POST /reviews/{id}/view               — Count a review view
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from phrofs.db.registry import TenantResolution
from phrofs.db.session import get_db, get_tenant
from phrofs.dependencies import get_current_user, get_optional_user
from phrofs.models.user import User
from phrofs.schemas.professor import (
    CommentRead,
    ProfessorDetailResponse,
    ProfessorSearchResponse,
    RateRequest,
    RateResponse,
)
from phrofs.schemas.review import (
    ReviewCreate,
    ReviewCreated,
    ReviewListResponse,
    ReviewRead,
    ReviewSummary,
    ViewCountResponse,
)
from phrofs.schemas.subject import NoteRead
from phrofs.services.activity_stream import ActivityBroadcaster, get_broadcaster
from phrofs.services.professor_service import ProfessorService
from phrofs.services.review_service import ReviewService

router = APIRouter(tags=["Professors"])


@router.get(
    "/professors/search",
    response_model=ProfessorSearchResponse,
    summary="Search professors",
)
async def search_professors(
    db: Annotated[AsyncSession, Depends(get_db)],
    q: Optional[str] = Query(None, max_length=100),
) -> ProfessorSearchResponse:
    return ProfessorSearchResponse(professors=await ProfessorService.search(db, q))


@router.get(
    "/professors/{prof_id}",
    response_model=ProfessorDetailResponse,
    summary="Professor details",
)
async def get_professor(
    prof_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ProfessorDetailResponse:
    prof, comments, reviews, notes = await ProfessorService.get_detail(db, prof_id)
    return ProfessorDetailResponse(
        prof=prof,
        comments=[CommentRead.model_validate(c) for c in comments],
        reviews=[ReviewRead.model_validate(r) for r in reviews],
        notes=[NoteRead.model_validate(n) for n in notes],
    )


@router.post(
    "/professors/{prof_id}/rate",
    response_model=RateResponse,
    summary="Rate a professor (1-5 stars) with a comment",
)
async def rate_professor(
    prof_id: int,
    body: RateRequest,
    tenant: Annotated[TenantResolution, Depends(get_tenant)],
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Optional[User], Depends(get_optional_user)],
    broadcaster: Annotated[ActivityBroadcaster, Depends(get_broadcaster)],
) -> RateResponse:
    """
    The response carries the professor's aggregate after this rating was
    counted.
    """
    comment, avg, count = await ProfessorService.rate(db, prof_id, body, user)
    broadcaster.publish(
        "comment.created",
        tenant.tenant,
        {"id": comment.id, "prof_id": prof_id, "stars": comment.stars},
    )
    return RateResponse(avg=avg, count=count)


@router.post(
    "/professors/{prof_id}/reviews",
    response_model=ReviewCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a structured review",
)
async def create_review(
    prof_id: int,
    body: ReviewCreate,
    tenant: Annotated[TenantResolution, Depends(get_tenant)],
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    broadcaster: Annotated[ActivityBroadcaster, Depends(get_broadcaster)],
) -> ReviewCreated:
    review, prof = await ReviewService.create_review(db, prof_id, current_user, body)
    broadcaster.publish(
        "review.created",
        tenant.tenant,
        {"id": review.id, "prof_id": prof_id, "rating": review.rating},
    )
    return ReviewCreated(
        review=ReviewRead.model_validate(review),
        rating_avg=prof.rating_avg,
        rating_count=prof.rating_count,
    )


@router.get(
    "/professors/{prof_id}/reviews",
    response_model=ReviewListResponse,
    summary="List reviews for a professor",
)
async def list_reviews(
    prof_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ReviewListResponse:
    reviews = await ReviewService.list_reviews(db, prof_id)
    return ReviewListResponse(reviews=[ReviewRead.model_validate(r) for r in reviews])


@router.get(
    "/professors/{prof_id}/review-summary",
    response_model=ReviewSummary,
    summary="Review breakdown for a professor",
)
async def review_summary(
    prof_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ReviewSummary:
    return await ReviewService.summarize(db, prof_id)


@router.post(
    "/reviews/{review_id}/view",
    response_model=ViewCountResponse,
    summary="Count a review view",
)
async def record_review_view(
    review_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ViewCountResponse:
    return ViewCountResponse(view_count=await ReviewService.record_view(db, review_id))
