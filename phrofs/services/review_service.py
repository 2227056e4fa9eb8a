"""
services/review_service.py
--------------------------
Structured reviews: creation, listing, summaries and view counting.

Anonymous reviews have their identity columns nulled when the row is
written, not when it is read, so no later query can reveal the author.
"""

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from phrofs.core.exceptions import NotFound
from phrofs.core.logging import get_logger
from phrofs.models.professor import Professor
from phrofs.models.review import Review
from phrofs.models.user import User
from phrofs.schemas.review import (
    Attainability,
    DeadlineLeniency,
    ReviewCreate,
    ReviewSummary,
    WorkloadRating,
    WouldTakeAgain,
)
from phrofs.services.professor_service import ProfessorService
from phrofs.services.rating_service import RatingAggregator, RatingSource, mean_rating

logger = get_logger(__name__)

_DIMENSIONS = {
    "would_take_again": WouldTakeAgain,
    "attainable_4": Attainability,
    "deadline_leniency": DeadlineLeniency,
    "workload_rating": WorkloadRating,
}


def _percentages(answers: list[str], choices) -> dict[str, float]:
    breakdown = {choice.value: 0.0 for choice in choices}
    if not answers:
        return breakdown
    for choice in choices:
        hits = sum(1 for a in answers if a == choice.value)
        breakdown[choice.value] = round(hits * 100 / len(answers), 1)
    return breakdown


class ReviewService:

    @staticmethod
    async def create_review(
        db: AsyncSession,
        prof_id: int,
        user: User,
        data: ReviewCreate,
    ) -> tuple[Review, Professor]:
        """
        Store a review; when it carries a rating, refresh the professor's
        aggregate from the review population in the same transaction.
        """
        await ProfessorService.get_professor(db, prof_id)

        review = Review(
            prof_id=prof_id,
            user_id=user.id,
            anonymous=data.anonymous,
            title=data.title,
            course_code=data.course_code,
            would_take_again=data.would_take_again.value if data.would_take_again else None,
            attainable_4=data.attainable_4.value if data.attainable_4 else None,
            deadline_leniency=data.deadline_leniency.value if data.deadline_leniency else None,
            workload_rating=data.workload_rating.value if data.workload_rating else None,
            tags=",".join(data.tags) or None,
            review_text=data.review_text.strip(),
            rating=data.rating,
        )
        if data.anonymous:
            review.display_name = None
            review.photo_path = None
            review.college = None
            review.batch_id = None
        else:
            review.display_name = user.display_name
            review.photo_path = user.photo_path
            review.college = user.college
            review.batch_id = user.batch_id

        db.add(review)
        await db.flush()

        if data.rating > 0:
            await RatingAggregator.recompute(db, prof_id, RatingSource.review)

        await db.commit()
        await db.refresh(review)
        prof = await db.get(Professor, prof_id)
        await db.refresh(prof)

        logger.info(
            "Review stored",
            review_id=review.id,
            prof_id=prof_id,
            rated=data.rating > 0,
            anonymous=data.anonymous,
        )
        return review, prof

    @staticmethod
    async def list_reviews(db: AsyncSession, prof_id: int) -> list[Review]:
        await ProfessorService.get_professor(db, prof_id)
        result = await db.execute(
            select(Review)
            .where(Review.prof_id == prof_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def summarize(db: AsyncSession, prof_id: int) -> ReviewSummary:
        """Percentage breakdown per categorical dimension plus the mean rating."""
        reviews = await ReviewService.list_reviews(db, prof_id)
        ratings = [r.rating for r in reviews if r.rating]

        breakdowns = {}
        for field, choices in _DIMENSIONS.items():
            answers = [getattr(r, field) for r in reviews if getattr(r, field)]
            breakdowns[field] = _percentages(answers, choices)

        return ReviewSummary(
            total_reviews=len(reviews),
            rated_reviews=len(ratings),
            average_rating=mean_rating(ratings),
            **breakdowns,
        )

    @staticmethod
    async def record_view(db: AsyncSession, review_id: int) -> int:
        """Atomically bump a review's view counter and return the new value."""
        result = await db.execute(
            update(Review)
            .where(Review.id == review_id)
            .values(view_count=func.coalesce(Review.view_count, 0) + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            raise NotFound("Review not found")
        await db.commit()
        view_count = await db.scalar(select(Review.view_count).where(Review.id == review_id))
        return int(view_count)
