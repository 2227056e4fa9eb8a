"""
services/rating_service.py
--------------------------
Derived professor rating (rating_avg / rating_count).

Comments and reviews are two independent rating sources. Each has its own
recompute path over its own rows; whichever source wrote last owns the
visible aggregate, and Professor.rating_source records which one that was.
No blending of the two populations is attempted.

Consistency rules:
  - recompute() runs inside the caller's transaction, right after the
    triggering row is flushed, and writes avg, count and source in a single
    UPDATE so the pair can never be torn.
  - The caller commits afterwards, so the acknowledged response always
    reflects the post-aggregation state.
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from phrofs.core.exceptions import InvalidRating
from phrofs.core.logging import get_logger
from phrofs.models.professor import Comment, Professor
from phrofs.models.review import Review

logger = get_logger(__name__)

MIN_STARS = 1
MAX_STARS = 5
_TWO_PLACES = Decimal("0.01")


class RatingSource(str, Enum):
    comment = "comment"
    review = "review"


def mean_rating(values: Iterable[int]) -> float:
    """Arithmetic mean rounded half-up to 2 decimals; 0 for no values."""
    values = list(values)
    if not values:
        return 0.0
    mean = Decimal(sum(values)) / Decimal(len(values))
    return float(mean.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


class RatingAggregator:

    @staticmethod
    def validate_stars(stars) -> int:
        """Reject anything that is not an integer star count in [1, 5]."""
        if isinstance(stars, bool) or not isinstance(stars, int):
            raise InvalidRating()
        if not MIN_STARS <= stars <= MAX_STARS:
            raise InvalidRating()
        return stars

    @staticmethod
    async def recompute(
        db: AsyncSession,
        prof_id: int,
        source: RatingSource,
    ) -> tuple[float, int]:
        """
        Re-derive a professor's aggregate from the given source's rows.

        Reviews with rating 0 are unrated and do not contribute, nor do
        legacy comments whose stars column is NULL.

        Returns:
            (rating_avg, rating_count) as written.
        """
        if source is RatingSource.comment:
            stmt = select(Comment.stars).where(
                Comment.prof_id == prof_id, Comment.stars.is_not(None)
            )
        else:
            stmt = select(Review.rating).where(Review.prof_id == prof_id, Review.rating > 0)

        values = list((await db.execute(stmt)).scalars().all())
        avg = mean_rating(values)
        count = len(values)

        await db.execute(
            update(Professor)
            .where(Professor.id == prof_id)
            .values(rating_avg=avg, rating_count=count, rating_source=source.value)
        )
        logger.info(
            "Rating recomputed",
            prof_id=prof_id,
            source=source.value,
            rating_avg=avg,
            rating_count=count,
        )
        return avg, count
