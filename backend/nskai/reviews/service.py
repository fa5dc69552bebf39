"""Course reviews, rating aggregates, likes and the wishlist."""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from nskai.auth.context import AuthContext
from nskai.core.result import ActionError, Result
from nskai.core.utils import round_half_up
from nskai.courses.models import Course
from nskai.database.pagination import Paginator
from nskai.database.upsert import insert_for
from nskai.payments.models import Purchase
from nskai.reviews.models import CourseLike, Review


logger = logging.getLogger(__name__)


def one_decimal(value: Any) -> float:
    """Average rating rounded half-up to one decimal; 0 when there are no ratings."""
    if value is None:
        return 0.0
    return round_half_up(float(value) * 10) / 10


class ReviewService:
    """Service for learner feedback on courses."""

    def __init__(self, auth: AuthContext) -> None:
        self.auth = auth
        self.session = auth.session

    async def submit_review(self, course_id: UUID, rating: int, comment: str | None = None) -> Result[Review]:
        """Create or replace the caller's review; only buyers may review."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        user = user_result.value

        purchase = await self.session.scalar(
            select(Purchase.id).where(Purchase.course_id == course_id, Purchase.user_id == user.id).limit(1)
        )
        if purchase is None:
            return Result.failure(ActionError.forbidden("You must be enrolled to leave a review."))

        now = datetime.now(UTC)
        stmt = insert_for(self.session, Review).values(
            user_id=user.id, course_id=course_id, rating=rating, comment=comment, created_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Review.user_id, Review.course_id],
            set_={"rating": rating, "comment": comment, "created_at": now},
        )
        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Error submitting review", extra={"course_id": str(course_id)})
            return Result.failure(ActionError.internal("Failed to submit review."))

        review = await self.session.scalar(
            select(Review)
            .where(Review.user_id == user.id, Review.course_id == course_id)
            .execution_options(populate_existing=True)
        )
        return Result.success(review)

    async def get_reviews_by_course(self, course_id: UUID, page: int = 1, limit: int = 10) -> Result[dict[str, Any]]:
        query = (
            select(Review)
            .where(Review.course_id == course_id)
            .options(selectinload(Review.user))
            .order_by(Review.created_at.desc())
        )
        paginator = Paginator(page=page, limit=limit)
        items, total = await paginator.paginate(self.session, query)
        return Result.success({"items": items, **paginator.page_info(total)})

    async def get_course_rating_stats(self, course_id: UUID) -> Result[dict[str, Any]]:
        average, total_reviews = (
            await self.session.execute(
                select(func.avg(Review.rating), func.count(Review.id)).where(Review.course_id == course_id)
            )
        ).one()
        total_likes = await self.session.scalar(
            select(func.count(CourseLike.id)).where(CourseLike.course_id == course_id)
        )
        return Result.success(
            {"avg_rating": one_decimal(average), "total_reviews": total_reviews or 0, "total_likes": total_likes or 0}
        )

    async def get_tutor_rating_stats(self, tutor_id: UUID) -> Result[dict[str, Any]]:
        """Rating average across every course the tutor owns."""
        average, total_reviews = (
            await self.session.execute(
                select(func.avg(Review.rating), func.count(Review.id))
                .join(Course, Review.course_id == Course.id)
                .where(Course.tutor_id == tutor_id)
            )
        ).one()
        return Result.success({"avg_rating": one_decimal(average), "total_reviews": total_reviews or 0})

    async def toggle_course_like(self, course_id: UUID) -> Result[bool]:
        """Like or unlike a course; returns the new liked state."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        user = user_result.value

        existing = await self.session.scalar(
            select(CourseLike).where(CourseLike.course_id == course_id, CourseLike.user_id == user.id)
        )
        try:
            if existing is not None:
                await self.session.delete(existing)
            else:
                self.session.add(CourseLike(course_id=course_id, user_id=user.id))
            await self.session.commit()
        except IntegrityError:
            # A concurrent toggle already inserted the like
            await self.session.rollback()
            return Result.success(True)
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Error toggling like", extra={"course_id": str(course_id)})
            return Result.failure(ActionError.internal("Failed to toggle like."))

        return Result.success(existing is None)

    async def get_user_review(self, course_id: UUID) -> Result[Review | None]:
        user = await self.auth.get_user()
        if user is None:
            return Result.success(None)

        review = await self.session.scalar(
            select(Review).where(Review.course_id == course_id, Review.user_id == user.id)
        )
        return Result.success(review)

    async def is_course_liked(self, course_id: UUID) -> Result[bool]:
        user = await self.auth.get_user()
        if user is None:
            return Result.success(False)

        like = await self.session.scalar(
            select(CourseLike.id).where(CourseLike.course_id == course_id, CourseLike.user_id == user.id)
        )
        return Result.success(like is not None)

    async def get_wishlist_courses(self) -> Result[list[Course]]:
        """Published courses the caller liked, most recently liked first."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)

        courses = await self.session.scalars(
            select(Course)
            .join(CourseLike, CourseLike.course_id == Course.id)
            .where(CourseLike.user_id == user_result.value.id, Course.is_published.is_(True))
            .options(selectinload(Course.tutor))
            .order_by(CourseLike.created_at.desc())
        )
        return Result.success(list(courses.all()))
