"""Review, like and wishlist endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query

from nskai.auth import CurrentAuth
from nskai.courses.schemas import CourseListItem
from nskai.middleware.error_handlers import raise_for_result

from .schemas import (
    CourseRatingStats,
    LikeState,
    PaginatedReviews,
    ReviewCreate,
    ReviewResponse,
    TutorRatingStats,
)
from .service import ReviewService


router = APIRouter(prefix="/api/v1", tags=["reviews"])


@router.put("/courses/{course_id}/reviews/mine")
async def submit_review(course_id: UUID, data: ReviewCreate, auth: CurrentAuth) -> ReviewResponse:
    """Create or replace the caller's review of a purchased course."""
    review = raise_for_result(await ReviewService(auth).submit_review(course_id, data.rating, data.comment))
    return ReviewResponse.model_validate(review)


@router.get("/courses/{course_id}/reviews/mine")
async def get_user_review(course_id: UUID, auth: CurrentAuth) -> ReviewResponse | None:
    review = raise_for_result(await ReviewService(auth).get_user_review(course_id))
    return ReviewResponse.model_validate(review) if review else None


@router.get("/courses/{course_id}/reviews")
async def get_reviews_by_course(
    course_id: UUID,
    auth: CurrentAuth,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
) -> PaginatedReviews:
    page_data = raise_for_result(await ReviewService(auth).get_reviews_by_course(course_id, page, limit))
    return PaginatedReviews.model_validate(page_data, from_attributes=True)


@router.get("/courses/{course_id}/rating")
async def get_course_rating_stats(course_id: UUID, auth: CurrentAuth) -> CourseRatingStats:
    return raise_for_result(await ReviewService(auth).get_course_rating_stats(course_id))


@router.get("/tutors/{tutor_id}/rating")
async def get_tutor_rating_stats(tutor_id: UUID, auth: CurrentAuth) -> TutorRatingStats:
    return raise_for_result(await ReviewService(auth).get_tutor_rating_stats(tutor_id))


@router.post("/courses/{course_id}/like")
async def toggle_course_like(course_id: UUID, auth: CurrentAuth) -> LikeState:
    return LikeState(is_liked=raise_for_result(await ReviewService(auth).toggle_course_like(course_id)))


@router.get("/courses/{course_id}/like")
async def is_course_liked(course_id: UUID, auth: CurrentAuth) -> LikeState:
    return LikeState(is_liked=raise_for_result(await ReviewService(auth).is_course_liked(course_id)))


@router.get("/wishlist")
async def get_wishlist_courses(auth: CurrentAuth) -> list[CourseListItem]:
    """Published courses the caller has liked."""
    courses = raise_for_result(await ReviewService(auth).get_wishlist_courses())
    return [CourseListItem.model_validate(course) for course in courses]
