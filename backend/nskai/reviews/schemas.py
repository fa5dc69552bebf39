from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(None, max_length=2000)


class ReviewAuthor(BaseModel):
    id: UUID
    first_name: str | None = None
    last_name: str | None = None
    image_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ReviewResponse(BaseModel):
    id: UUID
    course_id: UUID
    rating: int
    comment: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CourseReview(ReviewResponse):
    user: ReviewAuthor


class PaginatedReviews(BaseModel):
    items: list[CourseReview]
    total_count: int
    total_pages: int
    current_page: int
    has_next_page: bool
    has_previous_page: bool


class CourseRatingStats(BaseModel):
    avg_rating: float
    total_reviews: int
    total_likes: int


class TutorRatingStats(BaseModel):
    avg_rating: float
    total_reviews: int


class LikeState(BaseModel):
    is_liked: bool
