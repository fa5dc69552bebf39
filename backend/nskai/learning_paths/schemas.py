"""Pydantic schemas for learning paths."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from nskai.courses.schemas import ChapterResponse


class LearningPathCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    price: int | None = Field(None, ge=0, description="Bundle price in kobo")


class LearningPathResponse(BaseModel):
    id: UUID
    title: str
    description: str | None = None
    price: int | None = None
    is_published: bool
    image_url: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PublishedLearningPath(BaseModel):
    id: UUID
    title: str
    description: str | None = None
    price: int | None = None
    image_url: str | None = None
    created_at: datetime
    course_count: int


class AddCourseRequest(BaseModel):
    course_id: UUID


class PathCourseMapping(BaseModel):
    id: UUID
    learning_path_id: UUID
    course_id: UUID
    position: int

    model_config = ConfigDict(from_attributes=True)


class AttachedCourse(BaseModel):
    mapping_id: UUID
    position: int
    course_id: UUID
    title: str
    is_published: bool
    image_url: str | None = None
    price: int | None = None
    tutor_first_name: str | None = None
    tutor_last_name: str | None = None


class LearningPathDetails(LearningPathResponse):
    attached_courses: list[AttachedCourse]
    total_price: int


class SearchCourseResult(BaseModel):
    id: UUID
    title: str
    image_url: str | None = None
    is_published: bool
    tutor_first_name: str | None = None
    tutor_last_name: str | None = None


class EnrollmentResponse(BaseModel):
    id: UUID
    learning_path_id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TrackCourse(BaseModel):
    id: UUID
    title: str
    chapters: list[ChapterResponse]

    model_config = ConfigDict(from_attributes=True)


class PathLessons(BaseModel):
    path: LearningPathResponse
    courses: list[TrackCourse]

    model_config = ConfigDict(from_attributes=True)
