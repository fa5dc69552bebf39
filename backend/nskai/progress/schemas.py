"""Pydantic schemas for progress tracking."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from nskai.courses.models import LessonType


class CourseProgress(BaseModel):
    completed_lessons: int = Field(..., ge=0)
    total_lessons: int = Field(..., ge=0)
    percentage: int = Field(..., ge=0, le=100, description="Rounded completion percentage")


class CourseCompletion(CourseProgress):
    course_id: UUID
    course_title: str


class LastAccessedLesson(BaseModel):
    lesson_id: UUID
    last_accessed_at: datetime
    is_completed: bool

    model_config = ConfigDict(from_attributes=True)


class LessonProgressDetail(BaseModel):
    id: UUID
    title: str
    type: LessonType
    position: int
    is_completed: bool
    last_accessed_at: datetime | None = None


class ChapterProgressDetail(BaseModel):
    id: UUID
    title: str
    position: int
    lessons: list[LessonProgressDetail]


class CourseProgressDetails(BaseModel):
    id: UUID
    title: str
    chapters: list[ChapterProgressDetail]


class ContinueLearningCourse(BaseModel):
    course_id: UUID
    course_title: str
    course_image_url: str | None = None
    lesson_id: UUID
    lesson_title: str
    last_accessed_at: datetime | None = None
    progress_percentage: int
