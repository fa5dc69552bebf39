"""Pydantic schemas for courses and their curriculum."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from nskai.courses.models import CourseStatus, LessonType


class TutorSummary(BaseModel):
    """Tutor fields joined onto course cards."""

    id: UUID
    first_name: str | None = None
    last_name: str | None = None
    image_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class CourseResponse(BaseModel):
    id: UUID
    title: str
    description: str | None = None
    price: int | None = None
    is_published: bool
    status: CourseStatus
    image_url: str | None = None
    tutor_id: UUID | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CourseListItem(CourseResponse):
    tutor: TutorSummary | None = None


class PaginatedCourses(BaseModel):
    """One page of course cards plus page metadata."""

    items: list[CourseListItem]
    total_count: int
    total_pages: int
    current_page: int
    has_next_page: bool
    has_previous_page: bool


class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    price: int | None = Field(None, ge=0, description="Price in kobo")
    image_url: str | None = None

    model_config = ConfigDict(extra="forbid")


class CourseUpdate(BaseModel):
    """Partial course update; only fields that are set are written."""

    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    price: int | None = Field(None, ge=0)
    image_url: str | None = None

    model_config = ConfigDict(extra="forbid")


class MuxDataResponse(BaseModel):
    asset_id: str
    playback_id: str | None = None

    model_config = ConfigDict(from_attributes=True)


class LessonResponse(BaseModel):
    id: UUID
    chapter_id: UUID
    title: str
    description: str | None = None
    video_url: str | None = None
    position: int
    is_free_preview: bool
    notes: str | None = None
    type: LessonType

    model_config = ConfigDict(from_attributes=True)


class ChapterResponse(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    position: int
    lessons: list[LessonResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class CourseDetail(CourseListItem):
    """Course with its ordered chapters and lessons."""

    chapters: list[ChapterResponse] = Field(default_factory=list)


class ChapterCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)


class ChapterUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    position: int | None = Field(None, ge=1)

    model_config = ConfigDict(extra="forbid")


class LessonCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    type: LessonType = LessonType.VIDEO


class LessonUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    video_url: str | None = None
    position: int | None = Field(None, ge=1)
    is_free_preview: bool | None = None
    notes: str | None = None
    type: LessonType | None = None

    model_config = ConfigDict(extra="forbid")


class ReorderRequest(BaseModel):
    """Sibling ids in their new order; positions become 1..n."""

    ids: list[UUID] = Field(..., min_length=1)


class OutlineLesson(BaseModel):
    id: UUID
    chapter_id: UUID
    title: str
    position: int
    is_free_preview: bool
    type: LessonType

    model_config = ConfigDict(from_attributes=True)


class OutlineChapter(BaseModel):
    id: UUID
    title: str
    position: int
    lessons: list[OutlineLesson]

    model_config = ConfigDict(from_attributes=True)


class CourseOutline(BaseModel):
    id: UUID
    title: str
    chapters: list[OutlineChapter]

    model_config = ConfigDict(from_attributes=True)


class LessonViewerResponse(BaseModel):
    """A lesson the caller may watch, with neighbours for navigation."""

    lesson: LessonResponse
    chapter_title: str
    mux_data: MuxDataResponse | None = None
    next_lesson_id: UUID | None = None
    prev_lesson_id: UUID | None = None
    is_owned: bool


class TutorPublicProfile(BaseModel):
    id: UUID
    first_name: str | None = None
    last_name: str | None = None
    image_url: str | None = None
    bio: str | None = None
    expertise: str | None = None
    total_students: int
    courses: list[CourseListItem]
