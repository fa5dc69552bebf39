"""Course catalog, authoring and lesson player endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from nskai.auth import CurrentAuth
from nskai.middleware.error_handlers import raise_for_result

from .schemas import (
    ChapterCreate,
    ChapterResponse,
    ChapterUpdate,
    CourseCreate,
    CourseDetail,
    CourseListItem,
    CourseOutline,
    CourseResponse,
    CourseUpdate,
    LessonCreate,
    LessonResponse,
    LessonUpdate,
    LessonViewerResponse,
    PaginatedCourses,
    ReorderRequest,
    TutorPublicProfile,
)
from .services import CourseManagementService, CourseQueryService, CurriculumService, LessonViewerService


router = APIRouter(prefix="/api/v1/courses", tags=["courses"])


@router.get("")
async def get_marketplace_courses(
    auth: CurrentAuth,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str | None = Query(None, max_length=200),
) -> PaginatedCourses:
    """Published courses for the public marketplace."""
    page_data = raise_for_result(await CourseQueryService(auth).get_marketplace_courses(page, limit, search))
    return PaginatedCourses.model_validate(page_data, from_attributes=True)


@router.get("/all")
async def get_all_courses(
    auth: CurrentAuth,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str | None = Query(None, max_length=200),
    published_only: bool = Query(False),
) -> PaginatedCourses:
    """Every course on the platform (org admins and tutors)."""
    page_data = raise_for_result(
        await CourseQueryService(auth).get_all_courses(page, limit, search, published_only)
    )
    return PaginatedCourses.model_validate(page_data, from_attributes=True)


@router.get("/mine")
async def get_tutor_courses(
    auth: CurrentAuth,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str | None = Query(None, max_length=200),
) -> PaginatedCourses:
    """Courses owned by the calling tutor."""
    page_data = raise_for_result(await CourseQueryService(auth).get_tutor_courses(page, limit, search))
    return PaginatedCourses.model_validate(page_data, from_attributes=True)


@router.get("/recommended")
async def get_recommended_courses(auth: CurrentAuth, limit: int = Query(4, ge=1, le=20)) -> list[CourseListItem]:
    courses = raise_for_result(await CourseQueryService(auth).get_recommended_courses(limit))
    return [CourseListItem.model_validate(course) for course in courses]


@router.get("/tutors/{tutor_id}")
async def get_tutor_public_profile(tutor_id: UUID, auth: CurrentAuth) -> TutorPublicProfile:
    profile = raise_for_result(await CourseQueryService(auth).get_tutor_public_profile(tutor_id))
    return TutorPublicProfile.model_validate(profile, from_attributes=True)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_course(data: CourseCreate, auth: CurrentAuth) -> CourseResponse:
    """Create a draft course for the calling tutor."""
    course = raise_for_result(await CourseManagementService(auth).create_course(data))
    return CourseResponse.model_validate(course)


@router.get("/{course_id}")
async def get_course(course_id: UUID, auth: CurrentAuth) -> CourseDetail:
    course = raise_for_result(await CourseQueryService(auth).get_course_by_id(course_id))
    return CourseDetail.model_validate(course)


@router.patch("/{course_id}")
async def update_course(course_id: UUID, data: CourseUpdate, auth: CurrentAuth) -> CourseResponse:
    course = raise_for_result(await CourseManagementService(auth).update_course(course_id, data))
    return CourseResponse.model_validate(course)


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(course_id: UUID, auth: CurrentAuth) -> None:
    raise_for_result(await CourseManagementService(auth).delete_course(course_id))


@router.get("/{course_id}/access")
async def verify_course_access(course_id: UUID, auth: CurrentAuth) -> bool:
    """Whether the caller bought the course directly or through a learning path."""
    return raise_for_result(await CourseQueryService(auth).verify_course_access(course_id))


# Curriculum


@router.post("/{course_id}/chapters", status_code=status.HTTP_201_CREATED)
async def create_chapter(course_id: UUID, data: ChapterCreate, auth: CurrentAuth) -> ChapterResponse:
    chapter = raise_for_result(await CurriculumService(auth).create_chapter(course_id, data.title))
    return ChapterResponse(id=chapter.id, course_id=chapter.course_id, title=chapter.title, position=chapter.position)


@router.put("/{course_id}/chapters/order", status_code=status.HTTP_204_NO_CONTENT)
async def reorder_chapters(course_id: UUID, data: ReorderRequest, auth: CurrentAuth) -> None:
    raise_for_result(await CurriculumService(auth).reorder_chapters(course_id, data.ids))


@router.patch("/chapters/{chapter_id}")
async def update_chapter(chapter_id: UUID, data: ChapterUpdate, auth: CurrentAuth) -> ChapterResponse:
    chapter = raise_for_result(await CurriculumService(auth).update_chapter(chapter_id, data))
    return ChapterResponse(id=chapter.id, course_id=chapter.course_id, title=chapter.title, position=chapter.position)


@router.delete("/chapters/{chapter_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chapter(chapter_id: UUID, auth: CurrentAuth) -> None:
    raise_for_result(await CurriculumService(auth).delete_chapter(chapter_id))


@router.post("/chapters/{chapter_id}/lessons", status_code=status.HTTP_201_CREATED)
async def create_lesson(chapter_id: UUID, data: LessonCreate, auth: CurrentAuth) -> LessonResponse:
    lesson = raise_for_result(await CurriculumService(auth).create_lesson(chapter_id, data))
    return LessonResponse.model_validate(lesson)


@router.put("/chapters/{chapter_id}/lessons/order", status_code=status.HTTP_204_NO_CONTENT)
async def reorder_lessons(chapter_id: UUID, data: ReorderRequest, auth: CurrentAuth) -> None:
    raise_for_result(await CurriculumService(auth).reorder_lessons(chapter_id, data.ids))


@router.patch("/lessons/{lesson_id}")
async def update_lesson(lesson_id: UUID, data: LessonUpdate, auth: CurrentAuth) -> LessonResponse:
    lesson = raise_for_result(await CurriculumService(auth).update_lesson(lesson_id, data))
    return LessonResponse.model_validate(lesson)


@router.delete("/lessons/{lesson_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lesson(lesson_id: UUID, auth: CurrentAuth) -> None:
    raise_for_result(await CurriculumService(auth).delete_lesson(lesson_id))


# Lesson player


@router.get("/{course_id}/outline")
async def get_course_outline(course_id: UUID, auth: CurrentAuth) -> CourseOutline:
    course = raise_for_result(await LessonViewerService(auth).get_course_outline(course_id))
    return CourseOutline.model_validate(course)


@router.get("/{course_id}/lessons/{lesson_id}")
async def get_lesson_with_access(course_id: UUID, lesson_id: UUID, auth: CurrentAuth) -> LessonViewerResponse:
    """Lesson content for buyers, free previews and the course owner."""
    viewer = raise_for_result(await LessonViewerService(auth).get_lesson_with_access(course_id, lesson_id))
    return LessonViewerResponse.model_validate(viewer, from_attributes=True)
