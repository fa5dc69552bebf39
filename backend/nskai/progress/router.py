"""Progress tracking API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from nskai.auth import CurrentAuth
from nskai.middleware.error_handlers import raise_for_result

from .schemas import (
    ContinueLearningCourse,
    CourseCompletion,
    CourseProgress,
    CourseProgressDetails,
    LastAccessedLesson,
)
from .service import ProgressService


router = APIRouter(prefix="/api/v1/progress", tags=["progress"])


@router.post("/lessons/{lesson_id}/complete", status_code=status.HTTP_204_NO_CONTENT)
async def mark_lesson_complete(lesson_id: UUID, auth: CurrentAuth) -> None:
    """Mark a lesson as completed for the caller."""
    raise_for_result(await ProgressService(auth).mark_lesson_complete(lesson_id))


@router.post("/lessons/{lesson_id}/access", status_code=status.HTTP_204_NO_CONTENT)
async def update_last_accessed(lesson_id: UUID, auth: CurrentAuth) -> None:
    """Record that the caller opened a lesson."""
    raise_for_result(await ProgressService(auth).update_last_accessed(lesson_id))


@router.get("/lessons/{lesson_id}/completed")
async def check_lesson_completion(lesson_id: UUID, auth: CurrentAuth) -> bool:
    return raise_for_result(await ProgressService(auth).check_lesson_completion(lesson_id))


@router.get("/courses")
async def get_course_completion(auth: CurrentAuth) -> list[CourseCompletion]:
    """Progress for every purchased course."""
    return raise_for_result(await ProgressService(auth).get_course_completion())


@router.get("/courses/{course_id}")
async def get_user_progress(course_id: UUID, auth: CurrentAuth) -> CourseProgress:
    return raise_for_result(await ProgressService(auth).get_user_progress(course_id))


@router.get("/courses/{course_id}/details")
async def get_course_progress_details(course_id: UUID, auth: CurrentAuth) -> CourseProgressDetails:
    return raise_for_result(await ProgressService(auth).get_course_progress_details(course_id))


@router.get("/courses/{course_id}/last-accessed")
async def get_last_accessed_lesson(course_id: UUID, auth: CurrentAuth) -> LastAccessedLesson | None:
    progress = raise_for_result(await ProgressService(auth).get_last_accessed_lesson(course_id))
    return LastAccessedLesson.model_validate(progress) if progress else None


@router.get("/continue-learning")
async def get_continue_learning_courses(
    auth: CurrentAuth,
    limit: int = Query(4, ge=1, le=20),
) -> list[ContinueLearningCourse]:
    return raise_for_result(await ProgressService(auth).get_continue_learning_courses(limit))
