"""Learning path endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from nskai.auth import CurrentAuth
from nskai.middleware.error_handlers import raise_for_result

from .schemas import (
    AddCourseRequest,
    EnrollmentResponse,
    LearningPathCreate,
    LearningPathDetails,
    LearningPathResponse,
    PathCourseMapping,
    PathLessons,
    PublishedLearningPath,
    SearchCourseResult,
)
from .service import LearningPathService


router = APIRouter(prefix="/api/v1/learning-paths", tags=["learning-paths"])


@router.get("")
async def get_published_learning_paths(auth: CurrentAuth) -> list[PublishedLearningPath]:
    return raise_for_result(await LearningPathService(auth).get_published_learning_paths())


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_learning_path(data: LearningPathCreate, auth: CurrentAuth) -> LearningPathResponse:
    path = raise_for_result(
        await LearningPathService(auth).create_learning_path(data.title, data.description, data.price)
    )
    return LearningPathResponse.model_validate(path)


@router.get("/admin")
async def get_admin_learning_paths(auth: CurrentAuth) -> list[LearningPathResponse]:
    paths = raise_for_result(await LearningPathService(auth).get_admin_learning_paths())
    return [LearningPathResponse.model_validate(path) for path in paths]


@router.get("/course-search")
async def search_courses_for_path(
    auth: CurrentAuth, query: str = Query("", max_length=200)
) -> list[SearchCourseResult]:
    """Published courses an admin can add to a path."""
    courses = raise_for_result(await LearningPathService(auth).search_courses_for_path(query))
    return [
        SearchCourseResult(
            id=course.id,
            title=course.title,
            image_url=course.image_url,
            is_published=course.is_published,
            tutor_first_name=course.tutor.first_name if course.tutor else None,
            tutor_last_name=course.tutor.last_name if course.tutor else None,
        )
        for course in courses
    ]


@router.delete("/courses/{mapping_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_course_from_path(mapping_id: UUID, auth: CurrentAuth) -> None:
    raise_for_result(await LearningPathService(auth).remove_course_from_path(mapping_id))


@router.get("/{path_id}")
async def get_learning_path_details(path_id: UUID, auth: CurrentAuth) -> LearningPathDetails:
    return raise_for_result(await LearningPathService(auth).get_learning_path_details(path_id))


@router.post("/{path_id}/courses", status_code=status.HTTP_201_CREATED)
async def add_course_to_path(path_id: UUID, data: AddCourseRequest, auth: CurrentAuth) -> PathCourseMapping:
    mapping = raise_for_result(await LearningPathService(auth).add_course_to_path(path_id, data.course_id))
    return PathCourseMapping.model_validate(mapping)


@router.post("/{path_id}/publish")
async def publish_learning_path(path_id: UUID, auth: CurrentAuth) -> LearningPathResponse:
    path = raise_for_result(await LearningPathService(auth).publish_learning_path(path_id))
    return LearningPathResponse.model_validate(path)


@router.post("/{path_id}/unpublish")
async def unpublish_learning_path(path_id: UUID, auth: CurrentAuth) -> LearningPathResponse:
    path = raise_for_result(await LearningPathService(auth).unpublish_learning_path(path_id))
    return LearningPathResponse.model_validate(path)


@router.post("/{path_id}/enroll", status_code=status.HTTP_201_CREATED)
async def enroll_in_learning_path(path_id: UUID, auth: CurrentAuth) -> EnrollmentResponse:
    """Enroll the caller in a free learning path."""
    enrollment = raise_for_result(await LearningPathService(auth).enroll_in_learning_path(path_id))
    return EnrollmentResponse.model_validate(enrollment)


@router.get("/{path_id}/lessons")
async def get_path_lessons(path_id: UUID, auth: CurrentAuth) -> PathLessons:
    track = raise_for_result(await LearningPathService(auth).get_path_lessons(path_id))
    return PathLessons.model_validate(track, from_attributes=True)
