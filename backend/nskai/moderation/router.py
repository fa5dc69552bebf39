"""Admin moderation endpoints for tutors and course review."""

from uuid import UUID

from fastapi import APIRouter

from nskai.auth import CurrentAuth
from nskai.courses.schemas import CourseListItem, CourseResponse
from nskai.middleware.error_handlers import raise_for_result
from nskai.users.schemas import UserResponse

from .schemas import CourseRejection
from .service import ModerationService


router = APIRouter(prefix="/api/v1/moderation", tags=["moderation"])


@router.get("/tutors")
async def get_tutors(auth: CurrentAuth) -> list[UserResponse]:
    tutors = raise_for_result(await ModerationService(auth).get_tutors())
    return [UserResponse.model_validate(tutor) for tutor in tutors]


@router.get("/learners")
async def get_learners(auth: CurrentAuth) -> list[UserResponse]:
    learners = raise_for_result(await ModerationService(auth).get_learners())
    return [UserResponse.model_validate(learner) for learner in learners]


@router.post("/tutors/{tutor_id}/approve")
async def approve_tutor(tutor_id: UUID, auth: CurrentAuth) -> UserResponse:
    """Activate a pending tutor and email them."""
    return UserResponse.model_validate(raise_for_result(await ModerationService(auth).approve_tutor(tutor_id)))


@router.post("/tutors/{tutor_id}/reject")
async def reject_tutor(tutor_id: UUID, auth: CurrentAuth) -> UserResponse:
    return UserResponse.model_validate(raise_for_result(await ModerationService(auth).reject_tutor(tutor_id)))


@router.post("/tutors/{tutor_id}/suspend")
async def suspend_tutor(tutor_id: UUID, auth: CurrentAuth) -> UserResponse:
    return UserResponse.model_validate(raise_for_result(await ModerationService(auth).suspend_tutor(tutor_id)))


@router.post("/tutors/{tutor_id}/unsuspend")
async def retract_suspension(tutor_id: UUID, auth: CurrentAuth) -> UserResponse:
    return UserResponse.model_validate(raise_for_result(await ModerationService(auth).retract_suspension(tutor_id)))


@router.post("/tutors/{tutor_id}/ban")
async def ban_tutor(tutor_id: UUID, auth: CurrentAuth) -> UserResponse:
    return UserResponse.model_validate(raise_for_result(await ModerationService(auth).ban_tutor(tutor_id)))


@router.post("/tutors/{tutor_id}/unban")
async def unban_tutor(tutor_id: UUID, auth: CurrentAuth) -> UserResponse:
    return UserResponse.model_validate(raise_for_result(await ModerationService(auth).unban_tutor(tutor_id)))


@router.get("/courses/pending")
async def get_pending_courses(auth: CurrentAuth) -> list[CourseListItem]:
    """Review queue of submitted courses."""
    courses = raise_for_result(await ModerationService(auth).get_pending_courses())
    return [CourseListItem.model_validate(course) for course in courses]


@router.post("/courses/{course_id}/submit")
async def submit_course_for_review(course_id: UUID, auth: CurrentAuth) -> CourseResponse:
    """Tutor hands a draft or rejected course to the review queue."""
    course = raise_for_result(await ModerationService(auth).submit_course_for_review(course_id))
    return CourseResponse.model_validate(course)


@router.post("/courses/{course_id}/approve")
async def approve_course(course_id: UUID, auth: CurrentAuth) -> CourseResponse:
    course = raise_for_result(await ModerationService(auth).approve_course(course_id))
    return CourseResponse.model_validate(course)


@router.post("/courses/{course_id}/reject")
async def reject_course(course_id: UUID, auth: CurrentAuth, body: CourseRejection | None = None) -> CourseResponse:
    course = raise_for_result(await ModerationService(auth).reject_course(course_id, body.reason if body else None))
    return CourseResponse.model_validate(course)
