"""Course management service for creating, updating and deleting courses."""

import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from nskai.auth.context import AuthContext
from nskai.core.result import ActionError, Result
from nskai.courses.models import Course, CourseStatus
from nskai.courses.schemas import CourseCreate, CourseUpdate


logger = logging.getLogger(__name__)


class CourseManagementService:
    """Service for course CRUD operations."""

    def __init__(self, auth: AuthContext) -> None:
        self.auth = auth
        self.session = auth.session

    async def create_course(self, data: CourseCreate) -> Result[Course]:
        """Create an unpublished DRAFT course owned by the calling tutor."""
        tutor_result = await self.auth.require_tutor()
        if not tutor_result.ok:
            return Result.failure(tutor_result.error)

        course = Course(
            title=data.title,
            description=data.description,
            price=data.price,
            image_url=data.image_url,
            tutor_id=tutor_result.value.id,
            is_published=False,
            status=CourseStatus.DRAFT,
        )
        self.session.add(course)
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Error creating course")
            return Result.failure(ActionError.internal("Failed to create course"))

        logger.info("Created course %s for tutor %s", course.id, tutor_result.value.id)
        return Result.success(course)

    async def _get_managed_course(self, course_id: UUID, action: str) -> Result[Course]:
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)

        course = await self.session.get(Course, course_id)
        if course is None:
            return Result.failure(ActionError.not_found("Course"))
        if not self.auth.can_manage(user_result.value, course.tutor_id):
            return Result.failure(ActionError.forbidden(f"Not authorized to {action} this course"))
        return Result.success(course)

    async def update_course(self, course_id: UUID, data: CourseUpdate) -> Result[Course]:
        """Apply the fields set on ``data``.

        Publication state is owned by the review workflow and is not writable here.
        """
        course_result = await self._get_managed_course(course_id, "update")
        if not course_result.ok:
            return course_result
        course = course_result.value

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(course, field, value)

        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Error updating course", extra={"course_id": str(course_id)})
            return Result.failure(ActionError.internal("Failed to update course"))

        return Result.success(course)

    async def delete_course(self, course_id: UUID) -> Result[None]:
        """Delete a course; chapters, lessons and purchases cascade in the database."""
        course_result = await self._get_managed_course(course_id, "delete")
        if not course_result.ok:
            return Result.failure(course_result.error)

        try:
            await self.session.delete(course_result.value)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Error deleting course", extra={"course_id": str(course_id)})
            return Result.failure(ActionError.internal("Failed to delete course"))

        logger.info("Deleted course %s", course_id)
        return Result.success()
