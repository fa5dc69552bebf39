"""Tutor account moderation and course review workflow."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from nskai.auth.clerk import ClerkClient
from nskai.auth.context import AuthContext
from nskai.core.interfaces import IdentityMirror, Notifier
from nskai.core.result import ActionError, Result
from nskai.courses.models import Course, CourseStatus
from nskai.notifications.emails import ResendNotifier
from nskai.users.models import User, UserRole, UserStatus


logger = logging.getLogger(__name__)

# action -> (allowed current statuses, next status)
TUTOR_TRANSITIONS: dict[str, tuple[frozenset[UserStatus], UserStatus]] = {
    "approve": (frozenset({UserStatus.PENDING}), UserStatus.ACTIVE),
    "reject": (frozenset({UserStatus.PENDING}), UserStatus.REJECTED),
    "suspend": (frozenset({UserStatus.ACTIVE}), UserStatus.SUSPENDED),
    "retract_suspension": (frozenset({UserStatus.SUSPENDED}), UserStatus.ACTIVE),
    "ban": (frozenset({UserStatus.ACTIVE, UserStatus.SUSPENDED}), UserStatus.BANNED),
    "unban": (frozenset({UserStatus.BANNED}), UserStatus.ACTIVE),
}

COURSE_TRANSITIONS: dict[str, tuple[frozenset[CourseStatus], CourseStatus]] = {
    "submit": (frozenset({CourseStatus.DRAFT, CourseStatus.REJECTED}), CourseStatus.PENDING),
    "approve": (frozenset({CourseStatus.PENDING}), CourseStatus.PUBLISHED),
    "reject": (frozenset({CourseStatus.PENDING}), CourseStatus.REJECTED),
}

INVALID_TRANSITION = "INVALID_TRANSITION"


class ModerationService:
    """
    Admin moderation of tutor accounts and tutor-submitted courses.

    The local database is authoritative. After a tutor status change commits,
    the new status is mirrored to the identity provider's public metadata on a
    best-effort basis: mirror failures are logged and never fail the action.
    """

    def __init__(
        self,
        auth: AuthContext,
        identity: IdentityMirror | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.auth = auth
        self.session = auth.session
        self.identity = identity or ClerkClient()
        self.notifier = notifier or ResendNotifier()

    # Listings

    async def get_tutors(self) -> Result[list[User]]:
        """All tutors, newest first."""
        admin = self.auth.require_admin()
        if not admin.ok:
            return Result.failure(admin.error)

        tutors = await self.session.scalars(
            select(User).where(User.role == UserRole.TUTOR).order_by(User.created_at.desc())
        )
        return Result.success(list(tutors.all()))

    async def get_learners(self) -> Result[list[User]]:
        admin = self.auth.require_admin()
        if not admin.ok:
            return Result.failure(admin.error)

        learners = await self.session.scalars(
            select(User).where(User.role == UserRole.LEARNER).order_by(User.created_at.desc())
        )
        return Result.success(list(learners.all()))

    async def get_pending_courses(self) -> Result[list[Course]]:
        """Courses awaiting review, oldest submission first."""
        admin = self.auth.require_admin()
        if not admin.ok:
            return Result.failure(admin.error)

        courses = await self.session.scalars(
            select(Course)
            .where(Course.status == CourseStatus.PENDING)
            .options(selectinload(Course.tutor))
            .order_by(Course.created_at.asc())
        )
        return Result.success(list(courses.all()))

    # Tutor state machine

    async def approve_tutor(self, tutor_id: UUID) -> Result[User]:
        """PENDING -> ACTIVE, then send the approval email without waiting on its outcome."""
        result = await self._transition_tutor(tutor_id, "approve")
        if result.ok:
            tutor = result.value
            try:
                await self.notifier.send_tutor_approved(email=tutor.email, name=tutor.first_name or "Tutor")
            except Exception:
                logger.warning("Approval email to tutor %s failed", tutor_id, exc_info=True)
        return result

    async def reject_tutor(self, tutor_id: UUID) -> Result[User]:
        return await self._transition_tutor(tutor_id, "reject")

    async def suspend_tutor(self, tutor_id: UUID) -> Result[User]:
        return await self._transition_tutor(tutor_id, "suspend")

    async def retract_suspension(self, tutor_id: UUID) -> Result[User]:
        return await self._transition_tutor(tutor_id, "retract_suspension")

    async def ban_tutor(self, tutor_id: UUID) -> Result[User]:
        return await self._transition_tutor(tutor_id, "ban")

    async def unban_tutor(self, tutor_id: UUID) -> Result[User]:
        return await self._transition_tutor(tutor_id, "unban")

    async def _transition_tutor(self, tutor_id: UUID, action: str) -> Result[User]:
        admin = self.auth.require_admin()
        if not admin.ok:
            return Result.failure(admin.error)

        tutor = await self.session.get(User, tutor_id)
        if tutor is None or tutor.role != UserRole.TUTOR:
            return Result.failure(ActionError.not_found("Tutor"))

        allowed, next_status = TUTOR_TRANSITIONS[action]
        if tutor.status not in allowed:
            return Result.failure(
                ActionError.conflict(f"Cannot {action.replace('_', ' ')} a tutor who is {tutor.status}", INVALID_TRANSITION)
            )

        previous = tutor.status
        tutor.status = next_status
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Tutor %s failed", action, extra={"tutor_id": str(tutor_id)})
            return Result.failure(ActionError.internal(f"Failed to {action.replace('_', ' ')} tutor"))

        logger.info("Tutor %s status %s -> %s", tutor_id, previous, next_status)
        await self._mirror_status(tutor)
        return Result.success(tutor)

    async def _mirror_status(self, tutor: User) -> None:
        try:
            await self.identity.update_public_metadata(
                tutor.clerk_id, {"role": tutor.role.value, "status": tutor.status.value}
            )
        except Exception:
            logger.warning("Could not mirror status for %s to the identity provider", tutor.clerk_id, exc_info=True)

    # Course review workflow

    async def submit_course_for_review(self, course_id: UUID) -> Result[Course]:
        """DRAFT or REJECTED -> PENDING; only the owning tutor may submit."""
        user_result = await self.auth.require_tutor()
        if not user_result.ok:
            return Result.failure(user_result.error)

        course = await self.session.get(Course, course_id)
        if course is None:
            return Result.failure(ActionError.not_found("Course"))
        if course.tutor_id != user_result.value.id:
            return Result.failure(ActionError.forbidden("Not authorized to submit this course"))

        return await self._transition_course(course, "submit")

    async def approve_course(self, course_id: UUID) -> Result[Course]:
        """PENDING -> PUBLISHED and visible in the marketplace."""
        admin = self.auth.require_admin()
        if not admin.ok:
            return Result.failure(admin.error)

        course = await self.session.get(Course, course_id)
        if course is None:
            return Result.failure(ActionError.not_found("Course"))
        return await self._transition_course(course, "approve")

    async def reject_course(self, course_id: UUID, reason: str | None = None) -> Result[Course]:
        """PENDING -> REJECTED; the tutor may edit and resubmit."""
        admin = self.auth.require_admin()
        if not admin.ok:
            return Result.failure(admin.error)

        course = await self.session.get(Course, course_id)
        if course is None:
            return Result.failure(ActionError.not_found("Course"))
        if reason:
            logger.info("Rejecting course %s: %s", course_id, reason)
        return await self._transition_course(course, "reject")

    async def _transition_course(self, course: Course, action: str) -> Result[Course]:
        allowed, next_status = COURSE_TRANSITIONS[action]
        if course.status not in allowed:
            return Result.failure(
                ActionError.conflict(f"Cannot {action} a course that is {course.status}", INVALID_TRANSITION)
            )

        previous = course.status
        course.status = next_status
        course.is_published = next_status == CourseStatus.PUBLISHED
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Course %s failed", action, extra={"course_id": str(course.id)})
            return Result.failure(ActionError.internal(f"Failed to {action} course"))

        logger.info("Course %s status %s -> %s", course.id, previous, next_status)
        return Result.success(course)
