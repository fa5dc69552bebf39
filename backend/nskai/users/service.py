"""Onboarding, learner profiles and tutor settings."""

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from nskai.auth.clerk import ClerkClient, primary_email
from nskai.auth.context import AuthContext
from nskai.core.interfaces import IdentityMirror, Notifier
from nskai.core.result import ActionError, Result
from nskai.core.utils import percentage
from nskai.middleware.error_handlers import ExternalServiceError
from nskai.notifications.emails import ResendNotifier
from nskai.payments.models import Purchase
from nskai.progress.models import UserProgress
from nskai.progress.service import course_lesson_counts
from nskai.users.models import User, UserRole, UserStatus
from nskai.users.schemas import (
    LearnerOnboarding,
    LearnerProfileUpdate,
    TutorOnboarding,
    TutorSettingsUpdate,
)


logger = logging.getLogger(__name__)

BIO_MAX_LENGTH = 500
EXPERTISE_MAX_LENGTH = 200


class UserService:
    """Service for the signed-in user's own account."""

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

    async def complete_onboarding(self, data: TutorOnboarding | LearnerOnboarding) -> Result[User]:
        """
        Record the role chosen at onboarding.

        Tutors start PENDING until an admin approves them; learners are
        ACTIVE immediately. If the Clerk webhook has not created the local
        row yet, it is inserted from the Clerk user record. The role and
        status are then mirrored to Clerk and a welcome email is sent; both
        are best-effort.

        Args:
            data: Tutor or learner onboarding payload

        Returns:
            Result with the updated user
        """
        signed_in = self.auth.require_signed_in()
        if not signed_in.ok:
            return Result.failure(signed_in.error)
        clerk_id = signed_in.value

        is_tutor = isinstance(data, TutorOnboarding)
        status = UserStatus.PENDING if is_tutor else UserStatus.ACTIVE
        values: dict[str, Any] = {"role": UserRole(data.role), "status": status}
        metadata: dict[str, Any] = {"role": data.role, "status": status.value}
        if is_tutor:
            values.update(first_name=data.first_name, last_name=data.last_name, bio=data.bio, expertise=data.expertise)
        else:
            if data.interests:
                values["interests"] = list(data.interests)
                metadata["interests"] = list(data.interests)
            if data.learning_goal:
                values["learning_goal"] = data.learning_goal
                metadata["learningGoal"] = data.learning_goal

        user = await self.auth.get_user()
        try:
            if user is not None:
                for field, value in values.items():
                    setattr(user, field, value)
            else:
                logger.info("No local user for %s during onboarding; creating from Clerk", clerk_id)
                try:
                    clerk_user = await self.identity.get_user(clerk_id)
                except ExternalServiceError as e:
                    logger.warning("Clerk lookup failed during onboarding: %s", e.detail)
                    return Result.failure(ActionError.external("Could not load your account"))
                email = primary_email(clerk_user)
                if not email:
                    return Result.failure(ActionError.validation("Your account has no email address"))
                user = User(clerk_id=clerk_id, email=email, image_url=clerk_user.get("image_url"), **values)
                self.session.add(user)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("[COMPLETE_ONBOARDING]", extra={"clerk_id": clerk_id})
            return Result.failure(ActionError.internal("Something went wrong"))

        logger.info("Onboarded %s as %s (%s)", clerk_id, data.role, status.value)

        try:
            await self.identity.update_public_metadata(clerk_id, metadata)
        except Exception:
            logger.warning("Clerk metadata sync failed for %s", clerk_id, exc_info=True)

        try:
            await self.notifier.send_welcome(email=user.email, name=user.first_name or "User", role=data.role)
        except Exception:
            logger.warning("Welcome email to %s failed", user.id, exc_info=True)

        return Result.success(user)

    # Learner profile

    async def get_learner_profile(self) -> Result[User]:
        return await self.auth.require_user()

    async def update_learner_profile(self, data: LearnerProfileUpdate) -> Result[User]:
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return user_result
        user = user_result.value

        if data.bio and len(data.bio) > BIO_MAX_LENGTH:
            return Result.failure(ActionError.validation("Bio must be 500 characters or less"))
        if data.expertise and len(data.expertise) > EXPERTISE_MAX_LENGTH:
            return Result.failure(ActionError.validation("Expertise must be 200 characters or less"))

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(user, field, value)

        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("[UPDATE_LEARNER_PROFILE]", extra={"user_id": str(user.id)})
            return Result.failure(ActionError.internal("Failed to update profile"))
        return Result.success(user)

    async def get_learner_stats(self) -> Result[dict[str, Any]]:
        """
        Learning statistics across every purchased course.

        A course counts as completed when it has lessons and all of them are
        complete. The completion rate is completed lessons over the lessons
        available in purchased courses.
        """
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        user = user_result.value

        course_ids = list(
            (await self.session.scalars(select(Purchase.course_id).where(Purchase.user_id == user.id))).all()
        )
        counts = await course_lesson_counts(self.session, user.id, list(set(course_ids)))

        total_lessons_completed = await self.session.scalar(
            select(func.count(UserProgress.id)).where(
                UserProgress.user_id == user.id, UserProgress.is_completed.is_(True)
            )
        )
        lessons_available = sum(total for _, total in counts.values())
        last_activity = await self.session.scalar(
            select(func.max(UserProgress.last_accessed_at)).where(UserProgress.user_id == user.id)
        )

        return Result.success(
            {
                "total_courses_enrolled": len(course_ids),
                "total_courses_completed": sum(
                    1 for completed, total in counts.values() if total and completed == total
                ),
                "total_lessons_completed": total_lessons_completed or 0,
                "completion_rate": percentage(total_lessons_completed or 0, lessons_available),
                "member_since": user.created_at,
                "last_activity_date": last_activity,
            }
        )

    # Tutor settings

    async def _require_tutor_profile(self) -> Result[User]:
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return user_result
        if user_result.value.role != UserRole.TUTOR:
            return Result.failure(ActionError.not_found("Tutor profile"))
        return user_result

    async def get_tutor_settings(self) -> Result[User]:
        return await self._require_tutor_profile()

    async def update_tutor_settings(self, data: TutorSettingsUpdate) -> Result[User]:
        """Update name, bio and expertise; fields left unset keep their values."""
        tutor_result = await self._require_tutor_profile()
        if not tutor_result.ok:
            return tutor_result
        tutor = tutor_result.value

        changes = {field: value for field, value in data.model_dump(exclude_unset=True).items() if value is not None}
        for field, value in changes.items():
            setattr(tutor, field, value)

        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("[UPDATE_TUTOR_PROFILE]", extra={"user_id": str(tutor.id)})
            return Result.failure(ActionError.internal("Failed to update profile"))
        return Result.success(tutor)
