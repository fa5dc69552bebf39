"""Course and learning path enrollment backed by Paystack verification."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from nskai.auth.context import AuthContext
from nskai.core.interfaces import Notifier
from nskai.core.result import ActionError, Result
from nskai.courses.models import Course
from nskai.learning_paths.models import LearningPath, LearningPathCourse, UserLearningPath
from nskai.learning_paths.service import path_price
from nskai.middleware.error_handlers import ExternalServiceError
from nskai.notifications.emails import ResendNotifier
from nskai.payments.models import Purchase
from nskai.payments.paystack import PaystackClient
from nskai.users.models import User


logger = logging.getLogger(__name__)

REFERENCE_USED = "REFERENCE_USED"


def _like_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def bundle_reference(path_id: UUID, reference: str) -> str:
    return f"BUNDLE-{path_id}-{reference}"


def free_reference(course_id: UUID, user_id: UUID) -> str:
    return f"FREE-{course_id}-{user_id}"


class PaymentService:
    """
    Grants course access after payment.

    Every grant is idempotent: a learner who already owns the course (or is
    already enrolled in the path) gets a success with ``already_enrolled``
    set and nothing is written. A reference already spent on another course
    or path is refused with a conflict. Confirmation emails are best-effort.
    """

    def __init__(
        self,
        auth: AuthContext,
        paystack: PaystackClient | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.auth = auth
        self.session = auth.session
        self.paystack = paystack or PaystackClient()
        self.notifier = notifier or ResendNotifier()

    async def _existing_purchase(self, user_id: UUID, course_id: UUID) -> Purchase | None:
        return await self.session.scalar(
            select(Purchase).where(Purchase.user_id == user_id, Purchase.course_id == course_id).limit(1)
        )

    async def _reference_in_use(self, reference: str) -> bool:
        """Whether a Paystack reference already paid for a course, a bundle course or a path."""
        purchase = await self.session.scalar(
            select(Purchase.id)
            .where(
                or_(
                    Purchase.paystack_reference == reference,
                    Purchase.paystack_reference.like(f"BUNDLE-%-{_like_escape(reference)}-%", escape="\\"),
                )
            )
            .limit(1)
        )
        if purchase is not None:
            return True
        enrollment = await self.session.scalar(
            select(UserLearningPath.id).where(UserLearningPath.paystack_reference == reference).limit(1)
        )
        return enrollment is not None

    async def _verify_with_paystack(self, reference: str) -> Result[dict[str, Any]]:
        try:
            data = await self.paystack.verify_transaction(reference)
        except ExternalServiceError as e:
            logger.warning("Paystack verification unavailable for %s: %s", reference, e.detail)
            return Result.failure(ActionError.external("Payment verification is unavailable"))
        if data is None:
            return Result.failure(ActionError.validation("Transaction failed or invalid"))
        return Result.success(data)

    async def _notify(self, user: User, title: str, amount: int, target_id: str) -> None:
        try:
            await self.notifier.send_purchase_confirmation(
                email=user.email,
                name=user.first_name or "Learner",
                course_title=title,
                amount=amount,
                course_id=target_id,
            )
        except Exception:
            logger.warning("Purchase confirmation email to %s failed", user.id, exc_info=True)

    async def verify_transaction(self, reference: str, course_id: UUID) -> Result[dict[str, Any]]:
        """Confirm a Paystack payment for a course and record the purchase."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        user = user_result.value

        verified = await self._verify_with_paystack(reference)
        if not verified.ok:
            return Result.failure(verified.error)
        paid_amount = int(verified.value.get("amount") or 0)

        course = await self.session.get(Course, course_id)
        if course is None:
            return Result.failure(ActionError.not_found("Course"))
        if paid_amount < (course.price or 0):
            logger.warning("Underpayment for course %s: paid %d, expected %d", course_id, paid_amount, course.price)
            return Result.failure(ActionError.validation("Payment amount incorrect"))

        if await self._existing_purchase(user.id, course_id) is not None:
            return Result.success({"already_enrolled": True})
        if await self._reference_in_use(reference):
            logger.warning("Reference %s replayed by %s for course %s", reference, user.id, course_id)
            return Result.failure(ActionError.conflict("This payment reference has already been used", REFERENCE_USED))

        self.session.add(
            Purchase(user_id=user.id, course_id=course_id, paystack_reference=reference, amount=paid_amount)
        )
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            # The webhook may have recorded this same purchase first
            if await self._existing_purchase(user.id, course_id) is not None:
                return Result.success({"already_enrolled": True})
            return Result.failure(ActionError.conflict("This payment reference has already been used", REFERENCE_USED))
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("[VERIFY_TRANSACTION]", extra={"reference": reference})
            return Result.failure(ActionError.internal("Failed to record purchase"))

        logger.info("Recorded purchase of course %s by %s (%s)", course_id, user.id, reference)
        await self._notify(user, course.title, paid_amount, str(course_id))
        return Result.success({"already_enrolled": False})

    async def verify_path_transaction(self, reference: str, path_id: UUID) -> Result[dict[str, Any]]:
        """
        Confirm a Paystack payment for a learning path.

        Records the path enrollment and a zero-amount ``BUNDLE-{path}-{ref}``
        purchase for every course in the path the learner does not already
        own, all in one transaction.
        """
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        user = user_result.value

        verified = await self._verify_with_paystack(reference)
        if not verified.ok:
            return Result.failure(verified.error)
        paid_amount = int(verified.value.get("amount") or 0)

        path = await self.session.get(LearningPath, path_id)
        if path is None:
            return Result.failure(ActionError.not_found("Learning path"))

        expected = await path_price(self.session, path)
        if paid_amount < expected:
            logger.warning("Underpayment for path %s: paid %d, expected %d", path_id, paid_amount, expected)
            return Result.failure(ActionError.validation("Payment amount incorrect"))

        enrolled = await self.session.scalar(
            select(UserLearningPath.id).where(
                UserLearningPath.user_id == user.id, UserLearningPath.learning_path_id == path_id
            )
        )
        if enrolled is not None:
            return Result.success({"already_enrolled": True})
        if await self._reference_in_use(reference):
            logger.warning("Reference %s replayed by %s for path %s", reference, user.id, path_id)
            return Result.failure(ActionError.conflict("This payment reference has already been used", REFERENCE_USED))

        course_ids = (
            await self.session.scalars(
                select(LearningPathCourse.course_id).where(LearningPathCourse.learning_path_id == path_id)
            )
        ).all()
        owned = set(
            (
                await self.session.scalars(
                    select(Purchase.course_id).where(Purchase.user_id == user.id, Purchase.course_id.in_(course_ids))
                )
            ).all()
        )

        try:
            self.session.add(
                UserLearningPath(
                    user_id=user.id, learning_path_id=path_id, paystack_reference=reference, amount=paid_amount
                )
            )
            # One reference per (path, payment); the course id keeps each bundle row unique
            for course_id in course_ids:
                if course_id in owned:
                    continue
                self.session.add(
                    Purchase(
                        user_id=user.id,
                        course_id=course_id,
                        paystack_reference=f"{bundle_reference(path_id, reference)}-{course_id}",
                        amount=0,
                    )
                )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return Result.failure(ActionError.conflict("This payment reference has already been used", REFERENCE_USED))
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("[VERIFY_PATH_TRANSACTION]", extra={"reference": reference, "path_id": str(path_id)})
            return Result.failure(ActionError.internal("Failed to enroll in learning path"))

        logger.info("Enrolled %s in learning path %s (%s)", user.id, path_id, reference)
        await self._notify(user, f"Learning Path: {path.title}", paid_amount, str(path_id))
        return Result.success({"already_enrolled": False})

    async def enroll_free(self, course_id: UUID) -> Result[dict[str, Any]]:
        """Enroll in a course whose price is zero or unset."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        user = user_result.value

        course = await self.session.get(Course, course_id)
        if course is None:
            return Result.failure(ActionError.not_found("Course"))
        if course.price:
            return Result.failure(ActionError.validation("This course requires payment"))

        if await self._existing_purchase(user.id, course_id) is not None:
            return Result.success({"already_enrolled": True})

        self.session.add(
            Purchase(user_id=user.id, course_id=course_id, paystack_reference=free_reference(course_id, user.id), amount=0)
        )
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return Result.success({"already_enrolled": True})
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("[ENROLL_FREE]", extra={"course_id": str(course_id)})
            return Result.failure(ActionError.internal("Failed to enroll"))

        await self._notify(user, course.title, 0, str(course_id))
        return Result.success({"already_enrolled": False})
