"""Paystack webhook processing."""

import json
import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nskai.courses.models import Course
from nskai.exceptions import ValidationError
from nskai.payments.models import Purchase
from nskai.payments.paystack import verify_paystack_signature
from nskai.users.models import User


logger = logging.getLogger(__name__)

CHARGE_SUCCESS = "charge.success"


def extract_course_id(data: dict[str, Any]) -> UUID | None:
    """Course id from ``metadata.courseId`` or a ``course_id`` custom field."""
    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        return None

    raw = metadata.get("courseId")
    if not raw:
        for field in metadata.get("custom_fields") or []:
            if isinstance(field, dict) and field.get("variable_name") == "course_id":
                raw = field.get("value")
                break
    if not raw:
        return None

    try:
        return UUID(str(raw))
    except ValueError:
        return None


class PaystackWebhookService:
    """
    Records purchases announced by Paystack.

    The webhook is a safety net for buyers who close the checkout before the
    client-side verification runs. It is idempotent on the transaction
    reference and on the (user, course) pair. Events that cannot be matched
    are acknowledged and logged so Paystack stops retrying.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def handle_paystack_webhook(self, body: bytes, signature: str | None) -> str:
        """
        Verify and apply one webhook delivery.

        Returns
        -------
        str
            Outcome: ``"ignored"``, ``"unmatched"``, ``"duplicate"`` or ``"recorded"``

        Raises
        ------
        WebhookVerificationError
            If the signature does not match
        ValidationError
            If the body is not a JSON object
        """
        verify_paystack_signature(body, signature)

        try:
            event = json.loads(body)
        except ValueError as e:
            raise ValidationError("Webhook body is not valid JSON") from e
        if not isinstance(event, dict):
            raise ValidationError("Webhook body must be a JSON object")

        if event.get("event") != CHARGE_SUCCESS:
            logger.debug("Ignoring Paystack event %s", event.get("event"))
            return "ignored"

        data = event.get("data") or {}
        reference = data.get("reference")
        email = (data.get("customer") or {}).get("email")
        course_id = extract_course_id(data)
        if not reference or not email or course_id is None:
            logger.warning("Paystack charge without reference, customer email or course id: %s", reference)
            return "unmatched"

        existing = await self.session.scalar(select(Purchase.id).where(Purchase.paystack_reference == reference))
        if existing is not None:
            return "duplicate"

        user = await self.session.scalar(select(User).where(User.email == email))
        if user is None:
            logger.warning("Paystack charge %s for unknown customer", reference)
            return "unmatched"

        if await self.session.get(Course, course_id) is None:
            logger.warning("Paystack charge %s for unknown course %s", reference, course_id)
            return "unmatched"

        owned = await self.session.scalar(
            select(Purchase.id).where(Purchase.user_id == user.id, Purchase.course_id == course_id).limit(1)
        )
        if owned is not None:
            return "duplicate"

        self.session.add(
            Purchase(
                user_id=user.id,
                course_id=course_id,
                paystack_reference=reference,
                amount=int(data.get("amount") or 0),
            )
        )
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return "duplicate"

        logger.info("Recorded purchase %s for course %s via webhook", reference, course_id)
        return "recorded"
