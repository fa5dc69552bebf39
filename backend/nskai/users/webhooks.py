"""Clerk user webhooks, delivered through Svix."""

import base64
import hashlib
import hmac
import json
import logging
import time
from typing import Any

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from nskai.auth.clerk import primary_email
from nskai.config.settings import get_settings
from nskai.database.upsert import insert_for
from nskai.exceptions import ValidationError, WebhookVerificationError
from nskai.users.models import User


logger = logging.getLogger(__name__)

SVIX_TOLERANCE_SECONDS = 300


def verify_svix_signature(
    body: bytes,
    svix_id: str | None,
    svix_timestamp: str | None,
    svix_signature: str | None,
    secret: str,
    now: float | None = None,
) -> None:
    """
    Verify a Svix-signed delivery.

    The secret is ``whsec_<base64 key>``; the signed content is
    ``{svix-id}.{svix-timestamp}.{body}`` and ``svix-signature`` carries one
    or more space-separated ``v1,<base64 HMAC-SHA256>`` entries.
    """
    if not svix_id or not svix_timestamp or not svix_signature:
        raise WebhookVerificationError("Missing svix headers")

    try:
        signed_at = int(svix_timestamp)
    except ValueError as e:
        raise WebhookVerificationError("Malformed svix-timestamp") from e
    current = time.time() if now is None else now
    if abs(current - signed_at) > SVIX_TOLERANCE_SECONDS:
        raise WebhookVerificationError("Svix timestamp outside tolerance")

    try:
        key = base64.b64decode(secret.removeprefix("whsec_"))
    except ValueError as e:
        raise WebhookVerificationError("CLERK_WEBHOOK_SECRET is not valid base64") from e

    content = f"{svix_id}.{svix_timestamp}.".encode() + body
    expected = base64.b64encode(hmac.new(key, content, hashlib.sha256).digest()).decode()

    for entry in svix_signature.split():
        version, _, signature = entry.partition(",")
        if version == "v1" and hmac.compare_digest(expected, signature):
            return
    raise WebhookVerificationError("Invalid svix signature")


class ClerkWebhookService:
    """Keeps the local ``users`` table in step with Clerk."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def handle_clerk_webhook(self, body: bytes, headers: dict[str, str | None]) -> str:
        """
        Verify and apply ``user.created``, ``user.updated`` and ``user.deleted``.

        New users start as LEARNER with the default status; onboarding sets
        the real role later.

        Returns
        -------
        str
            ``"created"``, ``"updated"``, ``"deleted"`` or ``"ignored"``
        """
        secret = get_settings().CLERK_WEBHOOK_SECRET.get_secret_value()
        if not secret:
            raise WebhookVerificationError("CLERK_WEBHOOK_SECRET is not configured")
        verify_svix_signature(
            body, headers.get("svix-id"), headers.get("svix-timestamp"), headers.get("svix-signature"), secret
        )

        try:
            event = json.loads(body)
        except ValueError as e:
            raise ValidationError("Webhook body is not valid JSON") from e
        if not isinstance(event, dict):
            raise ValidationError("Webhook body must be a JSON object")

        event_type = event.get("type")
        data: dict[str, Any] = event.get("data") or {}
        clerk_id = data.get("id")
        logger.info("Clerk webhook %s for %s", event_type, clerk_id)
        if not clerk_id:
            return "ignored"

        if event_type == "user.created":
            email = primary_email(data)
            if not email:
                raise ValidationError("user.created without an email address")
            stmt = insert_for(self.session, User).values(
                clerk_id=clerk_id,
                email=email,
                first_name=data.get("first_name"),
                last_name=data.get("last_name"),
                image_url=data.get("image_url"),
            )
            # Onboarding may have inserted the row first
            stmt = stmt.on_conflict_do_update(
                index_elements=[User.clerk_id],
                set_={"email": email, "image_url": data.get("image_url")},
            )
            await self.session.execute(stmt)
            outcome = "created"
        elif event_type == "user.updated":
            values: dict[str, Any] = {"image_url": data.get("image_url")}
            email = primary_email(data)
            if email:
                values["email"] = email
            await self.session.execute(update(User).where(User.clerk_id == clerk_id).values(**values))
            outcome = "updated"
        elif event_type == "user.deleted":
            await self.session.execute(delete(User).where(User.clerk_id == clerk_id))
            outcome = "deleted"
        else:
            return "ignored"

        await self.session.commit()
        return outcome
