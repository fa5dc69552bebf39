"""Lesson video uploads through Mux."""

import json
import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nskai.auth.context import AuthContext
from nskai.config.settings import get_settings
from nskai.core.result import ActionError, Result
from nskai.courses.models import Chapter, Course, Lesson, MuxData
from nskai.database.upsert import insert_for
from nskai.exceptions import ValidationError, WebhookVerificationError
from nskai.middleware.error_handlers import ExternalServiceError
from nskai.videos.mux import MuxClient, verify_mux_signature


logger = logging.getLogger(__name__)

ASSET_READY = "video.asset.ready"


async def upsert_mux_data(
    session: AsyncSession, lesson_id: UUID, asset_id: str, playback_id: str | None
) -> MuxData:
    """Insert or replace a lesson's Mux ids (one row per lesson); caller commits."""
    stmt = insert_for(session, MuxData).values(lesson_id=lesson_id, asset_id=asset_id, playback_id=playback_id)
    stmt = stmt.on_conflict_do_update(
        index_elements=[MuxData.lesson_id],
        set_={"asset_id": asset_id, "playback_id": playback_id},
    )
    await session.execute(stmt)
    return await session.scalar(
        select(MuxData).where(MuxData.lesson_id == lesson_id).execution_options(populate_existing=True)
    )


class VideoService:
    """Direct uploads for tutors and readiness polling for the editor."""

    def __init__(self, auth: AuthContext, mux: MuxClient | None = None) -> None:
        self.auth = auth
        self.session = auth.session
        self.mux = mux or MuxClient()

    async def get_direct_upload_url(self, lesson_id: UUID) -> Result[dict[str, Any]]:
        """
        Create a Mux direct upload for a lesson the calling tutor owns.

        When Mux already knows the asset id it is stored straight away (with
        the playback id cleared) so polling works even without webhooks.

        Returns
        -------
        Result[dict]
            ``url`` to upload to, upload ``id`` and ``poll_max_attempts``
        """
        if not self.mux.configured:
            logger.error("[MUX_ACTION_ERROR] MUX_TOKEN_ID and MUX_TOKEN_SECRET are not configured")
            return Result.failure(ActionError.external("Video service is not configured"))

        tutor_result = await self.auth.require_tutor()
        if not tutor_result.ok:
            return Result.failure(tutor_result.error)
        tutor = tutor_result.value

        owner_id = await self.session.scalar(
            select(Course.tutor_id)
            .join(Chapter, Chapter.course_id == Course.id)
            .join(Lesson, Lesson.chapter_id == Chapter.id)
            .where(Lesson.id == lesson_id)
        )
        if owner_id is None:
            return Result.failure(ActionError.not_found("Lesson"))
        if owner_id != tutor.id:
            return Result.failure(ActionError.forbidden("You do not own this course"))

        try:
            upload = await self.mux.create_direct_upload(passthrough=str(lesson_id))
        except ExternalServiceError as e:
            logger.warning("[MUX_ACTION_ERROR] %s", e.detail)
            return Result.failure(ActionError.external("Failed to create video upload"))

        if upload.get("asset_id"):
            try:
                await upsert_mux_data(self.session, lesson_id, upload["asset_id"], None)
                await self.session.commit()
            except SQLAlchemyError:
                await self.session.rollback()
                logger.exception("[MUX_ACTION_ERROR]", extra={"lesson_id": str(lesson_id)})
                return Result.failure(ActionError.internal("Failed to save video upload"))

        return Result.success(
            {
                "url": upload.get("url", ""),
                "id": upload.get("id", ""),
                "poll_max_attempts": get_settings().VIDEO_POLL_MAX_ATTEMPTS,
            }
        )

    async def check_lesson_video_status(self, lesson_id: UUID, upload_id: str | None = None) -> Result[dict[str, Any]]:
        """
        Report whether a lesson's video is playable.

        Reads the stored Mux ids first. Without a playback id it asks Mux
        directly (resolving the asset through ``upload_id`` if needed) and
        stores the ids once the asset is ready.
        """
        signed_in = self.auth.require_signed_in()
        if not signed_in.ok:
            return Result.failure(signed_in.error)

        stored = await self.session.scalar(select(MuxData).where(MuxData.lesson_id == lesson_id))
        if stored is not None and stored.playback_id:
            return Result.success({"mux_data": stored, "is_ready": True})

        asset_id = stored.asset_id if stored is not None else None
        if (asset_id or upload_id) and self.mux.configured:
            try:
                if not asset_id and upload_id:
                    asset_id = (await self.mux.get_upload(upload_id)).get("asset_id")
                if asset_id:
                    asset = await self.mux.get_asset(asset_id)
                    playback_ids = asset.get("playback_ids") or []
                    if asset.get("status") == "ready" and playback_ids:
                        mux_data = await upsert_mux_data(
                            self.session, lesson_id, asset.get("id") or asset_id, playback_ids[0]["id"]
                        )
                        await self.session.commit()
                        return Result.success({"mux_data": mux_data, "is_ready": True})
            except ExternalServiceError as e:
                logger.warning("[MUX_STATUS_ERROR] %s", e.detail)
                return Result.failure(ActionError.external("Failed to check video status"))
            except SQLAlchemyError:
                await self.session.rollback()
                logger.exception("[MUX_STATUS_ERROR]", extra={"lesson_id": str(lesson_id)})
                return Result.failure(ActionError.internal("Failed to check video status"))

        return Result.success({"mux_data": stored, "is_ready": False})


class MuxWebhookService:
    """Stores playback ids when Mux reports an asset as ready."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def handle_mux_webhook(self, body: bytes, signature: str | None) -> str:
        """
        Verify and apply one Mux webhook delivery.

        Verification is skipped (with a warning) when ``MUX_WEBHOOK_SECRET``
        is unset, but the signature header is always required.

        Returns
        -------
        str
            ``"ignored"``, ``"unmatched"`` or ``"recorded"``
        """
        if not signature:
            raise WebhookVerificationError("Missing mux-signature header")

        secret = get_settings().MUX_WEBHOOK_SECRET.get_secret_value()
        if secret:
            verify_mux_signature(body, signature, secret)
        else:
            logger.warning("[MUX_WEBHOOK] MUX_WEBHOOK_SECRET is not set. Skipping verification.")

        try:
            event = json.loads(body)
        except ValueError as e:
            raise ValidationError("Webhook body is not valid JSON") from e
        if not isinstance(event, dict):
            raise ValidationError("Webhook body must be a JSON object")

        event_type = event.get("type")
        logger.info("[MUX_WEBHOOK] Received event: %s", event_type)
        if event_type != ASSET_READY:
            return "ignored"

        data = event.get("data") or {}
        passthrough = data.get("passthrough")
        if not passthrough:
            raise ValidationError("LessonId missing")
        try:
            lesson_id = UUID(str(passthrough))
        except ValueError as e:
            raise ValidationError("LessonId is not a valid id") from e

        if await self.session.get(Lesson, lesson_id) is None:
            logger.warning("[MUX_WEBHOOK] Asset %s for unknown lesson %s", data.get("id"), lesson_id)
            return "unmatched"

        playback_ids = data.get("playback_ids") or []
        playback_id = playback_ids[0].get("id") if playback_ids else None
        await upsert_mux_data(self.session, lesson_id, data.get("id", ""), playback_id)
        await self.session.commit()

        logger.info("[MUX_WEBHOOK] Saved asset %s for lesson %s", data.get("id"), lesson_id)
        return "recorded"
