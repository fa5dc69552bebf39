"""Lesson video upload endpoints and the Mux webhook."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request

from nskai.auth import CurrentAuth
from nskai.courses.schemas import MuxDataResponse
from nskai.database.session import DbSession
from nskai.middleware.error_handlers import raise_for_result
from nskai.middleware.security import upload_route_limit

from .schemas import DirectUpload, VideoStatus
from .service import MuxWebhookService, VideoService


router = APIRouter(prefix="/api/v1/videos", tags=["videos"])
webhook_router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/lessons/{lesson_id}/upload", dependencies=[Depends(upload_route_limit)])
async def get_direct_upload_url(lesson_id: UUID, auth: CurrentAuth) -> DirectUpload:
    """Create a direct upload URL for a lesson video."""
    return DirectUpload(**raise_for_result(await VideoService(auth).get_direct_upload_url(lesson_id)))


@router.get("/lessons/{lesson_id}/status")
async def check_lesson_video_status(lesson_id: UUID, auth: CurrentAuth, upload_id: str | None = None) -> VideoStatus:
    status = raise_for_result(await VideoService(auth).check_lesson_video_status(lesson_id, upload_id))
    mux_data = status["mux_data"]
    return VideoStatus(
        mux_data=MuxDataResponse.model_validate(mux_data) if mux_data is not None else None,
        is_ready=status["is_ready"],
    )


@webhook_router.post("/mux")
async def mux_webhook(request: Request, session: DbSession) -> dict[str, str]:
    body = await request.body()
    outcome = await MuxWebhookService(session).handle_mux_webhook(body, request.headers.get("mux-signature"))
    return {"status": outcome}
