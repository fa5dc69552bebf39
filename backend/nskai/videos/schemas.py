"""Pydantic schemas for lesson video uploads."""

from pydantic import BaseModel

from nskai.courses.schemas import MuxDataResponse


class DirectUpload(BaseModel):
    """Where the browser should PUT the video file."""

    url: str
    id: str
    poll_max_attempts: int


class VideoStatus(BaseModel):
    mux_data: MuxDataResponse | None = None
    is_ready: bool
