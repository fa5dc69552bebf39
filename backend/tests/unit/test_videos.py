"""Mux direct uploads and readiness polling with a mocked Mux client."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nskai.core.result import ErrorKind
from nskai.courses.models import MuxData
from nskai.users.models import UserRole
from nskai.videos.service import VideoService
from tests.fixtures.factories import make_chapter, make_course, make_lesson, make_user


@pytest.fixture
def mux() -> AsyncMock:
    client = AsyncMock()
    client.configured = True
    client.create_direct_upload.return_value = {"id": "upload_1", "url": "https://storage.mux.example/upload_1"}
    client.get_upload.return_value = {"id": "upload_1", "asset_id": "asset_1"}
    client.get_asset.return_value = {"id": "asset_1", "status": "ready", "playback_ids": [{"id": "play_1"}]}
    return client


async def _lesson_for(session: AsyncSession, tutor):
    course = await make_course(session, tutor)
    chapter = await make_chapter(session, course)
    return await make_lesson(session, chapter)


@pytest.mark.asyncio
async def test_owner_gets_upload_url(db_session: AsyncSession, auth_for, mux: AsyncMock) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    lesson = await _lesson_for(db_session, tutor)

    result = await VideoService(auth_for(tutor), mux=mux).get_direct_upload_url(lesson.id)

    assert result.value["url"] == "https://storage.mux.example/upload_1"
    assert result.value["poll_max_attempts"] == 60
    mux.create_direct_upload.assert_awaited_once_with(passthrough=str(lesson.id))


@pytest.mark.asyncio
async def test_other_tutor_cannot_upload(db_session: AsyncSession, auth_for, mux: AsyncMock) -> None:
    owner = await make_user(db_session, role=UserRole.TUTOR)
    other = await make_user(db_session, role=UserRole.TUTOR)
    lesson = await _lesson_for(db_session, owner)

    result = await VideoService(auth_for(other), mux=mux).get_direct_upload_url(lesson.id)

    assert result.error.kind == ErrorKind.FORBIDDEN
    mux.create_direct_upload.assert_not_awaited()


@pytest.mark.asyncio
async def test_unconfigured_mux_is_external_error(db_session: AsyncSession, auth_for, mux: AsyncMock) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    lesson = await _lesson_for(db_session, tutor)
    mux.configured = False

    result = await VideoService(auth_for(tutor), mux=mux).get_direct_upload_url(lesson.id)

    assert result.error.kind == ErrorKind.EXTERNAL_SERVICE


@pytest.mark.asyncio
async def test_status_resolves_asset_from_upload(db_session: AsyncSession, auth_for, mux: AsyncMock) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    lesson = await _lesson_for(db_session, tutor)

    result = await VideoService(auth_for(tutor), mux=mux).check_lesson_video_status(lesson.id, upload_id="upload_1")

    assert result.value["is_ready"] is True
    stored = await db_session.scalar(select(MuxData).where(MuxData.lesson_id == lesson.id))
    assert (stored.asset_id, stored.playback_id) == ("asset_1", "play_1")


@pytest.mark.asyncio
async def test_status_stored_playback_skips_mux(db_session: AsyncSession, auth_for, mux: AsyncMock) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    lesson = await _lesson_for(db_session, tutor)
    db_session.add(MuxData(lesson_id=lesson.id, asset_id="asset_9", playback_id="play_9"))
    await db_session.commit()

    result = await VideoService(auth_for(tutor), mux=mux).check_lesson_video_status(lesson.id)

    assert result.value["is_ready"] is True
    mux.get_asset.assert_not_awaited()


@pytest.mark.asyncio
async def test_status_not_ready_yet(db_session: AsyncSession, auth_for, mux: AsyncMock) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    lesson = await _lesson_for(db_session, tutor)
    mux.get_asset.return_value = {"id": "asset_1", "status": "preparing", "playback_ids": []}

    result = await VideoService(auth_for(tutor), mux=mux).check_lesson_video_status(lesson.id, upload_id="upload_1")

    assert result.value == {"mux_data": None, "is_ready": False}
