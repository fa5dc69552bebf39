"""Lesson completion and course progress aggregation."""

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nskai.progress.models import UserProgress
from nskai.progress.service import ProgressService
from nskai.users.models import User, UserRole
from tests.fixtures.factories import make_chapter, make_course, make_lesson, make_purchase, make_user


@pytest.mark.asyncio
async def test_progress_for_course_without_lessons_is_zero(db_session: AsyncSession, auth_for) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor)

    result = await ProgressService(auth_for(learner)).get_user_progress(course.id)

    assert result.value == {"completed_lessons": 0, "total_lessons": 0, "percentage": 0}


@pytest.mark.asyncio
async def test_mark_complete_is_idempotent_and_counts_once(db_session: AsyncSession, auth_for) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor)
    chapter = await make_chapter(db_session, course)
    lessons = [await make_lesson(db_session, chapter, position) for position in (1, 2, 3)]
    service = ProgressService(auth_for(learner))

    await service.mark_lesson_complete(lessons[0].id)
    await service.mark_lesson_complete(lessons[0].id)

    rows = (await db_session.scalars(select(UserProgress).where(UserProgress.user_id == learner.id))).all()
    assert len(rows) == 1
    progress = await service.get_user_progress(course.id)
    assert progress.value == {"completed_lessons": 1, "total_lessons": 3, "percentage": 33}


@pytest.mark.asyncio
async def test_completing_chapter_awards_module_points(db_session: AsyncSession, auth_for) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor)
    chapter = await make_chapter(db_session, course)
    lessons = [await make_lesson(db_session, chapter, position) for position in (1, 2)]
    service = ProgressService(auth_for(learner))

    for lesson in lessons:
        await service.mark_lesson_complete(lesson.id)
    await service.mark_lesson_complete(lessons[1].id)

    refreshed = await db_session.get(User, learner.id, populate_existing=True)
    assert refreshed.points == 10


@pytest.mark.asyncio
async def test_last_accessed_never_clears_completion(db_session: AsyncSession, auth_for) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor)
    chapter = await make_chapter(db_session, course)
    lesson = await make_lesson(db_session, chapter)
    service = ProgressService(auth_for(learner))

    await service.mark_lesson_complete(lesson.id)
    await service.update_last_accessed(lesson.id)

    assert (await service.check_lesson_completion(lesson.id)).value is True


@pytest.mark.asyncio
async def test_course_completion_batches_purchased_courses(db_session: AsyncSession, auth_for) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    empty = await make_course(db_session, tutor, title="Empty")
    full = await make_course(db_session, tutor, title="Full")
    chapter = await make_chapter(db_session, full)
    lessons = [await make_lesson(db_session, chapter, position) for position in (1, 2)]
    await make_purchase(db_session, learner, empty)
    await make_purchase(db_session, learner, full)
    service = ProgressService(auth_for(learner))
    await service.mark_lesson_complete(lessons[0].id)

    result = await service.get_course_completion()

    by_title = {item["course_title"]: item for item in result.value}
    assert by_title["Empty"]["percentage"] == 0
    assert by_title["Full"]["percentage"] == 50
    assert by_title["Full"]["completed_lessons"] == 1
