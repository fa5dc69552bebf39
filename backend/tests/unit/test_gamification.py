"""Points ledger idempotency, award rules and streak transitions."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from nskai.core.result import ErrorKind
from nskai.core.utils import start_of_day
from nskai.courses.models import LessonType, UserQuizAttempt
from nskai.gamification.models import DailyWatchTime, PointReason, PointTransaction
from nskai.gamification.service import ALREADY_AWARDED, GamificationService
from nskai.progress.models import UserProgress
from nskai.users.models import User
from tests.fixtures.factories import make_chapter, make_course, make_lesson, make_user


async def _ledger_count(session: AsyncSession, user: User) -> int:
    return await session.scalar(
        select(func.count()).select_from(PointTransaction).where(PointTransaction.user_id == user.id)
    )


async def _points(session: AsyncSession, user: User) -> int:
    refreshed = await session.get(User, user.id, populate_existing=True)
    return refreshed.points


@pytest.mark.asyncio
async def test_award_points_is_idempotent(db_session: AsyncSession) -> None:
    user = await make_user(db_session)
    service = GamificationService(db_session)

    first = await service.award_points(user.id, 10, PointReason.MODULE_COMPLETED, "chapter-1")
    second = await service.award_points(user.id, 10, PointReason.MODULE_COMPLETED, "chapter-1")

    assert first.ok
    assert first.value == 10
    assert not second.ok
    assert second.error.kind == ErrorKind.CONFLICT
    assert second.error.code == ALREADY_AWARDED
    assert await _ledger_count(db_session, user) == 1
    assert await _points(db_session, user) == 10


@pytest.mark.asyncio
async def test_award_points_distinct_references_both_credit(db_session: AsyncSession) -> None:
    user = await make_user(db_session)
    service = GamificationService(db_session)

    await service.award_points(user.id, 10, PointReason.MODULE_COMPLETED, "chapter-1")
    await service.award_points(user.id, 25, PointReason.MODULE_QUIZZES_PASSED, "chapter-1")

    assert await _ledger_count(db_session, user) == 2
    assert await _points(db_session, user) == 35


@pytest.mark.asyncio
async def test_module_completion_awards_once_all_lessons_done(db_session: AsyncSession) -> None:
    tutor = await make_user(db_session)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor)
    chapter = await make_chapter(db_session, course)
    first = await make_lesson(db_session, chapter, 1)
    second = await make_lesson(db_session, chapter, 2)
    service = GamificationService(db_session)

    db_session.add(UserProgress(user_id=learner.id, lesson_id=first.id, is_completed=True))
    await db_session.commit()
    partial = await service.check_module_completion(learner.id, chapter.id)
    assert partial.ok
    assert partial.value is False

    db_session.add(UserProgress(user_id=learner.id, lesson_id=second.id, is_completed=True))
    await db_session.commit()
    done = await service.check_module_completion(learner.id, chapter.id)
    again = await service.check_module_completion(learner.id, chapter.id)

    assert done.value is True
    assert again.value is True
    assert await _points(db_session, learner) == 10
    assert await _ledger_count(db_session, learner) == 1


@pytest.mark.asyncio
async def test_quiz_mastery_ignores_video_lessons(db_session: AsyncSession) -> None:
    tutor = await make_user(db_session)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor)
    chapter = await make_chapter(db_session, course)
    await make_lesson(db_session, chapter, 1, LessonType.VIDEO)
    quiz_a = await make_lesson(db_session, chapter, 2, LessonType.QUIZ)
    quiz_b = await make_lesson(db_session, chapter, 3, LessonType.QUIZ)
    service = GamificationService(db_session)

    db_session.add(UserQuizAttempt(user_id=learner.id, lesson_id=quiz_a.id, score=80, passed=True))
    db_session.add(UserQuizAttempt(user_id=learner.id, lesson_id=quiz_b.id, score=40, passed=False))
    await db_session.commit()
    assert (await service.check_module_quizzes_passed(learner.id, chapter.id)).value is False

    db_session.add(UserQuizAttempt(user_id=learner.id, lesson_id=quiz_b.id, score=90, passed=True))
    await db_session.commit()
    assert (await service.check_module_quizzes_passed(learner.id, chapter.id)).value is True
    assert await _points(db_session, learner) == 25


@pytest.mark.asyncio
async def test_chapter_without_quizzes_never_awards_mastery(db_session: AsyncSession) -> None:
    tutor = await make_user(db_session)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor)
    chapter = await make_chapter(db_session, course)
    await make_lesson(db_session, chapter, 1, LessonType.VIDEO)

    result = await GamificationService(db_session).check_module_quizzes_passed(learner.id, chapter.id)

    assert result.value is False
    assert await _ledger_count(db_session, learner) == 0


@pytest.mark.asyncio
async def test_streak_first_day_starts_at_one(db_session: AsyncSession) -> None:
    user = await make_user(db_session)

    result = await GamificationService(db_session).update_streak(user.id, "2026-05-10")

    assert result.value == 1
    assert user.current_streak == 1
    assert user.longest_streak == 1


@pytest.mark.asyncio
async def test_streak_same_day_is_noop(db_session: AsyncSession) -> None:
    user = await make_user(
        db_session, current_streak=3, longest_streak=3, streak_last_active_date=start_of_day("2026-05-10")
    )

    result = await GamificationService(db_session).update_streak(user.id, "2026-05-10")

    assert result.value == 3


@pytest.mark.asyncio
async def test_streak_consecutive_day_increments(db_session: AsyncSession) -> None:
    user = await make_user(
        db_session, current_streak=3, longest_streak=5, streak_last_active_date=start_of_day("2026-05-09")
    )

    result = await GamificationService(db_session).update_streak(user.id, "2026-05-10")

    assert result.value == 4
    assert user.longest_streak == 5


@pytest.mark.asyncio
async def test_streak_gap_resets_to_one(db_session: AsyncSession) -> None:
    user = await make_user(
        db_session, current_streak=6, longest_streak=6, streak_last_active_date=start_of_day("2026-05-07")
    )

    result = await GamificationService(db_session).update_streak(user.id, "2026-05-10")

    assert result.value == 1
    assert user.longest_streak == 6


@pytest.mark.asyncio
async def test_seventh_day_awards_streak_bonus(db_session: AsyncSession) -> None:
    user = await make_user(
        db_session, current_streak=6, longest_streak=6, streak_last_active_date=start_of_day("2026-05-09")
    )

    result = await GamificationService(db_session).update_streak(user.id, "2026-05-10")

    assert result.value == 7
    reference = await db_session.scalar(
        select(PointTransaction.reference_id).where(PointTransaction.reason == PointReason.STREAK_7_DAYS)
    )
    assert reference == "STREAK_7_2026-05-10"
    assert await _points(db_session, user) == 70


@pytest.mark.asyncio
async def test_watch_time_threshold_minute_updates_streak(db_session: AsyncSession) -> None:
    user = await make_user(db_session)
    db_session.add(DailyWatchTime(user_id=user.id, date="2026-05-10", minutes_watched=28))
    await db_session.commit()
    service = GamificationService(db_session)

    minute_29 = await service.log_video_watch_time(user.id, "2026-05-10")
    refreshed = await db_session.get(User, user.id, populate_existing=True)
    assert minute_29.value == 29
    assert refreshed.current_streak == 0

    minute_30 = await service.log_video_watch_time(user.id, "2026-05-10")
    refreshed = await db_session.get(User, user.id, populate_existing=True)
    assert minute_30.value == 30
    assert refreshed.current_streak == 1

    minute_31 = await service.log_video_watch_time(user.id, "2026-05-10")
    refreshed = await db_session.get(User, user.id, populate_existing=True)
    assert minute_31.value == 31
    assert refreshed.current_streak == 1


@pytest.mark.asyncio
async def test_first_watch_tick_creates_row(db_session: AsyncSession) -> None:
    user = await make_user(db_session)

    result = await GamificationService(db_session).log_video_watch_time(user.id, "2026-05-10")

    assert result.value == 1
    stats = await GamificationService(db_session).get_my_stats(user.id, "2026-05-10")
    assert stats.value["minutes_watched_today"] == 1
    assert stats.value["streak_minutes_threshold"] == 30
