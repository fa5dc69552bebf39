"""Onboarding, learner profile and stats."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from nskai.auth.context import AuthContext
from nskai.core.result import ErrorKind
from nskai.middleware.error_handlers import ExternalServiceError
from nskai.progress.models import UserProgress
from nskai.users.models import UserRole, UserStatus
from nskai.users.schemas import LearnerOnboarding, LearnerProfileUpdate, TutorOnboarding
from nskai.users.service import UserService
from tests.fixtures.factories import make_chapter, make_course, make_lesson, make_purchase, make_user


@pytest.mark.asyncio
async def test_tutor_onboarding_is_pending(
    db_session: AsyncSession, auth_for, identity: AsyncMock, notifier: AsyncMock
) -> None:
    user = await make_user(db_session, status=UserStatus.PENDING)
    data = TutorOnboarding(role="TUTOR", first_name="Ngozi", last_name="Eze", bio="Data scientist", expertise="ML")

    result = await UserService(auth_for(user), identity=identity, notifier=notifier).complete_onboarding(data)

    assert result.value.role == UserRole.TUTOR
    assert result.value.status == UserStatus.PENDING
    identity.update_public_metadata.assert_awaited_once_with(user.clerk_id, {"role": "TUTOR", "status": "PENDING"})
    notifier.send_welcome.assert_awaited_once_with(email=user.email, name="Ngozi", role="TUTOR")


@pytest.mark.asyncio
async def test_learner_onboarding_creates_missing_user(
    db_session: AsyncSession, identity: AsyncMock, notifier: AsyncMock
) -> None:
    identity.get_user.return_value = {
        "id": "user_fresh",
        "primary_email_address_id": "e1",
        "email_addresses": [{"id": "e1", "email_address": "fresh@example.com"}],
    }
    auth = AuthContext(clerk_id="user_fresh", session=db_session)
    data = LearnerOnboarding(role="LEARNER", interests=["AI"], learning_goal="Get a job")

    result = await UserService(auth, identity=identity, notifier=notifier).complete_onboarding(data)

    assert result.value.email == "fresh@example.com"
    assert result.value.status == UserStatus.ACTIVE
    assert result.value.interests == ["AI"]
    identity.update_public_metadata.assert_awaited_once_with(
        "user_fresh", {"role": "LEARNER", "status": "ACTIVE", "interests": ["AI"], "learningGoal": "Get a job"}
    )


@pytest.mark.asyncio
async def test_onboarding_clerk_outage(db_session: AsyncSession, identity: AsyncMock, notifier: AsyncMock) -> None:
    identity.get_user.side_effect = ExternalServiceError("Clerk", "timeout")
    auth = AuthContext(clerk_id="user_missing", session=db_session)

    result = await UserService(auth, identity=identity, notifier=notifier).complete_onboarding(
        LearnerOnboarding(role="LEARNER")
    )

    assert result.error.kind == ErrorKind.EXTERNAL_SERVICE


@pytest.mark.asyncio
async def test_profile_bio_limit(db_session: AsyncSession, auth_for, identity, notifier) -> None:
    user = await make_user(db_session)
    service = UserService(auth_for(user), identity=identity, notifier=notifier)

    too_long = await service.update_learner_profile(LearnerProfileUpdate(bio="x" * 501))
    ok = await service.update_learner_profile(LearnerProfileUpdate(bio="Curious about data"))

    assert too_long.error.message == "Bio must be 500 characters or less"
    assert ok.value.bio == "Curious about data"


@pytest.mark.asyncio
async def test_learner_stats(db_session: AsyncSession, auth_for, identity, notifier) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    done = await make_course(db_session, tutor)
    started = await make_course(db_session, tutor)
    done_lesson = await make_lesson(db_session, await make_chapter(db_session, done))
    started_chapter = await make_chapter(db_session, started)
    started_lessons = [await make_lesson(db_session, started_chapter, position) for position in (1, 2, 3)]
    await make_purchase(db_session, learner, done)
    await make_purchase(db_session, learner, started)
    db_session.add_all(
        [
            UserProgress(user_id=learner.id, lesson_id=done_lesson.id, is_completed=True),
            UserProgress(user_id=learner.id, lesson_id=started_lessons[0].id, is_completed=True),
        ]
    )
    await db_session.commit()

    stats = (await UserService(auth_for(learner), identity=identity, notifier=notifier).get_learner_stats()).value

    assert stats["total_courses_enrolled"] == 2
    assert stats["total_courses_completed"] == 1
    assert stats["total_lessons_completed"] == 2
    assert stats["completion_rate"] == 50
    assert stats["last_activity_date"] is not None


@pytest.mark.asyncio
async def test_learner_has_no_tutor_settings(db_session: AsyncSession, auth_for, identity, notifier) -> None:
    learner = await make_user(db_session)

    result = await UserService(auth_for(learner), identity=identity, notifier=notifier).get_tutor_settings()

    assert result.error.kind == ErrorKind.NOT_FOUND
