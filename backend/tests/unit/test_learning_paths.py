"""Learning path curation and free enrollment."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from nskai.auth.config import SessionRole
from nskai.core.result import ErrorKind
from nskai.learning_paths.service import ALREADY_ENROLLED, LearningPathService, path_price, path_total_price
from nskai.users.models import UserRole
from tests.fixtures.factories import make_course, make_user


@pytest_asyncio.fixture
async def admin_paths(db_session: AsyncSession, auth_for) -> LearningPathService:
    admin = await make_user(db_session, role=UserRole.ADMIN)
    return LearningPathService(auth_for(admin, SessionRole.ORG_ADMIN))


@pytest.mark.asyncio
async def test_empty_path_cannot_be_published(admin_paths: LearningPathService) -> None:
    path = (await admin_paths.create_learning_path("Empty track")).value

    result = await admin_paths.publish_learning_path(path.id)

    assert result.error.kind == ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_courses_append_in_order_and_once(db_session: AsyncSession, admin_paths: LearningPathService) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    first = await make_course(db_session, tutor, price=100_000)
    second = await make_course(db_session, tutor, price=50_000)
    path = (await admin_paths.create_learning_path("Data track")).value

    a = await admin_paths.add_course_to_path(path.id, first.id)
    b = await admin_paths.add_course_to_path(path.id, second.id)
    duplicate = await admin_paths.add_course_to_path(path.id, first.id)

    assert (a.value.position, b.value.position) == (1, 2)
    assert duplicate.error.kind == ErrorKind.CONFLICT
    assert await path_total_price(db_session, path.id) == 150_000


@pytest.mark.asyncio
async def test_free_path_enrollment_once(db_session: AsyncSession, auth_for, admin_paths: LearningPathService) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor, price=0)
    path = (await admin_paths.create_learning_path("Free track")).value
    await admin_paths.add_course_to_path(path.id, course.id)
    await admin_paths.publish_learning_path(path.id)
    learner_paths = LearningPathService(auth_for(learner))

    enrolled = await learner_paths.enroll_in_learning_path(path.id)
    again = await learner_paths.enroll_in_learning_path(path.id)

    assert enrolled.ok
    assert again.error.code == ALREADY_ENROLLED
    track = await learner_paths.get_path_lessons(path.id)
    assert [c.id for c in track.value["courses"]] == [course.id]


@pytest.mark.asyncio
async def test_priced_path_requires_payment(db_session: AsyncSession, auth_for, admin_paths: LearningPathService) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor, price=80_000)
    path = (await admin_paths.create_learning_path("Paid track")).value
    await admin_paths.add_course_to_path(path.id, course.id)
    await admin_paths.publish_learning_path(path.id)

    result = await LearningPathService(auth_for(learner)).enroll_in_learning_path(path.id)

    assert result.error.message == "This learning path requires payment"


@pytest.mark.asyncio
async def test_explicit_path_price_applies_over_free_courses(
    db_session: AsyncSession, auth_for, admin_paths: LearningPathService
) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor, price=0)
    path = (await admin_paths.create_learning_path("Premium track", price=900_000)).value
    await admin_paths.add_course_to_path(path.id, course.id)
    await admin_paths.publish_learning_path(path.id)

    result = await LearningPathService(auth_for(learner)).enroll_in_learning_path(path.id)

    assert result.error.message == "This learning path requires payment"
    assert await path_price(db_session, path) == 900_000


@pytest.mark.asyncio
async def test_unpublished_path_is_not_enrollable(db_session: AsyncSession, auth_for, admin_paths) -> None:
    learner = await make_user(db_session)
    path = (await admin_paths.create_learning_path("Hidden")).value

    result = await LearningPathService(auth_for(learner)).enroll_in_learning_path(path.id)

    assert result.error.kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_track_requires_enrollment(db_session: AsyncSession, auth_for, admin_paths) -> None:
    learner = await make_user(db_session)
    path = (await admin_paths.create_learning_path("Locked")).value

    result = await LearningPathService(auth_for(learner)).get_path_lessons(path.id)

    assert result.error.kind == ErrorKind.FORBIDDEN


@pytest.mark.asyncio
async def test_learner_cannot_curate(db_session: AsyncSession, auth_for) -> None:
    learner = await make_user(db_session)

    result = await LearningPathService(auth_for(learner)).create_learning_path("Mine")

    assert result.error.kind == ErrorKind.FORBIDDEN
