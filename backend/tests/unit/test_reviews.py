"""Reviews, rating stats and likes."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from nskai.core.result import ErrorKind
from nskai.reviews.service import ReviewService, one_decimal
from nskai.users.models import UserRole
from tests.fixtures.factories import make_course, make_purchase, make_user


def test_one_decimal_rounds_half_up() -> None:
    assert one_decimal(None) == 0.0
    assert one_decimal(4.25) == 4.3
    assert one_decimal(3.333) == 3.3


@pytest.mark.asyncio
async def test_only_buyers_can_review(db_session: AsyncSession, auth_for) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor)

    result = await ReviewService(auth_for(learner)).submit_review(course.id, 5)

    assert result.error.kind == ErrorKind.FORBIDDEN


@pytest.mark.asyncio
async def test_resubmitting_replaces_review(db_session: AsyncSession, auth_for) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    other = await make_user(db_session)
    course = await make_course(db_session, tutor)
    await make_purchase(db_session, learner, course)
    await make_purchase(db_session, other, course)

    await ReviewService(auth_for(learner)).submit_review(course.id, 2, "meh")
    updated = await ReviewService(auth_for(learner)).submit_review(course.id, 4, "better after update")
    await ReviewService(auth_for(other)).submit_review(course.id, 5)

    assert (updated.value.rating, updated.value.comment) == (4, "better after update")
    stats = await ReviewService(auth_for(None)).get_course_rating_stats(course.id)
    assert stats.value == {"avg_rating": 4.5, "total_reviews": 2, "total_likes": 0}
    tutor_stats = await ReviewService(auth_for(None)).get_tutor_rating_stats(tutor.id)
    assert tutor_stats.value == {"avg_rating": 4.5, "total_reviews": 2}


@pytest.mark.asyncio
async def test_toggle_like_and_wishlist(db_session: AsyncSession, auth_for) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    learner = await make_user(db_session)
    course = await make_course(db_session, tutor)
    service = ReviewService(auth_for(learner))

    assert (await service.toggle_course_like(course.id)).value is True
    assert (await service.is_course_liked(course.id)).value is True
    assert [c.id for c in (await service.get_wishlist_courses()).value] == [course.id]

    assert (await service.toggle_course_like(course.id)).value is False
    assert (await service.is_course_liked(course.id)).value is False
