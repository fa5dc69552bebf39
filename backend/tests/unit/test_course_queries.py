"""Paginated catalog queries."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from nskai.auth.config import SessionRole
from nskai.core.result import ErrorKind
from nskai.courses.models import Course, CourseStatus
from nskai.courses.services.course_query_service import CourseQueryService
from nskai.users.models import UserRole
from tests.fixtures.factories import make_course, make_user


async def _bulk_courses(session: AsyncSession, tutor, count: int, **fields) -> None:
    session.add_all(
        [
            Course(
                title=f"Course {index:02d}",
                tutor_id=tutor.id,
                status=fields.get("status", CourseStatus.PUBLISHED),
                is_published=fields.get("status", CourseStatus.PUBLISHED) == CourseStatus.PUBLISHED,
                price=0,
            )
            for index in range(count)
        ]
    )
    await session.commit()


@pytest.mark.asyncio
async def test_marketplace_pages_over_published_courses(db_session: AsyncSession, auth_for) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    await _bulk_courses(db_session, tutor, 45)
    await _bulk_courses(db_session, tutor, 5, status=CourseStatus.DRAFT)
    service = CourseQueryService(auth_for(None))

    page_two = await service.get_marketplace_courses(page=2, limit=20)
    page_three = await service.get_marketplace_courses(page=3, limit=20)

    assert len(page_two.value["items"]) == 20
    assert page_two.value["total_pages"] == 3
    assert page_two.value["current_page"] == 2
    assert page_two.value["has_next_page"] is True
    assert page_two.value["has_previous_page"] is True
    assert {c.id for c in page_two.value["items"]}.isdisjoint(c.id for c in page_three.value["items"])
    assert page_three.value["total_count"] == 45
    assert page_three.value["total_pages"] == 3
    assert page_three.value["current_page"] == 3
    assert len(page_three.value["items"]) == 5
    assert page_three.value["has_next_page"] is False
    assert page_three.value["has_previous_page"] is True


@pytest.mark.asyncio
async def test_empty_catalog_has_zero_pages(db_session: AsyncSession, auth_for) -> None:
    result = await CourseQueryService(auth_for(None)).get_marketplace_courses()

    assert result.value["items"] == []
    assert result.value["total_pages"] == 0
    assert result.value["has_next_page"] is False


@pytest.mark.asyncio
async def test_search_matches_title_case_insensitively(db_session: AsyncSession, auth_for) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    await make_course(db_session, tutor, title="Data Science Foundations")
    await make_course(db_session, tutor, title="Product Design")

    result = await CourseQueryService(auth_for(None)).get_marketplace_courses(search="science")

    assert [course.title for course in result.value["items"]] == ["Data Science Foundations"]
    assert result.value["total_count"] == 1


@pytest.mark.asyncio
async def test_tutor_courses_only_lists_own(db_session: AsyncSession, auth_for) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    other = await make_user(db_session, role=UserRole.TUTOR)
    mine = await make_course(db_session, tutor, status=CourseStatus.DRAFT)
    await make_course(db_session, other)

    result = await CourseQueryService(auth_for(tutor)).get_tutor_courses()

    assert [course.id for course in result.value["items"]] == [mine.id]


@pytest.mark.asyncio
async def test_all_courses_requires_admin_or_tutor(db_session: AsyncSession, auth_for) -> None:
    learner = await make_user(db_session)
    admin = await make_user(db_session, role=UserRole.ADMIN)

    denied = await CourseQueryService(auth_for(learner)).get_all_courses()
    allowed = await CourseQueryService(auth_for(admin, SessionRole.ORG_ADMIN)).get_all_courses()

    assert denied.error.kind == ErrorKind.FORBIDDEN
    assert allowed.ok
