"""End-to-end course authoring and review through the HTTP API.

Testing Strategy:
1. Database: per-test SQLite file shared by the app and the assertions
2. Authentication: get_auth_context overridden per client (tutor, admin, learner, anonymous)
3. External APIs: never reached; moderation mirrors are best-effort
"""

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nskai.courses.models import Course, CourseStatus, Lesson
from nskai.users.models import UserRole
from tests.fixtures.factories import make_user


@pytest.mark.asyncio
async def test_tutor_builds_course_and_admin_publishes(client_factory, db_session: AsyncSession) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    admin = await make_user(db_session, role=UserRole.ADMIN)
    tutor_client = await client_factory(tutor)
    admin_client = await client_factory(admin)

    resp = await tutor_client.post("/api/v1/courses", json={"title": "Python for Analysts", "price": 250_000})
    assert resp.status_code == 201
    course = resp.json()
    assert course["status"] == CourseStatus.DRAFT
    assert course["is_published"] is False

    resp = await tutor_client.post(f"/api/v1/courses/{course['id']}/chapters", json={"title": "Getting started"})
    assert resp.status_code == 201
    chapter = resp.json()

    for title in ("Install Python", "Your first notebook"):
        resp = await tutor_client.post(f"/api/v1/courses/chapters/{chapter['id']}/lessons", json={"title": title})
        assert resp.status_code == 201

    resp = await tutor_client.post(f"/api/v1/moderation/courses/{course['id']}/submit")
    assert resp.status_code == 200
    assert resp.json()["status"] == CourseStatus.PENDING

    resp = await admin_client.get("/api/v1/moderation/courses/pending")
    assert [item["id"] for item in resp.json()] == [course["id"]]

    resp = await admin_client.post(f"/api/v1/moderation/courses/{course['id']}/approve")
    assert resp.status_code == 200
    assert resp.json()["is_published"] is True

    anonymous = await client_factory()
    resp = await anonymous.get("/api/v1/courses")
    assert resp.status_code == 200
    page = resp.json()
    assert page["total_count"] == 1
    assert page["items"][0]["tutor"]["id"] == str(tutor.id)

    resp = await anonymous.get(f"/api/v1/courses/{course['id']}")
    detail = resp.json()
    assert [lesson["title"] for lesson in detail["chapters"][0]["lessons"]] == ["Install Python", "Your first notebook"]


@pytest.mark.asyncio
async def test_learner_cannot_create_course(client_factory, db_session: AsyncSession) -> None:
    learner = await make_user(db_session)
    client = await client_factory(learner)

    resp = await client.post("/api/v1/courses", json={"title": "Sneaky"})

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "PERMISSION_DENIED"
    assert (await db_session.scalars(select(Course))).all() == []


@pytest.mark.asyncio
async def test_anonymous_create_is_unauthorized(client_factory) -> None:
    client = await client_factory()

    resp = await client.post("/api/v1/courses", json={"title": "Nobody"})

    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_invalid_payload_is_422(client_factory, db_session: AsyncSession) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    client = await client_factory(tutor)

    resp = await client.post("/api/v1/courses", json={"title": "", "price": -5})

    assert resp.status_code == 422
    assert resp.json()["error"]["category"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_approving_draft_returns_409(client_factory, db_session: AsyncSession) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    admin = await make_user(db_session, role=UserRole.ADMIN)
    resp = await (await client_factory(tutor)).post("/api/v1/courses", json={"title": "Unfinished"})
    course_id = resp.json()["id"]

    resp = await (await client_factory(admin)).post(f"/api/v1/moderation/courses/{course_id}/approve")

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_reorder_lessons_endpoint(client_factory, db_session: AsyncSession) -> None:
    tutor = await make_user(db_session, role=UserRole.TUTOR)
    client = await client_factory(tutor)
    course_id = (await client.post("/api/v1/courses", json={"title": "Ordering"})).json()["id"]
    chapter_id = (await client.post(f"/api/v1/courses/{course_id}/chapters", json={"title": "One"})).json()["id"]
    lesson_ids = [
        (await client.post(f"/api/v1/courses/chapters/{chapter_id}/lessons", json={"title": f"L{n}"})).json()["id"]
        for n in range(3)
    ]

    reversed_ids = list(reversed(lesson_ids))
    resp = await client.put(f"/api/v1/courses/chapters/{chapter_id}/lessons/order", json={"ids": reversed_ids})
    assert resp.status_code == 204

    rows = await db_session.execute(select(Lesson.title, Lesson.position).order_by(Lesson.position))
    assert [title for title, _ in rows.all()] == ["L2", "L1", "L0"]
