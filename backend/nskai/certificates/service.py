"""Course completion certificates."""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from nskai.auth.context import AuthContext
from nskai.core.result import ActionError, Result
from nskai.core.utils import utc_now
from nskai.courses.models import Chapter, Course, Lesson
from nskai.progress.models import UserProgress
from nskai.progress.service import course_lesson_counts
from nskai.users.models import User


logger = logging.getLogger(__name__)

DEFAULT_TUTOR_NAME = "NSK.AI Instructor"
DEFAULT_LEARNER_NAME = "Learner"


def tutor_display_name(tutor: User | None) -> str:
    if tutor is None:
        return DEFAULT_TUTOR_NAME
    return tutor.full_name or DEFAULT_TUTOR_NAME


class CertificateService:
    """
    Derives certificates from lesson progress.

    A course is complete when it has at least one lesson and every lesson is
    marked complete. The completion date is the latest ``last_accessed_at``
    among the completed lessons.
    """

    def __init__(self, auth: AuthContext) -> None:
        self.auth = auth
        self.session = auth.session

    async def _completion_dates(self, user_id: UUID, course_ids: list[UUID]) -> dict[UUID, datetime]:
        rows = await self.session.execute(
            select(Chapter.course_id, func.max(UserProgress.last_accessed_at))
            .select_from(UserProgress)
            .join(Lesson, UserProgress.lesson_id == Lesson.id)
            .join(Chapter, Lesson.chapter_id == Chapter.id)
            .where(
                UserProgress.user_id == user_id,
                UserProgress.is_completed.is_(True),
                Chapter.course_id.in_(course_ids),
            )
            .group_by(Chapter.course_id)
        )
        return {course_id: completed_at for course_id, completed_at in rows.all()}

    async def get_completed_courses(self) -> Result[list[dict[str, Any]]]:
        """Every fully completed course, most recently completed first."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        user = user_result.value

        touched = list(
            (
                await self.session.scalars(
                    select(Chapter.course_id)
                    .join(Lesson, Lesson.chapter_id == Chapter.id)
                    .join(UserProgress, UserProgress.lesson_id == Lesson.id)
                    .where(UserProgress.user_id == user.id, UserProgress.is_completed.is_(True))
                    .distinct()
                )
            ).all()
        )
        counts = await course_lesson_counts(self.session, user.id, touched)
        completed_ids = [course_id for course_id, (done, total) in counts.items() if total and done == total]
        if not completed_ids:
            return Result.success([])

        dates = await self._completion_dates(user.id, completed_ids)
        courses = (
            await self.session.scalars(
                select(Course).options(selectinload(Course.tutor)).where(Course.id.in_(completed_ids))
            )
        ).all()

        completed = [
            {
                "course_id": course.id,
                "course_title": course.title,
                "course_image_url": course.image_url,
                "tutor_name": tutor_display_name(course.tutor),
                "completion_date": dates.get(course.id) or utc_now(),
                "total_lessons": counts[course.id][1],
            }
            for course in courses
        ]
        completed.sort(key=lambda item: item["completion_date"], reverse=True)
        return Result.success(completed)

    async def _lesson_counts(self, user: User, course_id: UUID) -> tuple[int, int]:
        return (await course_lesson_counts(self.session, user.id, [course_id])).get(course_id, (0, 0))

    async def check_certificate_eligibility(self, course_id: UUID) -> Result[bool]:
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)

        if await self.session.get(Course, course_id) is None:
            return Result.failure(ActionError.not_found("Course"))

        done, total = await self._lesson_counts(user_result.value, course_id)
        if total == 0:
            return Result.failure(ActionError.validation("Course has no lessons"))
        return Result.success(done == total)

    async def get_certificate_data(self, course_id: UUID) -> Result[dict[str, Any]]:
        """Names, title and completion date printed on a certificate."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        user = user_result.value

        course = await self.session.scalar(
            select(Course).options(selectinload(Course.tutor)).where(Course.id == course_id)
        )
        if course is None:
            return Result.failure(ActionError.not_found("Course"))

        done, total = await self._lesson_counts(user, course_id)
        if total == 0:
            return Result.failure(ActionError.validation("Course has no lessons"))
        if done != total:
            return Result.failure(ActionError.forbidden("Course not completed yet"))

        dates = await self._completion_dates(user.id, [course_id])
        return Result.success(
            {
                "course_id": course.id,
                "course_title": course.title,
                "course_image_url": course.image_url,
                "learner_name": user.full_name or DEFAULT_LEARNER_NAME,
                "tutor_name": tutor_display_name(course.tutor),
                "completion_date": dates.get(course_id) or utc_now(),
            }
        )
