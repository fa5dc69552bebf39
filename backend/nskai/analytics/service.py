"""Tutor dashboard analytics."""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import case, distinct, func, select

from nskai.auth.context import AuthContext
from nskai.core.result import Result
from nskai.core.utils import percentage, round_half_up, utc_now
from nskai.courses.models import Chapter, Course, Lesson, UserQuizAttempt
from nskai.payments.models import Purchase
from nskai.progress.models import UserProgress
from nskai.users.models import User


logger = logging.getLogger(__name__)

MONTHS_IN_SERIES = 6
RECENT_ENROLLMENTS_LIMIT = 10
MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def series_start(now: datetime, months: int = MONTHS_IN_SERIES) -> datetime:
    """Midnight on the first day of the oldest month in the series."""
    year, month = _shift_month(now.year, now.month, -(months - 1))
    return now.replace(year=year, month=month, day=1, hour=0, minute=0, second=0, microsecond=0)


def monthly_series(
    purchases: Iterable[tuple[datetime, int]], now: datetime, months: int = MONTHS_IN_SERIES
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """
    Bucket ``(created_at, amount)`` pairs into calendar months ending with ``now``.

    Returns
    -------
    tuple[list[dict], list[dict]]
        Revenue and enrollment series, oldest month first, one
        ``{"month": "Jan", "value": n}`` point per month with zeros for
        months without purchases
    """
    keys = [_shift_month(now.year, now.month, -offset) for offset in range(months - 1, -1, -1)]
    revenue = dict.fromkeys(keys, 0)
    enrollments = dict.fromkeys(keys, 0)

    for created_at, amount in purchases:
        key = (created_at.year, created_at.month)
        if key in revenue:
            revenue[key] += amount or 0
            enrollments[key] += 1

    revenue_series = [{"month": MONTH_LABELS[month - 1], "value": revenue[(year, month)]} for year, month in keys]
    enrollment_series = [
        {"month": MONTH_LABELS[month - 1], "value": enrollments[(year, month)]} for year, month in keys
    ]
    return revenue_series, enrollment_series


def _empty_analytics() -> dict[str, Any]:
    return {
        "total_revenue": 0,
        "total_students": 0,
        "published_courses": 0,
        "total_courses": 0,
        "avg_quiz_score": None,
        "revenue_by_month": [],
        "enrollments_by_month": [],
        "courses": [],
        "recent_enrollments": [],
        "quiz_performance": [],
    }


class AnalyticsService:
    """Aggregates over a tutor's own courses."""

    def __init__(self, auth: AuthContext) -> None:
        self.auth = auth
        self.session = auth.session

    async def get_tutor_analytics(self, now: datetime | None = None) -> Result[dict[str, Any]]:
        """
        Build the tutor dashboard.

        Course completion rate is completed progress rows over
        ``enrollments * lessons``. Quiz averages are rounded to whole
        percentages and are ``None`` when there are no attempts.

        Args:
            now: Reference time for the monthly series (defaults to the current UTC time)

        Returns:
            Result with KPIs, monthly series, per-course performance, recent
            enrollments and per-quiz performance
        """
        tutor_result = await self.auth.require_tutor()
        if not tutor_result.ok:
            return Result.failure(tutor_result.error)
        tutor = tutor_result.value
        now = now or utc_now()

        courses = list(
            (
                await self.session.scalars(
                    select(Course).where(Course.tutor_id == tutor.id).order_by(Course.created_at.desc())
                )
            ).all()
        )
        if not courses:
            return Result.success(_empty_analytics())
        course_ids = [course.id for course in courses]

        purchase_rows = await self.session.execute(
            select(Purchase.course_id, func.count(Purchase.id), func.coalesce(func.sum(Purchase.amount), 0))
            .where(Purchase.course_id.in_(course_ids))
            .group_by(Purchase.course_id)
        )
        purchase_stats = {course_id: (count, int(revenue)) for course_id, count, revenue in purchase_rows.all()}

        total_students = await self.session.scalar(
            select(func.count(distinct(Purchase.user_id))).where(Purchase.course_id.in_(course_ids))
        )

        recent_window = await self.session.execute(
            select(Purchase.created_at, Purchase.amount).where(
                Purchase.course_id.in_(course_ids), Purchase.created_at >= series_start(now)
            )
        )
        revenue_by_month, enrollments_by_month = monthly_series(recent_window.all(), now)

        lesson_counts = await self._grouped_by_course(
            select(Chapter.course_id, func.count(Lesson.id)).join(Lesson, Lesson.chapter_id == Chapter.id),
            course_ids,
        )
        completions = await self._grouped_by_course(
            select(Chapter.course_id, func.count(UserProgress.id))
            .select_from(UserProgress)
            .join(Lesson, UserProgress.lesson_id == Lesson.id)
            .join(Chapter, Lesson.chapter_id == Chapter.id)
            .where(UserProgress.is_completed.is_(True)),
            course_ids,
        )
        quiz_averages = await self._grouped_by_course(
            select(Chapter.course_id, func.avg(UserQuizAttempt.score))
            .select_from(UserQuizAttempt)
            .join(Lesson, UserQuizAttempt.lesson_id == Lesson.id)
            .join(Chapter, Lesson.chapter_id == Chapter.id),
            course_ids,
        )

        performance = []
        for course in courses:
            enrollments, revenue = purchase_stats.get(course.id, (0, 0))
            total_lessons = lesson_counts.get(course.id, 0)
            average = quiz_averages.get(course.id)
            performance.append(
                {
                    "id": course.id,
                    "title": course.title,
                    "image_url": course.image_url,
                    "price": course.price or 0,
                    "total_enrollments": enrollments,
                    "total_revenue": revenue,
                    "total_lessons": total_lessons,
                    "completion_rate": percentage(completions.get(course.id, 0), enrollments * total_lessons),
                    "avg_quiz_score": round_half_up(float(average)) if average is not None else None,
                }
            )

        overall_average = await self.session.scalar(
            select(func.avg(UserQuizAttempt.score))
            .select_from(UserQuizAttempt)
            .join(Lesson, UserQuizAttempt.lesson_id == Lesson.id)
            .join(Chapter, Lesson.chapter_id == Chapter.id)
            .where(Chapter.course_id.in_(course_ids))
        )

        return Result.success(
            {
                "total_revenue": sum(revenue for _, revenue in purchase_stats.values()),
                "total_students": total_students or 0,
                "published_courses": sum(1 for course in courses if course.is_published),
                "total_courses": len(courses),
                "avg_quiz_score": round_half_up(float(overall_average)) if overall_average is not None else None,
                "revenue_by_month": revenue_by_month,
                "enrollments_by_month": enrollments_by_month,
                "courses": performance,
                "recent_enrollments": await self._recent_enrollments(course_ids),
                "quiz_performance": await self._quiz_performance(course_ids),
            }
        )

    async def _grouped_by_course(self, stmt: Any, course_ids: list[UUID]) -> dict[UUID, Any]:
        rows = await self.session.execute(stmt.where(Chapter.course_id.in_(course_ids)).group_by(Chapter.course_id))
        return {course_id: value for course_id, value in rows.all()}

    async def _recent_enrollments(self, course_ids: list[UUID]) -> list[dict[str, Any]]:
        rows = await self.session.execute(
            select(User.first_name, User.last_name, User.email, Course.title, Purchase.created_at, Purchase.amount)
            .select_from(Purchase)
            .join(User, Purchase.user_id == User.id)
            .join(Course, Purchase.course_id == Course.id)
            .where(Purchase.course_id.in_(course_ids))
            .order_by(Purchase.created_at.desc())
            .limit(RECENT_ENROLLMENTS_LIMIT)
        )
        return [
            {
                "student_name": " ".join(part for part in (first, last) if part) or "Unknown Student",
                "student_email": email,
                "course_title": title,
                "enrolled_at": enrolled_at,
                "amount": amount,
            }
            for first, last, email, title, enrolled_at, amount in rows.all()
        ]

    async def _quiz_performance(self, course_ids: list[UUID]) -> list[dict[str, Any]]:
        attempts = func.count(UserQuizAttempt.id)
        rows = await self.session.execute(
            select(
                UserQuizAttempt.lesson_id,
                Lesson.title,
                Course.title,
                func.avg(UserQuizAttempt.score),
                attempts,
                func.sum(case((UserQuizAttempt.passed.is_(True), 1), else_=0)),
            )
            .select_from(UserQuizAttempt)
            .join(Lesson, UserQuizAttempt.lesson_id == Lesson.id)
            .join(Chapter, Lesson.chapter_id == Chapter.id)
            .join(Course, Chapter.course_id == Course.id)
            .where(Chapter.course_id.in_(course_ids))
            .group_by(UserQuizAttempt.lesson_id, Lesson.title, Course.title)
            .order_by(attempts.desc())
        )
        return [
            {
                "lesson_id": lesson_id,
                "lesson_title": lesson_title,
                "course_title": course_title,
                "avg_score": round_half_up(float(average or 0)),
                "pass_rate": percentage(int(passed or 0), total),
                "total_attempts": total,
            }
            for lesson_id, lesson_title, course_title, average, total, passed in rows.all()
        ]
