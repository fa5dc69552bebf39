"""Business logic for lesson progress tracking."""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from nskai.auth.context import AuthContext
from nskai.core.result import ActionError, Result
from nskai.core.utils import percentage
from nskai.courses.models import Chapter, Course, Lesson
from nskai.database.upsert import insert_for
from nskai.gamification.service import GamificationService
from nskai.payments.models import Purchase
from nskai.progress.models import UserProgress


logger = logging.getLogger(__name__)

# How many recent progress rows to scan when building "continue learning"
_RECENT_PROGRESS_WINDOW = 20


async def upsert_lesson_progress(
    session: AsyncSession, user_id: UUID, lesson_id: UUID, *, completed: bool
) -> None:
    """Insert or refresh the (user, lesson) progress row without committing.

    ``completed=True`` marks the lesson complete; ``completed=False`` only
    refreshes the access timestamp and never clears an earlier completion.
    """
    now = datetime.now(UTC)
    stmt = insert_for(session, UserProgress).values(
        user_id=user_id, lesson_id=lesson_id, is_completed=completed, last_accessed_at=now
    )
    update_values: dict[str, Any] = {"last_accessed_at": now}
    if completed:
        update_values["is_completed"] = True
    stmt = stmt.on_conflict_do_update(
        index_elements=[UserProgress.user_id, UserProgress.lesson_id],
        set_=update_values,
    )
    await session.execute(stmt)


async def course_lesson_counts(session: AsyncSession, user_id: UUID, course_ids: list[UUID]) -> dict[UUID, tuple[int, int]]:
    """Return ``{course_id: (completed, total)}`` using two grouped aggregates."""
    if not course_ids:
        return {}

    totals = await session.execute(
        select(Chapter.course_id, func.count(Lesson.id))
        .join(Lesson, Lesson.chapter_id == Chapter.id)
        .where(Chapter.course_id.in_(course_ids))
        .group_by(Chapter.course_id)
    )
    completed = await session.execute(
        select(Chapter.course_id, func.count(UserProgress.id))
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

    total_map = {course_id: count for course_id, count in totals.all()}
    completed_map = {course_id: count for course_id, count in completed.all()}
    return {cid: (completed_map.get(cid, 0), total_map.get(cid, 0)) for cid in course_ids}


class ProgressService:
    """Service for lesson completion and course progress."""

    def __init__(self, auth: AuthContext) -> None:
        self.auth = auth
        self.session = auth.session

    async def mark_lesson_complete(self, lesson_id: UUID) -> Result[None]:
        """Mark a lesson completed, then evaluate the module-completion rule for its chapter."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        user = user_result.value

        lesson = await self.session.get(Lesson, lesson_id)
        if lesson is None:
            return Result.failure(ActionError.not_found("Lesson"))

        try:
            await upsert_lesson_progress(self.session, user.id, lesson_id, completed=True)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("[MARK_LESSON_COMPLETE]", extra={"lesson_id": str(lesson_id)})
            return Result.failure(ActionError.internal("Failed to mark lesson complete"))

        rule = await GamificationService(self.session).check_module_completion(user.id, lesson.chapter_id)
        if not rule.ok:
            logger.warning("Module completion check failed for chapter %s: %s", lesson.chapter_id, rule.error.message)

        return Result.success()

    async def update_last_accessed(self, lesson_id: UUID) -> Result[None]:
        """Refresh the access timestamp for a lesson without touching completion."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)

        try:
            await upsert_lesson_progress(self.session, user_result.value.id, lesson_id, completed=False)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("[UPDATE_LAST_ACCESSED]", extra={"lesson_id": str(lesson_id)})
            return Result.failure(ActionError.internal("Failed to update last accessed"))

        return Result.success()

    async def get_user_progress(self, course_id: UUID) -> Result[dict[str, int]]:
        """Completed vs total lessons for a course; percentage is 0 when the course has no lessons."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)

        counts = await course_lesson_counts(self.session, user_result.value.id, [course_id])
        completed, total = counts[course_id]
        return Result.success(
            {"completed_lessons": completed, "total_lessons": total, "percentage": percentage(completed, total)}
        )

    async def get_course_completion(self) -> Result[list[dict[str, Any]]]:
        """Progress for every purchased course, batched into two aggregate queries."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        user = user_result.value

        rows = (
            await self.session.execute(
                select(Course.id, Course.title)
                .join(Purchase, Purchase.course_id == Course.id)
                .where(Purchase.user_id == user.id)
                .distinct()
            )
        ).all()
        counts = await course_lesson_counts(self.session, user.id, [row.id for row in rows])

        courses = []
        for row in rows:
            completed, total = counts[row.id]
            courses.append(
                {
                    "course_id": row.id,
                    "course_title": row.title,
                    "completed_lessons": completed,
                    "total_lessons": total,
                    "percentage": percentage(completed, total),
                }
            )
        return Result.success(courses)

    async def get_last_accessed_lesson(self, course_id: UUID) -> Result[UserProgress | None]:
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)

        progress = await self.session.scalar(
            select(UserProgress)
            .join(Lesson, UserProgress.lesson_id == Lesson.id)
            .join(Chapter, Lesson.chapter_id == Chapter.id)
            .where(UserProgress.user_id == user_result.value.id, Chapter.course_id == course_id)
            .order_by(UserProgress.last_accessed_at.desc())
            .limit(1)
        )
        return Result.success(progress)

    async def check_lesson_completion(self, lesson_id: UUID) -> Result[bool]:
        user = await self.auth.get_user()
        if user is None:
            return Result.success(False)

        completed = await self.session.scalar(
            select(UserProgress.is_completed).where(
                UserProgress.user_id == user.id, UserProgress.lesson_id == lesson_id
            )
        )
        return Result.success(bool(completed))

    async def get_course_progress_details(self, course_id: UUID) -> Result[dict[str, Any]]:
        """Course outline with per-lesson completion and last access."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)

        course = await self.session.scalar(
            select(Course)
            .where(Course.id == course_id)
            .options(selectinload(Course.chapters).selectinload(Chapter.lessons))
        )
        if course is None:
            return Result.failure(ActionError.not_found("Course"))

        lesson_ids = [lesson.id for chapter in course.chapters for lesson in chapter.lessons]
        progress_rows = (
            await self.session.scalars(
                select(UserProgress).where(
                    UserProgress.user_id == user_result.value.id, UserProgress.lesson_id.in_(lesson_ids)
                )
            )
        ).all()
        progress_map = {row.lesson_id: row for row in progress_rows}

        chapters = []
        for chapter in course.chapters:
            lessons = []
            for lesson in chapter.lessons:
                progress = progress_map.get(lesson.id)
                lessons.append(
                    {
                        "id": lesson.id,
                        "title": lesson.title,
                        "type": lesson.type,
                        "position": lesson.position,
                        "is_completed": bool(progress and progress.is_completed),
                        "last_accessed_at": progress.last_accessed_at if progress else None,
                    }
                )
            chapters.append({"id": chapter.id, "title": chapter.title, "position": chapter.position, "lessons": lessons})

        return Result.success({"id": course.id, "title": course.title, "chapters": chapters})

    async def get_continue_learning_courses(self, limit: int = 4) -> Result[list[dict[str, Any]]]:
        """Most recently touched courses with the lesson to resume and overall progress."""
        user = await self.auth.get_user()
        if user is None:
            return Result.success([])

        recent = (
            await self.session.execute(
                select(
                    UserProgress.lesson_id,
                    UserProgress.last_accessed_at,
                    Lesson.title.label("lesson_title"),
                    Chapter.course_id,
                )
                .join(Lesson, UserProgress.lesson_id == Lesson.id)
                .join(Chapter, Lesson.chapter_id == Chapter.id)
                .where(UserProgress.user_id == user.id)
                .order_by(UserProgress.last_accessed_at.desc())
                .limit(_RECENT_PROGRESS_WINDOW)
            )
        ).all()

        # First (most recent) lesson per course wins
        picks: dict[UUID, Any] = {}
        for row in recent:
            if row.course_id not in picks:
                picks[row.course_id] = row
                if len(picks) >= limit:
                    break
        if not picks:
            return Result.success([])

        courses = {
            course.id: course
            for course in (await self.session.scalars(select(Course).where(Course.id.in_(list(picks))))).all()
        }
        counts = await course_lesson_counts(self.session, user.id, list(picks))

        items = []
        for course_id, row in picks.items():
            course = courses.get(course_id)
            if course is None:
                continue
            completed, total = counts[course_id]
            items.append(
                {
                    "course_id": course.id,
                    "course_title": course.title,
                    "course_image_url": course.image_url,
                    "lesson_id": row.lesson_id,
                    "lesson_title": row.lesson_title,
                    "last_accessed_at": row.last_accessed_at,
                    "progress_percentage": percentage(completed, total),
                }
            )
        return Result.success(items)
