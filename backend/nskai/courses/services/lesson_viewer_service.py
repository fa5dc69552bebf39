"""Read side of the lesson player: course outline and gated lesson access."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from nskai.auth.context import AuthContext
from nskai.core.result import ActionError, Result
from nskai.courses.models import Chapter, Course, Lesson

from .course_query_service import has_course_access


logger = logging.getLogger(__name__)


class LessonViewerService:
    """Service backing the learner's lesson player."""

    def __init__(self, auth: AuthContext) -> None:
        self.auth = auth
        self.session = auth.session

    async def _load_course_tree(self, course_id: UUID) -> Course | None:
        return await self.session.scalar(
            select(Course)
            .where(Course.id == course_id)
            .options(selectinload(Course.chapters).selectinload(Chapter.lessons))
        )

    async def get_course_outline(self, course_id: UUID) -> Result[Course]:
        """Chapters and lesson headers in position order, for signed-in callers."""
        signed_in = self.auth.require_signed_in()
        if not signed_in.ok:
            return Result.failure(signed_in.error)

        course = await self._load_course_tree(course_id)
        if course is None:
            return Result.failure(ActionError.not_found("Course"))
        return Result.success(course)

    async def get_lesson_with_access(self, course_id: UUID, lesson_id: UUID) -> Result[dict[str, Any]]:
        """
        Load a lesson if the caller may watch it.

        Access is granted to buyers (direct or via a learning path), to
        anyone for free-preview lessons, and to the course owner.

        Returns
        -------
        Result[dict]
            Lesson, chapter title, video data and neighbouring lesson ids in
            course order; FORBIDDEN when access is denied
        """
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        user = user_result.value

        lesson = await self.session.scalar(
            select(Lesson)
            .join(Chapter, Lesson.chapter_id == Chapter.id)
            .where(Lesson.id == lesson_id, Chapter.course_id == course_id)
            .options(selectinload(Lesson.mux_data))
        )
        if lesson is None:
            return Result.failure(ActionError.not_found("Lesson"))

        course = await self._load_course_tree(course_id)
        if course is None:
            return Result.failure(ActionError.not_found("Course"))

        is_owned = await has_course_access(self.session, user.id, course_id)
        is_owner = course.tutor_id == user.id
        if not (is_owned or lesson.is_free_preview or is_owner):
            logger.info("Denied lesson %s to user %s", lesson_id, user.id)
            return Result.failure(ActionError.forbidden("Access denied"))

        ordered_ids = [item.id for chapter in course.chapters for item in chapter.lessons]
        index = ordered_ids.index(lesson.id)
        chapter_title = next(chapter.title for chapter in course.chapters if chapter.id == lesson.chapter_id)

        return Result.success(
            {
                "lesson": lesson,
                "chapter_title": chapter_title,
                "mux_data": lesson.mux_data,
                "next_lesson_id": ordered_ids[index + 1] if index + 1 < len(ordered_ids) else None,
                "prev_lesson_id": ordered_ids[index - 1] if index > 0 else None,
                "is_owned": is_owned or is_owner,
            }
        )
