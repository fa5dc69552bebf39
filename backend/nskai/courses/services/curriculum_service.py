"""Chapter and lesson authoring: create, update, delete and reorder."""

import logging
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import InstrumentedAttribute

from nskai.auth.context import AuthContext
from nskai.core.result import ActionError, Result
from nskai.courses.models import Chapter, Course, Lesson
from nskai.courses.schemas import ChapterUpdate, LessonCreate, LessonUpdate


logger = logging.getLogger(__name__)


class CurriculumService:
    """Service for a course's ordered chapters and lessons.

    Every mutation requires the signed-in course owner or an org admin. New
    items are appended after the current maximum position; reorders rewrite
    every sibling position in one transaction.
    """

    def __init__(self, auth: AuthContext) -> None:
        self.auth = auth
        self.session = auth.session

    async def _authorize(self, tutor_id: UUID | None) -> Result[None]:
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        if not self.auth.can_manage(user_result.value, tutor_id):
            return Result.failure(ActionError.forbidden("Not authorized to edit this course"))
        return Result.success()

    async def _course_editor(self, course_id: UUID) -> Result[None]:
        row = (await self.session.execute(select(Course.id, Course.tutor_id).where(Course.id == course_id))).first()
        if row is None:
            return Result.failure(ActionError.not_found("Course"))
        return await self._authorize(row.tutor_id)

    async def _chapter_editor(self, chapter_id: UUID) -> Result[Chapter]:
        row = (
            await self.session.execute(
                select(Chapter, Course.tutor_id).join(Course, Chapter.course_id == Course.id).where(Chapter.id == chapter_id)
            )
        ).first()
        if row is None:
            return Result.failure(ActionError.not_found("Chapter"))
        chapter, tutor_id = row
        allowed = await self._authorize(tutor_id)
        if not allowed.ok:
            return Result.failure(allowed.error)
        return Result.success(chapter)

    async def _lesson_editor(self, lesson_id: UUID) -> Result[Lesson]:
        row = (
            await self.session.execute(
                select(Lesson, Course.tutor_id)
                .join(Chapter, Lesson.chapter_id == Chapter.id)
                .join(Course, Chapter.course_id == Course.id)
                .where(Lesson.id == lesson_id)
            )
        ).first()
        if row is None:
            return Result.failure(ActionError.not_found("Lesson"))
        lesson, tutor_id = row
        allowed = await self._authorize(tutor_id)
        if not allowed.ok:
            return Result.failure(allowed.error)
        return Result.success(lesson)

    async def _commit(self, action: str, **context: str) -> Result[None]:
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Error %s", action, extra=context)
            return Result.failure(ActionError.internal(f"Failed to {action}"))
        return Result.success()

    # Chapters

    async def create_chapter(self, course_id: UUID, title: str) -> Result[Chapter]:
        allowed = await self._course_editor(course_id)
        if not allowed.ok:
            return Result.failure(allowed.error)

        max_position = await self.session.scalar(
            select(func.coalesce(func.max(Chapter.position), 0)).where(Chapter.course_id == course_id)
        )
        chapter = Chapter(course_id=course_id, title=title, position=(max_position or 0) + 1)
        self.session.add(chapter)

        committed = await self._commit("create chapter", course_id=str(course_id))
        if not committed.ok:
            return Result.failure(committed.error)
        return Result.success(chapter)

    async def update_chapter(self, chapter_id: UUID, data: ChapterUpdate) -> Result[Chapter]:
        chapter_result = await self._chapter_editor(chapter_id)
        if not chapter_result.ok:
            return chapter_result
        chapter = chapter_result.value

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(chapter, field, value)

        committed = await self._commit("update chapter", chapter_id=str(chapter_id))
        if not committed.ok:
            return Result.failure(committed.error)
        return Result.success(chapter)

    async def delete_chapter(self, chapter_id: UUID) -> Result[None]:
        chapter_result = await self._chapter_editor(chapter_id)
        if not chapter_result.ok:
            return Result.failure(chapter_result.error)

        await self.session.delete(chapter_result.value)
        return await self._commit("delete chapter", chapter_id=str(chapter_id))

    async def reorder_chapters(self, course_id: UUID, chapter_ids: Sequence[UUID]) -> Result[None]:
        """Set each chapter's position to its 1-based index in ``chapter_ids``."""
        allowed = await self._course_editor(course_id)
        if not allowed.ok:
            return Result.failure(allowed.error)
        return await self._reorder(Chapter, Chapter.course_id, course_id, chapter_ids)

    # Lessons

    async def create_lesson(self, chapter_id: UUID, data: LessonCreate) -> Result[Lesson]:
        chapter_result = await self._chapter_editor(chapter_id)
        if not chapter_result.ok:
            return Result.failure(chapter_result.error)

        max_position = await self.session.scalar(
            select(func.coalesce(func.max(Lesson.position), 0)).where(Lesson.chapter_id == chapter_id)
        )
        lesson = Lesson(
            chapter_id=chapter_id,
            title=data.title,
            type=data.type,
            position=(max_position or 0) + 1,
            is_free_preview=False,
        )
        self.session.add(lesson)

        committed = await self._commit("create lesson", chapter_id=str(chapter_id))
        if not committed.ok:
            return Result.failure(committed.error)
        return Result.success(lesson)

    async def update_lesson(self, lesson_id: UUID, data: LessonUpdate) -> Result[Lesson]:
        lesson_result = await self._lesson_editor(lesson_id)
        if not lesson_result.ok:
            return lesson_result
        lesson = lesson_result.value

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(lesson, field, value)

        committed = await self._commit("update lesson", lesson_id=str(lesson_id))
        if not committed.ok:
            return Result.failure(committed.error)
        return Result.success(lesson)

    async def delete_lesson(self, lesson_id: UUID) -> Result[None]:
        lesson_result = await self._lesson_editor(lesson_id)
        if not lesson_result.ok:
            return Result.failure(lesson_result.error)

        await self.session.delete(lesson_result.value)
        return await self._commit("delete lesson", lesson_id=str(lesson_id))

    async def reorder_lessons(self, chapter_id: UUID, lesson_ids: Sequence[UUID]) -> Result[None]:
        """Set each lesson's position to its 1-based index in ``lesson_ids``."""
        chapter_result = await self._chapter_editor(chapter_id)
        if not chapter_result.ok:
            return Result.failure(chapter_result.error)
        return await self._reorder(Lesson, Lesson.chapter_id, chapter_id, lesson_ids)

    async def _reorder(
        self,
        model: type[Chapter] | type[Lesson],
        parent_column: InstrumentedAttribute[UUID],
        parent_id: UUID,
        ids: Sequence[UUID],
    ) -> Result[None]:
        """Rewrite sibling positions atomically.

        ``ids`` must name every sibling under the parent exactly once, so the
        positions stay dense (1..n) afterwards. Anything else aborts the batch.
        """
        if len(set(ids)) != len(ids):
            return Result.failure(ActionError.validation("Duplicate ids in reorder request"))

        siblings = set((await self.session.scalars(select(model.id).where(parent_column == parent_id))).all())
        foreign = [item_id for item_id in ids if item_id not in siblings]
        if foreign:
            return Result.failure(ActionError.validation(f"{foreign[0]} does not belong to {parent_id}"))
        if len(ids) != len(siblings):
            return Result.failure(
                ActionError.validation(f"Reorder must list all {len(siblings)} items under {parent_id}")
            )

        try:
            for index, item_id in enumerate(ids):
                result = await self.session.execute(
                    update(model)
                    .where(model.id == item_id, parent_column == parent_id)
                    .values(position=index + 1)
                    .execution_options(synchronize_session="evaluate")
                )
                if result.rowcount == 0:
                    await self.session.rollback()
                    return Result.failure(ActionError.validation(f"{item_id} does not belong to {parent_id}"))
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Error reordering %s", model.__tablename__, extra={"parent_id": str(parent_id)})
            return Result.failure(ActionError.internal(f"Failed to reorder {model.__tablename__}"))

        return Result.success()
