"""Per-lesson private notes and public questions and answers."""

import logging
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from nskai.auth.context import AuthContext
from nskai.core.result import ActionError, Result
from nskai.core.utils import utc_now
from nskai.courses.models import Lesson
from nskai.database.upsert import insert_for
from nskai.qa.models import Answer, Question, UserNote


logger = logging.getLogger(__name__)


class QAService:
    """Service for lesson notes and the lesson discussion board."""

    def __init__(self, auth: AuthContext) -> None:
        self.auth = auth
        self.session = auth.session

    async def _commit(self, tag: str, **context: str) -> Result[None]:
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception(tag, extra=context)
            return Result.failure(ActionError.internal("Failed to save"))
        return Result.success()

    # Notes

    async def get_user_note(self, lesson_id: UUID) -> Result[UserNote | None]:
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)

        note = await self.session.scalar(
            select(UserNote).where(UserNote.user_id == user_result.value.id, UserNote.lesson_id == lesson_id)
        )
        return Result.success(note)

    async def save_user_note(self, lesson_id: UUID, content: str) -> Result[UserNote]:
        """Create or overwrite the caller's note for a lesson."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        user_id = user_result.value.id

        if await self.session.get(Lesson, lesson_id) is None:
            return Result.failure(ActionError.not_found("Lesson"))

        now = utc_now()
        stmt = insert_for(self.session, UserNote).values(
            user_id=user_id, lesson_id=lesson_id, content=content, created_at=now, updated_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserNote.user_id, UserNote.lesson_id],
            set_={"content": content, "updated_at": now},
        )
        try:
            await self.session.execute(stmt)
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("[SAVE_USER_NOTE]", extra={"lesson_id": str(lesson_id)})
            return Result.failure(ActionError.internal("Failed to save user note"))

        committed = await self._commit("[SAVE_USER_NOTE]", lesson_id=str(lesson_id))
        if not committed.ok:
            return Result.failure(committed.error)

        note = await self.session.scalar(
            select(UserNote)
            .where(UserNote.user_id == user_id, UserNote.lesson_id == lesson_id)
            .execution_options(populate_existing=True)
        )
        return Result.success(note)

    # Questions and answers

    def _question_query(self) -> Select[tuple[Question]]:
        return select(Question).options(
            selectinload(Question.user),
            selectinload(Question.answers).selectinload(Answer.user),
        )

    async def get_questions(self, lesson_id: UUID) -> Result[list[Question]]:
        """Questions for a lesson, newest first, with authors and answers."""
        signed_in = self.auth.require_signed_in()
        if not signed_in.ok:
            return Result.failure(signed_in.error)

        result = await self.session.scalars(
            self._question_query().where(Question.lesson_id == lesson_id).order_by(Question.created_at.desc())
        )
        return Result.success(list(result.all()))

    async def ask_question(self, lesson_id: UUID, content: str) -> Result[Question]:
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)

        if await self.session.get(Lesson, lesson_id) is None:
            return Result.failure(ActionError.not_found("Lesson"))

        question = Question(user_id=user_result.value.id, lesson_id=lesson_id, content=content)
        self.session.add(question)
        committed = await self._commit("[ASK_QUESTION]", lesson_id=str(lesson_id))
        if not committed.ok:
            return Result.failure(ActionError.internal("Failed to post question"))

        question = await self.session.scalar(
            self._question_query().where(Question.id == question.id).execution_options(populate_existing=True)
        )
        return Result.success(question)

    async def answer_question(self, question_id: UUID, content: str) -> Result[Answer]:
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)

        if await self.session.get(Question, question_id) is None:
            return Result.failure(ActionError.not_found("Question"))

        answer = Answer(user_id=user_result.value.id, question_id=question_id, content=content)
        self.session.add(answer)
        committed = await self._commit("[ANSWER_QUESTION]", question_id=str(question_id))
        if not committed.ok:
            return Result.failure(ActionError.internal("Failed to post answer"))

        return Result.success(
            await self.session.scalar(
                select(Answer)
                .options(selectinload(Answer.user))
                .where(Answer.id == answer.id)
                .execution_options(populate_existing=True)
            )
        )

    async def delete_question(self, question_id: UUID) -> Result[None]:
        """Only the author may delete a question; its answers go with it."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)

        question = await self.session.get(Question, question_id)
        if question is None:
            return Result.failure(ActionError.not_found("Question"))
        if question.user_id != user_result.value.id:
            return Result.failure(ActionError.forbidden("Only the author can delete this question"))

        await self.session.delete(question)
        return await self._commit("[DELETE_QUESTION]", question_id=str(question_id))
