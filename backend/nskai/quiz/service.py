"""Quiz question bank and scoring."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from nskai.auth.context import AuthContext
from nskai.config.settings import get_settings
from nskai.core.result import ActionError, Result
from nskai.core.utils import percentage
from nskai.courses.models import Chapter, Course, Lesson, QuizQuestion, UserQuizAttempt
from nskai.gamification.service import GamificationService
from nskai.progress.service import upsert_lesson_progress
from nskai.quiz.schemas import QuizQuestionInput, QuizResult


logger = logging.getLogger(__name__)


def score_answers(questions: list[QuizQuestion], answers: dict[str, int]) -> QuizResult:
    """Score answers keyed by question id (string form) against the question bank."""
    correct = sum(1 for question in questions if answers.get(str(question.id)) == question.correct_option)
    score = percentage(correct, len(questions))
    return QuizResult(score=score, passed=score >= get_settings().QUIZ_PASS_THRESHOLD)


class QuizService:
    """Service for authoring, serving and grading lesson quizzes."""

    def __init__(self, auth: AuthContext) -> None:
        self.auth = auth
        self.session = auth.session

    async def _require_lesson_editor(self, lesson_id: UUID) -> Result[Lesson]:
        """The lesson's course owner (or an admin) may edit its questions."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)

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
        if not self.auth.can_manage(user_result.value, tutor_id):
            return Result.failure(ActionError.forbidden("Not authorized to edit this lesson"))
        return Result.success(lesson)

    async def save_quiz_question(
        self, lesson_id: UUID, data: QuizQuestionInput, question_id: UUID | None = None
    ) -> Result[QuizQuestion]:
        """Create a question, or update ``question_id`` when given."""
        lesson_result = await self._require_lesson_editor(lesson_id)
        if not lesson_result.ok:
            return Result.failure(lesson_result.error)

        if question_id is not None:
            question = await self.session.get(QuizQuestion, question_id)
            if question is None or question.lesson_id != lesson_id:
                return Result.failure(ActionError.not_found("Question"))
        else:
            question = QuizQuestion(lesson_id=lesson_id)
            self.session.add(question)

        question.question_text = data.question_text
        question.options = list(data.options)
        question.correct_option = data.correct_option
        question.position = data.position

        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("SAVE_QUIZ_QUESTION_FAILED", extra={"lesson_id": str(lesson_id)})
            return Result.failure(ActionError.internal("Failed to save question"))

        return Result.success(question)

    async def delete_quiz_question(self, question_id: UUID) -> Result[None]:
        question = await self.session.get(QuizQuestion, question_id)
        if question is None:
            return Result.failure(ActionError.not_found("Question"))

        lesson_result = await self._require_lesson_editor(question.lesson_id)
        if not lesson_result.ok:
            return Result.failure(lesson_result.error)

        await self.session.delete(question)
        await self.session.commit()
        return Result.success()

    async def _questions(self, lesson_id: UUID) -> list[QuizQuestion]:
        result = await self.session.scalars(
            select(QuizQuestion).where(QuizQuestion.lesson_id == lesson_id).order_by(QuizQuestion.position)
        )
        return list(result.all())

    async def get_quiz_questions(self, lesson_id: UUID) -> Result[list[QuizQuestion]]:
        """Questions for a learner; the router strips the correct option."""
        signed_in = self.auth.require_signed_in()
        if not signed_in.ok:
            return Result.failure(signed_in.error)
        return Result.success(await self._questions(lesson_id))

    async def get_quiz_questions_admin(self, lesson_id: UUID) -> Result[list[QuizQuestion]]:
        """Questions including answers, for the lesson's editor."""
        lesson_result = await self._require_lesson_editor(lesson_id)
        if not lesson_result.ok:
            return Result.failure(lesson_result.error)
        return Result.success(await self._questions(lesson_id))

    async def submit_quiz(self, lesson_id: UUID, answers: dict[str, int]) -> Result[QuizResult]:
        """
        Grade a submission, record the attempt and update progress.

        Every submission is stored as a new attempt. A passing score also upserts
        the lesson progress to completed. The chapter's quiz-mastery rule is
        evaluated after every submission, pass or fail.

        Returns
        -------
        Result[QuizResult]
            Score (0-100) and pass flag, or NOT_FOUND when the lesson has no questions
        """
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        user = user_result.value

        questions = await self._questions(lesson_id)
        if not questions:
            return Result.failure(ActionError.not_found("Quiz questions"))

        outcome = score_answers(questions, answers)

        try:
            self.session.add(
                UserQuizAttempt(user_id=user.id, lesson_id=lesson_id, score=outcome.score, passed=outcome.passed)
            )
            if outcome.passed:
                await upsert_lesson_progress(self.session, user.id, lesson_id, completed=True)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("SUBMIT_QUIZ_FAILED", extra={"lesson_id": str(lesson_id), "user_id": str(user.id)})
            return Result.failure(ActionError.internal("Failed to submit quiz"))

        chapter_id = await self.session.scalar(select(Lesson.chapter_id).where(Lesson.id == lesson_id))
        if chapter_id is not None:
            rule = await GamificationService(self.session).check_module_quizzes_passed(user.id, chapter_id)
            if not rule.ok:
                logger.warning("Quiz mastery check failed for chapter %s: %s", chapter_id, rule.error.message)

        return Result.success(outcome)

    async def get_last_quiz_attempt(self, lesson_id: UUID) -> Result[UserQuizAttempt | None]:
        user = await self.auth.get_user()
        if user is None:
            return Result.success(None)

        attempt = await self.session.scalar(
            select(UserQuizAttempt)
            .where(UserQuizAttempt.user_id == user.id, UserQuizAttempt.lesson_id == lesson_id)
            .order_by(UserQuizAttempt.completed_at.desc())
            .limit(1)
        )
        return Result.success(attempt)
