"""Quiz API endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from nskai.auth import CurrentAuth
from nskai.middleware.error_handlers import raise_for_result

from .schemas import (
    QuizAttemptResponse,
    QuizQuestionInput,
    QuizQuestionResponse,
    QuizQuestionWithAnswer,
    QuizResult,
    QuizSubmission,
)
from .service import QuizService


router = APIRouter(prefix="/api/v1/quiz", tags=["quiz"])


@router.get("/lessons/{lesson_id}/questions")
async def get_quiz_questions(lesson_id: UUID, auth: CurrentAuth) -> list[QuizQuestionResponse]:
    """Get a lesson's questions without the answer key."""
    questions = raise_for_result(await QuizService(auth).get_quiz_questions(lesson_id))
    return [QuizQuestionResponse.model_validate(q) for q in questions]


@router.get("/lessons/{lesson_id}/questions/admin")
async def get_quiz_questions_admin(lesson_id: UUID, auth: CurrentAuth) -> list[QuizQuestionWithAnswer]:
    """Get a lesson's questions including correct options (lesson editors only)."""
    questions = raise_for_result(await QuizService(auth).get_quiz_questions_admin(lesson_id))
    return [QuizQuestionWithAnswer.model_validate(q) for q in questions]


@router.post("/lessons/{lesson_id}/questions", status_code=status.HTTP_201_CREATED)
async def create_quiz_question(lesson_id: UUID, data: QuizQuestionInput, auth: CurrentAuth) -> QuizQuestionWithAnswer:
    question = raise_for_result(await QuizService(auth).save_quiz_question(lesson_id, data))
    return QuizQuestionWithAnswer.model_validate(question)


@router.put("/lessons/{lesson_id}/questions/{question_id}")
async def update_quiz_question(
    lesson_id: UUID, question_id: UUID, data: QuizQuestionInput, auth: CurrentAuth
) -> QuizQuestionWithAnswer:
    question = raise_for_result(await QuizService(auth).save_quiz_question(lesson_id, data, question_id))
    return QuizQuestionWithAnswer.model_validate(question)


@router.delete("/questions/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quiz_question(question_id: UUID, auth: CurrentAuth) -> None:
    raise_for_result(await QuizService(auth).delete_quiz_question(question_id))


@router.post("/lessons/{lesson_id}/submit")
async def submit_quiz(lesson_id: UUID, submission: QuizSubmission, auth: CurrentAuth) -> QuizResult:
    """Grade a quiz submission."""
    return raise_for_result(await QuizService(auth).submit_quiz(lesson_id, submission.answers))


@router.get("/lessons/{lesson_id}/last-attempt")
async def get_last_quiz_attempt(lesson_id: UUID, auth: CurrentAuth) -> QuizAttemptResponse | None:
    attempt = raise_for_result(await QuizService(auth).get_last_quiz_attempt(lesson_id))
    return QuizAttemptResponse.model_validate(attempt) if attempt else None
