"""Lesson notes and Q&A endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from nskai.auth import CurrentAuth
from nskai.middleware.error_handlers import raise_for_result

from .schemas import AnswerResponse, NoteInput, NoteResponse, PostInput, QuestionResponse
from .service import QAService


router = APIRouter(prefix="/api/v1/lessons", tags=["qa"])


@router.get("/{lesson_id}/note")
async def get_user_note(lesson_id: UUID, auth: CurrentAuth) -> NoteResponse | None:
    note = raise_for_result(await QAService(auth).get_user_note(lesson_id))
    return NoteResponse.model_validate(note) if note else None


@router.put("/{lesson_id}/note")
async def save_user_note(lesson_id: UUID, data: NoteInput, auth: CurrentAuth) -> NoteResponse:
    """Create or replace the caller's private note."""
    return NoteResponse.model_validate(raise_for_result(await QAService(auth).save_user_note(lesson_id, data.content)))


@router.get("/{lesson_id}/questions")
async def get_questions(lesson_id: UUID, auth: CurrentAuth) -> list[QuestionResponse]:
    questions = raise_for_result(await QAService(auth).get_questions(lesson_id))
    return [QuestionResponse.model_validate(q) for q in questions]


@router.post("/{lesson_id}/questions", status_code=status.HTTP_201_CREATED)
async def ask_question(lesson_id: UUID, data: PostInput, auth: CurrentAuth) -> QuestionResponse:
    return QuestionResponse.model_validate(raise_for_result(await QAService(auth).ask_question(lesson_id, data.content)))


@router.post("/questions/{question_id}/answers", status_code=status.HTTP_201_CREATED)
async def answer_question(question_id: UUID, data: PostInput, auth: CurrentAuth) -> AnswerResponse:
    answer = raise_for_result(await QAService(auth).answer_question(question_id, data.content))
    return AnswerResponse.model_validate(answer)


@router.delete("/questions/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_question(question_id: UUID, auth: CurrentAuth) -> None:
    raise_for_result(await QAService(auth).delete_question(question_id))
