"""Pydantic schemas for lesson notes and Q&A."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NoteInput(BaseModel):
    content: str = Field(..., description="Rich text HTML")


class NoteResponse(BaseModel):
    id: UUID
    lesson_id: UUID
    content: str | None = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PostInput(BaseModel):
    """Body of a question or an answer."""

    content: str = Field(..., min_length=1, max_length=5000)


class PostAuthor(BaseModel):
    id: UUID
    first_name: str | None = None
    last_name: str | None = None
    image_url: str | None = None
    role: str

    model_config = ConfigDict(from_attributes=True)


class AnswerResponse(BaseModel):
    id: UUID
    question_id: UUID
    content: str
    created_at: datetime
    user: PostAuthor

    model_config = ConfigDict(from_attributes=True)


class QuestionResponse(BaseModel):
    id: UUID
    lesson_id: UUID
    content: str
    created_at: datetime
    user: PostAuthor
    answers: list[AnswerResponse]

    model_config = ConfigDict(from_attributes=True)
