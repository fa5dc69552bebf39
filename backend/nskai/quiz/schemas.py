"""Pydantic schemas for lesson quizzes."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class QuizQuestionInput(BaseModel):
    """Payload for creating or updating a quiz question."""

    question_text: str = Field(..., min_length=1, description="Question shown to the learner")
    options: list[str] = Field(..., min_length=2, description="Answer options")
    correct_option: int = Field(..., ge=0, description="Index of the correct option")
    position: int = Field(0, ge=0, description="Order within the quiz")

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _correct_option_in_range(self) -> "QuizQuestionInput":
        if self.correct_option >= len(self.options):
            msg = "correct_option must index one of the options"
            raise ValueError(msg)
        return self


class QuizQuestionResponse(BaseModel):
    """Learner-facing question (no answer key)."""

    id: UUID
    question_text: str
    options: list[str]
    position: int

    model_config = ConfigDict(from_attributes=True)


class QuizQuestionWithAnswer(QuizQuestionResponse):
    correct_option: int


class QuizSubmission(BaseModel):
    answers: dict[str, int] = Field(..., description="Selected option index keyed by question id")


class QuizResult(BaseModel):
    score: int = Field(..., ge=0, le=100)
    passed: bool


class QuizAttemptResponse(BaseModel):
    score: int
    passed: bool
    completed_at: datetime

    model_config = ConfigDict(from_attributes=True)
