"""Pydantic schemas for payment verification."""

from uuid import UUID

from pydantic import BaseModel, Field


class VerifyCoursePayment(BaseModel):
    reference: str = Field(..., min_length=1, max_length=255)
    course_id: UUID


class VerifyPathPayment(BaseModel):
    reference: str = Field(..., min_length=1, max_length=255)
    path_id: UUID


class EnrollmentOutcome(BaseModel):
    """Whether the grant was new or the caller already had access."""

    already_enrolled: bool
