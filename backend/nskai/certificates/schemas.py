"""Pydantic schemas for certificates."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class CompletedCourse(BaseModel):
    course_id: UUID
    course_title: str
    course_image_url: str | None = None
    tutor_name: str
    completion_date: datetime
    total_lessons: int


class CertificateData(BaseModel):
    course_id: UUID
    course_title: str
    course_image_url: str | None = None
    learner_name: str
    tutor_name: str
    completion_date: datetime


class CertificateEligibility(BaseModel):
    eligible: bool
