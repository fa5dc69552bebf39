"""Pydantic schemas for user profiles, onboarding and moderation views."""

from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from nskai.users.models import UserRole, UserStatus


class UserResponse(BaseModel):
    """User row as shown in admin tables."""

    id: UUID
    clerk_id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    bio: str | None = None
    expertise: str | None = None
    role: UserRole
    status: UserStatus
    image_url: str | None = None
    points: int = 0
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TutorOnboarding(BaseModel):
    role: Literal["TUTOR"]
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    bio: str = Field(..., max_length=500)
    expertise: str = Field(..., max_length=200)


class LearnerOnboarding(BaseModel):
    role: Literal["LEARNER"]
    interests: list[str] | None = None
    learning_goal: str | None = None


OnboardingRequest = Annotated[TutorOnboarding | LearnerOnboarding, Field(discriminator="role")]


class LearnerProfile(BaseModel):
    id: UUID
    first_name: str | None = None
    last_name: str | None = None
    email: str
    bio: str | None = None
    expertise: str | None = None
    interests: list[str] | None = None
    image_url: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class LearnerProfileUpdate(BaseModel):
    """Length limits are enforced by the service so they report as VALIDATION errors."""

    bio: str | None = None
    expertise: str | None = None
    interests: list[str] | None = None

    model_config = ConfigDict(extra="forbid")


class LearnerStats(BaseModel):
    total_courses_enrolled: int
    total_courses_completed: int
    total_lessons_completed: int
    completion_rate: int
    member_since: datetime | None = None
    last_activity_date: datetime | None = None


class TutorSettings(BaseModel):
    id: UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None
    bio: str | None = None
    expertise: str | None = None
    image_url: str | None = None
    paystack_customer_code: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TutorSettingsUpdate(BaseModel):
    first_name: str | None = Field(None, max_length=255)
    last_name: str | None = Field(None, max_length=255)
    bio: str | None = Field(None, max_length=500)
    expertise: str | None = Field(None, max_length=200)

    model_config = ConfigDict(extra="forbid")
