"""User model synced from the external identity provider."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import JSON, DateTime, Enum as SAEnum, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from nskai.database.base import Base


__all__ = ["User", "UserRole", "UserStatus"]


class UserRole(StrEnum):
    ADMIN = "ADMIN"
    TUTOR = "TUTOR"
    LEARNER = "LEARNER"


class UserStatus(StrEnum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    REJECTED = "REJECTED"
    SUSPENDED = "SUSPENDED"
    BANNED = "BANNED"


class User(Base):
    """Local user record keyed by the Clerk user id."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    clerk_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    expertise: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, name="role"), nullable=False, default=UserRole.LEARNER
    )
    status: Mapped[UserStatus] = mapped_column(
        SAEnum(UserStatus, name="status"), nullable=False, default=UserStatus.PENDING
    )
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    paystack_customer_code: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Learner onboarding
    interests: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    learning_goal: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Gamification
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_last_active_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)
