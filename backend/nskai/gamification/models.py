"""Points ledger and daily watch-time tracking."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from nskai.database.base import Base


__all__ = ["DailyWatchTime", "PointReason", "PointTransaction"]


class PointReason(StrEnum):
    MODULE_COMPLETED = "MODULE_COMPLETED"
    MODULE_QUIZZES_PASSED = "MODULE_QUIZZES_PASSED"
    STREAK_7_DAYS = "STREAK_7_DAYS"


class PointTransaction(Base):
    """Append-only ledger; one row per (user, reason, reference)."""

    __tablename__ = "point_transactions"
    __table_args__ = (
        UniqueConstraint("user_id", "reason", "reference_id", name="uq_point_tx_user_reason_ref"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[PointReason] = mapped_column(SAEnum(PointReason, name="point_reason"), nullable=False)
    # Chapter id or a composite key such as STREAK_7_2025-01-31
    reference_id: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )


class DailyWatchTime(Base):
    __tablename__ = "daily_watch_time"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_daily_watch_time_user_date"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD (UTC)
    minutes_watched: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
