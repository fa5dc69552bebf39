"""Points ledger, award rules and daily watch streaks."""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nskai.config.settings import get_settings
from nskai.core.result import ActionError, Result
from nskai.core.utils import previous_date_string, start_of_day, utc_date_string
from nskai.courses.models import Lesson, LessonType, UserQuizAttempt
from nskai.database.upsert import insert_for
from nskai.gamification.models import DailyWatchTime, PointReason, PointTransaction
from nskai.progress.models import UserProgress
from nskai.users.models import User, UserRole


logger = logging.getLogger(__name__)

ALREADY_AWARDED = "ALREADY_AWARDED"
TRANSACTION_FAILED = "TRANSACTION_FAILED"


class GamificationService:
    """Awards points exactly once per (user, reason, reference) and tracks streaks.

    Callers must commit their own pending work before invoking a rule: the
    ledger write commits (or rolls back) the session.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.settings = get_settings()

    async def award_points(self, user_id: UUID, amount: int, reason: PointReason, reference_id: str) -> Result[int]:
        """
        Credit ``amount`` points once for an achievement instance.

        Parameters
        ----------
        user_id : UUID
            Internal user id
        amount : int
            Points to credit
        reason : PointReason
            Ledger reason
        reference_id : str
            Identifies the achievement instance (chapter id, streak key)

        Returns
        -------
        Result[int]
            The credited amount, or a CONFLICT failure with code ``ALREADY_AWARDED``
        """
        existing = await self.session.scalar(
            select(PointTransaction.id).where(
                PointTransaction.user_id == user_id,
                PointTransaction.reason == reason,
                PointTransaction.reference_id == reference_id,
            )
        )
        if existing is not None:
            return Result.failure(ActionError.conflict("Points already awarded", ALREADY_AWARDED))

        # Ledger insert and balance increment commit together or not at all
        try:
            self.session.add(
                PointTransaction(user_id=user_id, amount=amount, reason=reason, reference_id=reference_id)
            )
            await self.session.flush()
            await self.session.execute(
                update(User).where(User.id == user_id).values(points=User.points + amount)
            )
            await self.session.commit()
        except IntegrityError:
            # A concurrent award won the race on the unique key
            await self.session.rollback()
            return Result.failure(ActionError.conflict("Points already awarded", ALREADY_AWARDED))
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception(
                "[AWARD_POINTS_ERROR]",
                extra={"user_id": str(user_id), "reason": str(reason), "reference_id": reference_id},
            )
            return Result.failure(ActionError.internal("Failed to award points", TRANSACTION_FAILED))

        logger.info(
            "Awarded %d points to %s for %s (%s)", amount, user_id, reason, reference_id
        )
        return Result.success(amount)

    async def check_module_completion(self, user_id: UUID, chapter_id: UUID) -> Result[bool]:
        """Award module-completion points when every lesson in the chapter is completed."""
        lesson_ids = set((await self.session.scalars(select(Lesson.id).where(Lesson.chapter_id == chapter_id))).all())
        if not lesson_ids:
            return Result.success(False)

        completed_ids = set(
            (
                await self.session.scalars(
                    select(UserProgress.lesson_id).where(
                        UserProgress.user_id == user_id,
                        UserProgress.is_completed.is_(True),
                        UserProgress.lesson_id.in_(lesson_ids),
                    )
                )
            ).all()
        )
        if not lesson_ids <= completed_ids:
            return Result.success(False)

        award = await self.award_points(
            user_id, self.settings.MODULE_COMPLETION_POINTS, PointReason.MODULE_COMPLETED, str(chapter_id)
        )
        return self._rule_outcome(award)

    async def check_module_quizzes_passed(self, user_id: UUID, chapter_id: UUID) -> Result[bool]:
        """Award quiz-mastery points when every QUIZ lesson in the chapter has a passing attempt.

        Re-scans all passed attempts on every call, so a failed submission
        triggers a harmless re-check.
        """
        quiz_lesson_ids = set(
            (
                await self.session.scalars(
                    select(Lesson.id).where(Lesson.chapter_id == chapter_id, Lesson.type == LessonType.QUIZ)
                )
            ).all()
        )
        if not quiz_lesson_ids:
            return Result.success(False)

        passed_ids = set(
            (
                await self.session.scalars(
                    select(UserQuizAttempt.lesson_id).where(
                        UserQuizAttempt.user_id == user_id,
                        UserQuizAttempt.passed.is_(True),
                        UserQuizAttempt.lesson_id.in_(quiz_lesson_ids),
                    )
                )
            ).all()
        )
        if not quiz_lesson_ids <= passed_ids:
            return Result.success(False)

        award = await self.award_points(
            user_id, self.settings.MODULE_QUIZ_MASTERY_POINTS, PointReason.MODULE_QUIZZES_PASSED, str(chapter_id)
        )
        return self._rule_outcome(award)

    async def log_video_watch_time(self, user_id: UUID, today: str | None = None) -> Result[int]:
        """Add one minute to today's watch time; the threshold minute triggers the streak update.

        Intended for a ~60s client heartbeat while a video plays. The trigger is an
        exact match on the threshold, so a skipped tick past it skips the streak
        for that day.
        """
        today = today or utc_date_string()
        stmt = insert_for(self.session, DailyWatchTime).values(user_id=user_id, date=today, minutes_watched=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[DailyWatchTime.user_id, DailyWatchTime.date],
            set_={
                "minutes_watched": DailyWatchTime.minutes_watched + 1,
                "updated_at": datetime.now(UTC),
            },
        ).returning(DailyWatchTime.minutes_watched)

        try:
            minutes = (await self.session.execute(stmt)).scalar_one()
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("[LOG_WATCH_TIME_ERROR]", extra={"user_id": str(user_id)})
            return Result.failure(ActionError.internal("Failed to log watch time"))

        if minutes == self.settings.STREAK_MINUTES_THRESHOLD:
            streak = await self.update_streak(user_id, today)
            if not streak.ok:
                logger.warning("Streak update failed for %s: %s", user_id, streak.error.message)

        return Result.success(minutes)

    async def update_streak(self, user_id: UUID, today: str) -> Result[int]:
        """Advance, keep or reset the user's daily streak for ``today`` (``YYYY-MM-DD``).

        Same day: no-op. Last active yesterday: +1. Otherwise: reset to 1. Every
        positive multiple of the cycle length awards the cycle bonus once, keyed
        by streak length and date.
        """
        user = await self.session.get(User, user_id)
        if user is None:
            return Result.failure(ActionError.not_found("User"))

        last_active = utc_date_string(user.streak_last_active_date) if user.streak_last_active_date else None
        if last_active == today:
            return Result.success(user.current_streak)

        new_streak = user.current_streak + 1 if last_active == previous_date_string(today) else 1
        user.current_streak = new_streak
        user.longest_streak = max(user.longest_streak, new_streak)
        user.streak_last_active_date = start_of_day(today)

        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("[UPDATE_STREAK_ERROR]", extra={"user_id": str(user_id)})
            return Result.failure(ActionError.internal("Failed to update streak"))

        cycle = self.settings.STREAK_CYCLE_DAYS
        if new_streak > 0 and new_streak % cycle == 0:
            await self.award_points(
                user_id,
                self.settings.STREAK_CYCLE_POINTS,
                PointReason.STREAK_7_DAYS,
                f"STREAK_{new_streak}_{today}",
            )

        return Result.success(new_streak)

    async def get_leaderboard(self) -> Result[list[User]]:
        """Top learners by points."""
        result = await self.session.execute(
            select(User)
            .where(User.role == UserRole.LEARNER)
            .order_by(User.points.desc(), User.created_at.asc())
            .limit(self.settings.LEADERBOARD_SIZE)
        )
        return Result.success(list(result.scalars().all()))

    async def get_my_stats(self, user_id: UUID, today: str | None = None) -> Result[dict[str, Any]]:
        """Points, streaks and today's watch minutes for one user."""
        user = await self.session.get(User, user_id, populate_existing=True)
        if user is None:
            return Result.failure(ActionError.not_found("User"))

        today = today or utc_date_string()
        minutes = await self.session.scalar(
            select(DailyWatchTime.minutes_watched).where(
                DailyWatchTime.user_id == user_id, DailyWatchTime.date == today
            )
        )
        return Result.success(
            {
                "points": user.points,
                "current_streak": user.current_streak,
                "longest_streak": user.longest_streak,
                "minutes_watched_today": minutes or 0,
                "streak_minutes_threshold": self.settings.STREAK_MINUTES_THRESHOLD,
            }
        )

    @staticmethod
    def _rule_outcome(award: Result[int]) -> Result[bool]:
        # A duplicate award still means the rule is satisfied
        if award.ok or (award.error and award.error.code == ALREADY_AWARDED):
            return Result.success(True)
        return Result.failure(award.error)
