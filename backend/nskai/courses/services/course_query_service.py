"""Course query service for read operations on courses."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from nskai.auth.config import SessionRole
from nskai.auth.context import AuthContext
from nskai.core.result import ActionError, Result
from nskai.courses.models import Chapter, Course
from nskai.database.pagination import Paginator
from nskai.learning_paths.models import LearningPathCourse, UserLearningPath
from nskai.payments.models import Purchase
from nskai.users.models import User, UserRole


logger = logging.getLogger(__name__)


def search_filter(search: str | None) -> Any:
    """Case-insensitive substring match over title and description, or ``None``."""
    if not search:
        return None
    pattern = f"%{search}%"
    return or_(Course.title.ilike(pattern), Course.description.ilike(pattern))


async def has_course_access(session: AsyncSession, user_id: UUID, course_id: UUID) -> bool:
    """True when the user purchased the course or is enrolled in a path containing it."""
    purchased = await session.scalar(
        select(Purchase.id).where(Purchase.user_id == user_id, Purchase.course_id == course_id).limit(1)
    )
    if purchased is not None:
        return True

    via_path = await session.scalar(
        select(UserLearningPath.id)
        .join(LearningPathCourse, LearningPathCourse.learning_path_id == UserLearningPath.learning_path_id)
        .where(UserLearningPath.user_id == user_id, LearningPathCourse.course_id == course_id)
        .limit(1)
    )
    return via_path is not None


class CourseQueryService:
    """Service for querying course data."""

    def __init__(self, auth: AuthContext) -> None:
        self.auth = auth
        self.session = auth.session

    async def _paginate(self, conditions: list[Any], page: int, limit: int) -> dict[str, Any]:
        query: Select[tuple[Course]] = select(Course).options(selectinload(Course.tutor))
        active = [condition for condition in conditions if condition is not None]
        if active:
            query = query.where(and_(*active))
        query = query.order_by(Course.created_at.desc())

        paginator = Paginator(page=page, limit=limit)
        items, total = await paginator.paginate(self.session, query)
        return {"items": items, **paginator.page_info(total)}

    async def get_tutor_courses(self, page: int = 1, limit: int = 20, search: str | None = None) -> Result[dict[str, Any]]:
        """Courses owned by the calling tutor, newest first."""
        tutor_result = await self.auth.require_tutor()
        if not tutor_result.ok:
            return Result.failure(tutor_result.error)

        conditions = [Course.tutor_id == tutor_result.value.id, search_filter(search)]
        return Result.success(await self._paginate(conditions, page, limit))

    async def get_all_courses(
        self, page: int = 1, limit: int = 20, search: str | None = None, published_only: bool = False
    ) -> Result[dict[str, Any]]:
        """Every course on the platform; org admins and tutors only."""
        signed_in = self.auth.require_signed_in()
        if not signed_in.ok:
            return Result.failure(signed_in.error)
        if self.auth.role not in (SessionRole.ORG_ADMIN, SessionRole.TUTOR):
            return Result.failure(ActionError.forbidden("Admin or tutor access required"))

        conditions = [search_filter(search)]
        if published_only:
            conditions.append(Course.is_published.is_(True))
        return Result.success(await self._paginate(conditions, page, limit))

    async def get_marketplace_courses(
        self, page: int = 1, limit: int = 20, search: str | None = None
    ) -> Result[dict[str, Any]]:
        """Published courses for the public catalog."""
        conditions = [Course.is_published.is_(True), search_filter(search)]
        return Result.success(await self._paginate(conditions, page, limit))

    async def get_course_by_id(self, course_id: UUID) -> Result[Course]:
        """Course with tutor and its chapters and lessons in position order."""
        course = await self.session.scalar(
            select(Course)
            .where(Course.id == course_id)
            .options(
                selectinload(Course.tutor),
                selectinload(Course.chapters).selectinload(Chapter.lessons),
            )
        )
        if course is None:
            return Result.failure(ActionError.not_found("Course"))
        return Result.success(course)

    async def verify_course_access(self, course_id: UUID) -> Result[bool]:
        """Whether the caller may view the full course."""
        user = await self.auth.get_user()
        if user is None:
            return Result.success(False)
        return Result.success(await has_course_access(self.session, user.id, course_id))

    async def get_tutor_public_profile(self, tutor_id: UUID) -> Result[dict[str, Any]]:
        """Public tutor page: profile fields, published courses and distinct student count."""
        tutor = await self.session.get(User, tutor_id)
        if tutor is None or tutor.role != UserRole.TUTOR:
            return Result.failure(ActionError.not_found("Tutor"))

        courses = (
            await self.session.scalars(
                select(Course)
                .where(Course.tutor_id == tutor_id, Course.is_published.is_(True))
                .options(selectinload(Course.tutor))
                .order_by(Course.created_at.desc())
            )
        ).all()
        total_students = await self.session.scalar(
            select(func.count(func.distinct(Purchase.user_id)))
            .join(Course, Purchase.course_id == Course.id)
            .where(Course.tutor_id == tutor_id)
        )

        return Result.success(
            {
                "id": tutor.id,
                "first_name": tutor.first_name,
                "last_name": tutor.last_name,
                "image_url": tutor.image_url,
                "bio": tutor.bio,
                "expertise": tutor.expertise,
                "total_students": total_students or 0,
                "courses": list(courses),
            }
        )

    async def get_recommended_courses(self, limit: int = 4) -> Result[list[Course]]:
        """
        Published courses matching the caller's saved interests.

        Each interest is matched as a substring of the title or description.
        Falls back to the newest published courses when the caller has no
        interests or nothing matches.

        Returns
        -------
        Result[list[Course]]
            Up to ``limit`` courses, empty for anonymous callers
        """
        user = await self.auth.get_user()
        if user is None:
            return Result.success([])

        base = (
            select(Course)
            .where(Course.is_published.is_(True))
            .options(selectinload(Course.tutor))
            .order_by(Course.created_at.desc())
            .limit(limit)
        )

        interests = [interest for interest in (user.interests or []) if interest]
        if interests:
            matches = or_(*(search_filter(interest) for interest in interests))
            recommended = (await self.session.scalars(base.where(matches))).all()
            if recommended:
                return Result.success(list(recommended))

        return Result.success(list((await self.session.scalars(base)).all()))
