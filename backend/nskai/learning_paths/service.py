"""Learning path curation, catalog and enrollment."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from nskai.auth.context import AuthContext
from nskai.core.result import ActionError, Result
from nskai.courses.models import Chapter, Course
from nskai.learning_paths.models import LearningPath, LearningPathCourse, UserLearningPath
from nskai.users.models import User


logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20
ALREADY_ENROLLED = "ALREADY_ENROLLED"


async def path_total_price(session: AsyncSession, path_id: UUID) -> int:
    """Bundle price of a path: the sum of its courses' prices in kobo."""
    total = await session.scalar(
        select(func.coalesce(func.sum(Course.price), 0))
        .select_from(Course)
        .join(LearningPathCourse, LearningPathCourse.course_id == Course.id)
        .where(LearningPathCourse.learning_path_id == path_id)
    )
    return int(total or 0)


async def path_price(session: AsyncSession, path: LearningPath) -> int:
    """What a learner pays for ``path``: its explicit price, or the bundle sum when none is set."""
    if path.price is not None:
        return path.price
    return await path_total_price(session, path.id)


class LearningPathService:
    """Service for ordered course bundles."""

    def __init__(self, auth: AuthContext) -> None:
        self.auth = auth
        self.session = auth.session

    async def _commit(self, action: str, **context: str) -> Result[None]:
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("[%s]", action, extra=context)
            return Result.failure(ActionError.internal(f"Failed to {action.lower().replace('_', ' ')}"))
        return Result.success()

    # Admin curation

    async def create_learning_path(self, title: str, description: str | None = None, price: int | None = None) -> Result[LearningPath]:
        admin = self.auth.require_admin()
        if not admin.ok:
            return Result.failure(admin.error)

        path = LearningPath(title=title, description=description, price=price, is_published=False)
        self.session.add(path)
        committed = await self._commit("CREATE_LEARNING_PATH")
        if not committed.ok:
            return Result.failure(committed.error)
        return Result.success(path)

    async def get_admin_learning_paths(self) -> Result[list[LearningPath]]:
        admin = self.auth.require_admin()
        if not admin.ok:
            return Result.failure(admin.error)

        paths = await self.session.scalars(select(LearningPath).order_by(LearningPath.created_at.desc()))
        return Result.success(list(paths.all()))

    async def search_courses_for_path(self, query: str = "") -> Result[list[Course]]:
        """Published courses whose title matches ``query``, for the path editor."""
        admin = self.auth.require_admin()
        if not admin.ok:
            return Result.failure(admin.error)

        stmt = select(Course).where(Course.is_published.is_(True)).options(selectinload(Course.tutor))
        if query:
            stmt = stmt.where(Course.title.ilike(f"%{query}%"))
        courses = await self.session.scalars(stmt.order_by(Course.created_at.desc()).limit(SEARCH_LIMIT))
        return Result.success(list(courses.all()))

    async def add_course_to_path(self, path_id: UUID, course_id: UUID) -> Result[LearningPathCourse]:
        """Append a course to the end of the path; a course may appear only once."""
        admin = self.auth.require_admin()
        if not admin.ok:
            return Result.failure(admin.error)

        if await self.session.get(LearningPath, path_id) is None:
            return Result.failure(ActionError.not_found("Learning path"))
        if await self.session.get(Course, course_id) is None:
            return Result.failure(ActionError.not_found("Course"))

        existing = (
            await self.session.scalars(
                select(LearningPathCourse).where(LearningPathCourse.learning_path_id == path_id)
            )
        ).all()
        if any(mapping.course_id == course_id for mapping in existing):
            return Result.failure(ActionError.conflict("Course is already in bundle."))

        next_position = max((mapping.position for mapping in existing), default=0) + 1
        mapping = LearningPathCourse(learning_path_id=path_id, course_id=course_id, position=next_position)
        self.session.add(mapping)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return Result.failure(ActionError.conflict("Course is already in bundle."))
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("[ADD_COURSE_TO_PATH]", extra={"path_id": str(path_id)})
            return Result.failure(ActionError.internal("Failed to add course"))

        return Result.success(mapping)

    async def remove_course_from_path(self, mapping_id: UUID) -> Result[None]:
        admin = self.auth.require_admin()
        if not admin.ok:
            return Result.failure(admin.error)

        mapping = await self.session.get(LearningPathCourse, mapping_id)
        if mapping is None:
            return Result.failure(ActionError.not_found("Path course"))

        await self.session.delete(mapping)
        return await self._commit("REMOVE_COURSE_FROM_PATH", mapping_id=str(mapping_id))

    async def publish_learning_path(self, path_id: UUID) -> Result[LearningPath]:
        """Publish a path; an empty path cannot be published."""
        admin = self.auth.require_admin()
        if not admin.ok:
            return Result.failure(admin.error)

        path = await self.session.get(LearningPath, path_id)
        if path is None:
            return Result.failure(ActionError.not_found("Learning path"))

        course_count = await self.session.scalar(
            select(func.count(LearningPathCourse.id)).where(LearningPathCourse.learning_path_id == path_id)
        )
        if not course_count:
            return Result.failure(
                ActionError.validation("Cannot publish an empty learning path. Add at least one course.")
            )

        path.is_published = True
        committed = await self._commit("PUBLISH_LEARNING_PATH", path_id=str(path_id))
        if not committed.ok:
            return Result.failure(committed.error)
        return Result.success(path)

    async def unpublish_learning_path(self, path_id: UUID) -> Result[LearningPath]:
        admin = self.auth.require_admin()
        if not admin.ok:
            return Result.failure(admin.error)

        path = await self.session.get(LearningPath, path_id)
        if path is None:
            return Result.failure(ActionError.not_found("Learning path"))

        path.is_published = False
        committed = await self._commit("UNPUBLISH_LEARNING_PATH", path_id=str(path_id))
        if not committed.ok:
            return Result.failure(committed.error)
        return Result.success(path)

    # Catalog

    async def get_learning_path_details(self, path_id: UUID) -> Result[dict[str, Any]]:
        """
        A path with its attached courses in order and the sum of their prices.

        Returns
        -------
        Result[dict]
            Path fields plus ``attached_courses`` and ``total_price`` (kobo)
        """
        path = await self.session.get(LearningPath, path_id)
        if path is None:
            return Result.failure(ActionError.not_found("Learning path"))

        rows = (
            await self.session.execute(
                select(
                    LearningPathCourse.id.label("mapping_id"),
                    LearningPathCourse.position,
                    Course.id.label("course_id"),
                    Course.title,
                    Course.is_published,
                    Course.image_url,
                    Course.price,
                    User.first_name.label("tutor_first_name"),
                    User.last_name.label("tutor_last_name"),
                )
                .join(Course, LearningPathCourse.course_id == Course.id)
                .outerjoin(User, Course.tutor_id == User.id)
                .where(LearningPathCourse.learning_path_id == path_id)
                .order_by(LearningPathCourse.position)
            )
        ).all()

        attached = [dict(row._mapping) for row in rows]
        return Result.success(
            {
                "id": path.id,
                "title": path.title,
                "description": path.description,
                "price": path.price,
                "is_published": path.is_published,
                "image_url": path.image_url,
                "created_at": path.created_at,
                "attached_courses": attached,
                "total_price": sum(course["price"] or 0 for course in attached),
            }
        )

    async def get_published_learning_paths(self) -> Result[list[dict[str, Any]]]:
        """Published paths, newest first, each with its course count."""
        course_count = (
            select(func.count(LearningPathCourse.id))
            .where(LearningPathCourse.learning_path_id == LearningPath.id)
            .correlate(LearningPath)
            .scalar_subquery()
        )
        rows = (
            await self.session.execute(
                select(LearningPath, course_count.label("course_count"))
                .where(LearningPath.is_published.is_(True))
                .order_by(LearningPath.created_at.desc())
            )
        ).all()

        return Result.success(
            [
                {
                    "id": path.id,
                    "title": path.title,
                    "description": path.description,
                    "price": path.price,
                    "image_url": path.image_url,
                    "created_at": path.created_at,
                    "course_count": count or 0,
                }
                for path, count in rows
            ]
        )

    # Learner

    async def enroll_in_learning_path(self, path_id: UUID) -> Result[UserLearningPath]:
        """Free enrollment; priced paths go through payment verification instead."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)
        user = user_result.value

        path = await self.session.get(LearningPath, path_id)
        if path is None or not path.is_published:
            return Result.failure(ActionError.not_found("Learning path"))
        if await path_price(self.session, path):
            return Result.failure(ActionError.validation("This learning path requires payment"))

        existing = await self.session.scalar(
            select(UserLearningPath.id).where(
                UserLearningPath.user_id == user.id, UserLearningPath.learning_path_id == path_id
            )
        )
        if existing is not None:
            return Result.failure(ActionError.conflict("Already enrolled in this path.", ALREADY_ENROLLED))

        enrollment = UserLearningPath(user_id=user.id, learning_path_id=path_id, amount=0)
        self.session.add(enrollment)
        committed = await self._commit("ENROLL_PATH", path_id=str(path_id))
        if not committed.ok:
            return Result.failure(committed.error)

        logger.info("User %s enrolled in learning path %s", user.id, path_id)
        return Result.success(enrollment)

    async def get_path_lessons(self, path_id: UUID) -> Result[dict[str, Any]]:
        """The full track (courses -> chapters -> lessons) for an enrolled learner."""
        user_result = await self.auth.require_user()
        if not user_result.ok:
            return Result.failure(user_result.error)

        enrollment = await self.session.scalar(
            select(UserLearningPath.id).where(
                UserLearningPath.user_id == user_result.value.id, UserLearningPath.learning_path_id == path_id
            )
        )
        if enrollment is None:
            return Result.failure(ActionError.forbidden("Not enrolled in this learning path"))

        path = await self.session.get(LearningPath, path_id)
        if path is None:
            return Result.failure(ActionError.not_found("Learning path"))

        courses = (
            await self.session.scalars(
                select(Course)
                .join(LearningPathCourse, LearningPathCourse.course_id == Course.id)
                .where(LearningPathCourse.learning_path_id == path_id)
                .order_by(LearningPathCourse.position)
                .options(selectinload(Course.chapters).selectinload(Chapter.lessons))
            )
        ).all()
        return Result.success({"path": path, "courses": list(courses)})
