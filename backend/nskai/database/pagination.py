import math
from typing import Any, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")


class Paginator:
    """Helper class for handling offset pagination."""

    def __init__(self, page: int = 1, limit: int = 10) -> None:
        self.page = max(page, 1)
        self.limit = max(limit, 1)
        self.offset = (self.page - 1) * self.limit

    async def paginate(self, session: AsyncSession, query: Select[tuple[T]]) -> tuple[list[T], int]:
        """
        Paginate a query and return items with total count.

        The count runs against the same filtered query as the page itself.

        Parameters
        ----------
        session : AsyncSession
            Database session
        query : Select
            Base query to paginate

        Returns
        -------
        tuple[list[T], int]
            List of items and total count
        """
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = await session.scalar(count_query) or 0

        paginated_query = query.offset(self.offset).limit(self.limit)
        result = await session.execute(paginated_query)
        items = result.scalars().all()

        return list(items), total

    def page_info(self, total: int) -> dict[str, Any]:
        """Build the page metadata returned alongside paginated items."""
        total_pages = math.ceil(total / self.limit) if total else 0
        return {
            "total_count": total,
            "total_pages": total_pages,
            "current_page": self.page,
            "has_next_page": self.page < total_pages,
            "has_previous_page": self.page > 1,
        }
