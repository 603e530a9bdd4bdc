"""Attribute schema registry.

Read-only access to categories and their attribute schemas. Categories are
maintained by an external admin process; search only looks them up.
"""

import asyncio

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketsearch.catalog.models import Category as CategoryRow
from marketsearch.catalog.schema import SLUG_PATTERN, Category
from marketsearch.domain.exceptions import (
    CategoryNotFoundError,
    QueryTimeoutError,
    StoreUnavailableError,
)

logger = structlog.get_logger()


class CategoryRegistry:
    """Lookup of active categories by slug.

    Example usage:
        registry = CategoryRegistry(sessions)
        try:
            category = await registry.get_by_slug("televisions")
        except CategoryNotFoundError:
            category = None
    """

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        timeout: float = 10.0,
    ) -> None:
        """Initialize registry with a session factory.

        Args:
            sessions: Factory for per-query sessions.
            timeout: Seconds allowed for each lookup.
        """
        self.sessions = sessions
        self.timeout = timeout

    async def get_by_slug(self, slug: str) -> Category:
        """Get an active category by slug.

        Args:
            slug: Category slug (case and surrounding space are ignored).

        Returns:
            Category with its attribute schema in declaration order.

        Raises:
            CategoryNotFoundError: If no active category has this slug.
            StoreUnavailableError: If the store cannot be queried.
            QueryTimeoutError: If the lookup exceeds the timeout.
        """
        normalized = (slug or "").strip().lower()
        if not SLUG_PATTERN.match(normalized):
            raise CategoryNotFoundError(slug)

        query = select(CategoryRow).where(
            CategoryRow.slug == normalized,
            CategoryRow.is_active.is_(True),
        )
        row = await self._fetch("get_by_slug", query, one=True)
        if row is None:
            raise CategoryNotFoundError(slug)
        return row.to_record()

    async def list_active(self) -> list[Category]:
        """Get all active categories.

        Returns:
            Categories ordered by sort order, then name.
        """
        query = (
            select(CategoryRow)
            .where(CategoryRow.is_active.is_(True))
            .order_by(CategoryRow.sort_order, CategoryRow.name)
        )
        rows = await self._fetch("list_active", query, one=False)
        return [row.to_record() for row in rows]

    async def _fetch(self, operation: str, query, one: bool):
        async def _execute():
            async with self.sessions() as session:
                result = await session.execute(query)
                if one:
                    return result.scalar_one_or_none()
                return list(result.scalars().all())

        try:
            return await asyncio.wait_for(_execute(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise QueryTimeoutError(operation, self.timeout)
        except (SQLAlchemyError, OSError) as e:
            logger.error("Category lookup failed", operation=operation, error=str(e))
            raise StoreUnavailableError(operation, str(e)) from e
