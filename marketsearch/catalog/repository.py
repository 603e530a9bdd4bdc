"""Listing repository for read-only search queries.

Translates search predicates into SQLAlchemy statements. Every public
method opens its own session so the search and facet layers can run many
queries concurrently, and every query is bounded by a timeout.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from sqlalchemy import ColumnElement, and_, case, func, literal, or_, select, true
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import joinedload

from marketsearch.catalog.attribute_sql import AttributeMatch, AttributeNumber
from marketsearch.catalog.models import Listing
from marketsearch.domain.exceptions import QueryTimeoutError, StoreUnavailableError
from marketsearch.search.predicate import (
    AttributeIn,
    AttributeRange,
    CategoryMatch,
    CityContains,
    Condition,
    Predicate,
    PriceRange,
    Scalar,
    StatusIs,
    TextMatch,
)

logger = structlog.get_logger()

T = TypeVar("T")

# Relevance weight per text field
TEXT_WEIGHTS = (
    (Listing.title, 10),
    (Listing.description, 5),
    (Listing.supplier_name, 3),
)


# ============================================================================
# Predicate Translation
# ============================================================================


def attribute_equals(key: str, value: Scalar) -> ColumnElement[bool]:
    """Match one JSON attribute against a scalar, typed by the value.

    A list-valued attribute matches when any element equals the value.

    Args:
        key: Attribute key.
        value: Value to compare with.

    Returns:
        SQL condition.
    """
    return AttributeMatch(Listing.attributes, key, value)


def attribute_number(key: str) -> ColumnElement[float]:
    """Numeric value of an attribute, NULL for non-numbers."""
    return AttributeNumber(Listing.attributes, key)


def text_condition(match: TextMatch) -> ColumnElement[bool]:
    """Any term occurring in any weighted text field."""
    return or_(
        *(
            column.icontains(term, autoescape=True)
            for term in match.terms
            for column, _ in TEXT_WEIGHTS
        )
    )


def relevance_score(match: TextMatch) -> ColumnElement[Any]:
    """Sum of field weights over matching terms."""
    score: ColumnElement[Any] = literal(0)
    for term in match.terms:
        for column, weight in TEXT_WEIGHTS:
            score = score + case((column.icontains(term, autoescape=True), weight), else_=0)
    return score


def condition_clause(condition: Condition) -> ColumnElement[bool]:
    """Translate one predicate condition into SQL.

    Args:
        condition: Predicate condition.

    Returns:
        SQL condition.
    """
    if isinstance(condition, TextMatch):
        return text_condition(condition)

    if isinstance(condition, CategoryMatch):
        return Listing.category_id == condition.category_id

    if isinstance(condition, StatusIs):
        return Listing.status == condition.status

    if isinstance(condition, PriceRange):
        bounds = []
        if condition.minimum is not None:
            bounds.append(Listing.price >= condition.minimum)
        if condition.maximum is not None:
            bounds.append(Listing.price <= condition.maximum)
        return and_(true(), *bounds)

    if isinstance(condition, CityContains):
        return Listing.city.icontains(condition.value, autoescape=True)

    if isinstance(condition, AttributeIn):
        return or_(*(attribute_equals(condition.key, v) for v in condition.values))

    if isinstance(condition, AttributeRange):
        element = attribute_number(condition.key)
        bounds = []
        if condition.minimum is not None:
            bounds.append(element >= condition.minimum)
        if condition.maximum is not None:
            bounds.append(element <= condition.maximum)
        return and_(true(), *bounds)

    raise TypeError(f"Unsupported condition: {condition!r}")


def where_clauses(predicate: Predicate) -> list[ColumnElement[bool]]:
    """Translate a whole predicate into a list of ANDed SQL conditions."""
    return [condition_clause(c) for c in predicate.conditions]


# ============================================================================
# Repository
# ============================================================================


class ListingRepository:
    """Repository for listing search queries.

    Example usage:
        sessions = await database.connect()
        repo = ListingRepository(sessions, timeout=10.0)
        rows = await repo.find(predicate, sort="price_asc", limit=20)
        total = await repo.count(predicate)
    """

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        timeout: float = 10.0,
    ) -> None:
        """Initialize repository with a session factory.

        Args:
            sessions: Factory for per-query sessions.
            timeout: Seconds allowed for each query.
        """
        self.sessions = sessions
        self.timeout = timeout

    async def _run(
        self,
        operation: str,
        query: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        """Run a query in its own session under the timeout.

        Args:
            operation: Operation name for errors and logs.
            query: Coroutine function receiving the session.

        Returns:
            The query result.

        Raises:
            QueryTimeoutError: If the query exceeds the timeout.
            StoreUnavailableError: If the store rejects the query.
        """

        async def _execute() -> T:
            async with self.sessions() as session:
                return await query(session)

        try:
            return await asyncio.wait_for(_execute(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Store query timed out", operation=operation, timeout=self.timeout)
            raise QueryTimeoutError(operation, self.timeout)
        except (SQLAlchemyError, OSError) as e:
            logger.error("Store query failed", operation=operation, error=str(e))
            raise StoreUnavailableError(operation, str(e)) from e

    async def find(
        self,
        predicate: Predicate,
        sort: str = "relevance",
        limit: int = 20,
        offset: int = 0,
    ) -> list[tuple[Listing, float | None]]:
        """Find listings matching a predicate, sorted and paginated.

        Args:
            predicate: Search predicate.
            sort: Sort mode name.
            limit: Maximum results.
            offset: Result offset for pagination.

        Returns:
            Listings with their relevance score (None without text search).
        """
        text = predicate.text
        score = relevance_score(text) if text is not None else None

        columns: list[Any] = [Listing]
        if score is not None:
            columns.append(score.label("score"))

        query = (
            select(*columns)
            .options(joinedload(Listing.category))
            .where(*where_clauses(predicate))
            .order_by(*self._order_by(sort, score))
            .limit(limit)
            .offset(offset)
        )

        async def _query(session: AsyncSession) -> list[tuple[Listing, float | None]]:
            result = await session.execute(query)
            if score is None:
                return [(listing, None) for listing in result.scalars().all()]
            return [(row[0], float(row[1])) for row in result.all()]

        return await self._run("find", _query)

    async def count(self, predicate: Predicate) -> int:
        """Count listings matching a predicate.

        Args:
            predicate: Search predicate.

        Returns:
            Number of matching listings.
        """
        query = select(func.count(Listing.id)).where(*where_clauses(predicate))

        async def _query(session: AsyncSession) -> int:
            result = await session.execute(query)
            return result.scalar_one()

        return await self._run("count", _query)

    async def attribute_bounds(
        self,
        predicate: Predicate,
        key: str,
    ) -> tuple[float, float] | None:
        """Get min and max of a numeric attribute over matching listings.

        Args:
            predicate: Search predicate.
            key: Attribute key.

        Returns:
            (min, max), or None if no matching listing carries the attribute.
        """
        element = attribute_number(key)
        query = select(func.min(element), func.max(element)).where(*where_clauses(predicate))

        async def _query(session: AsyncSession) -> tuple[float, float] | None:
            result = await session.execute(query)
            low, high = result.one()
            if low is None or high is None:
                return None
            return float(low), float(high)

        return await self._run("attribute_bounds", _query)

    async def city_counts(
        self,
        predicate: Predicate,
        limit: int = 10,
    ) -> list[tuple[str, int]]:
        """Get distinct cities with their listing counts.

        The store decides which cities come back when more than ``limit``
        exist; no ordering is applied here.

        Args:
            predicate: Search predicate.
            limit: Maximum number of distinct cities.

        Returns:
            (city, count) pairs in store order.
        """
        query = (
            select(Listing.city, func.count(Listing.id))
            .where(*where_clauses(predicate))
            .group_by(Listing.city)
            .limit(limit)
        )

        async def _query(session: AsyncSession) -> list[tuple[str, int]]:
            result = await session.execute(query)
            return [(city, count) for city, count in result.all()]

        return await self._run("city_counts", _query)

    def _order_by(self, sort: str, score: ColumnElement[Any] | None) -> list[Any]:
        """Get ORDER BY columns for a sort mode.

        Every ordering ends with the primary key so pages never overlap.

        Args:
            sort: Sort mode name.
            score: Relevance expression when text search is active.

        Returns:
            SQLAlchemy order-by clauses.
        """
        orderings = {
            "price_asc": [Listing.price.asc()],
            "price_desc": [Listing.price.desc()],
            "newest": [Listing.created_at.desc()],
            "popular": [Listing.views.desc()],
        }
        if sort in orderings:
            columns = orderings[sort]
        elif score is not None:
            columns = [score.desc(), Listing.created_at.desc()]
        else:
            columns = [Listing.created_at.desc()]
        return [*columns, Listing.id.asc()]
