"""Search application service.

Runs the request flow: normalize input, compile the predicate, then fetch
results and facets concurrently and assemble the response.
"""

import asyncio
import time
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketsearch.catalog.registry import CategoryRegistry
from marketsearch.catalog.repository import ListingRepository
from marketsearch.catalog.schema import Category
from marketsearch.domain.exceptions import SearchTimeoutError
from marketsearch.infrastructure.config import Settings, settings as default_settings
from marketsearch.search.assembler import FacetsResult, QueryEcho, SearchResult, assemble
from marketsearch.search.compiler import (
    FilterCompiler,
    normalize_limit,
    normalize_page,
    parse_filters,
)
from marketsearch.search.executor import SearchExecutor, SortMode
from marketsearch.search.facets import FacetEngine

logger = structlog.get_logger()


class SearchService:
    """Service for faceted listing search.

    Example usage:
        async with database.lease() as sessions:
            service = SearchService(sessions)
            result = await service.search(
                q="samsung",
                category="televisions",
                filters='{"priceMax": 50000}',
            )
    """

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        config: Settings | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize service with a session factory.

        Args:
            sessions: Factory for per-query sessions.
            config: Settings (defaults to the process settings).
            request_id: Request ID for log correlation.
        """
        self.config = config or default_settings
        self.request_id = request_id

        timeout = self.config.query_timeout_seconds
        self.registry = CategoryRegistry(sessions, timeout=timeout)
        self.repository = ListingRepository(sessions, timeout=timeout)
        self.compiler = FilterCompiler(self.registry)
        self.executor = SearchExecutor(self.repository)
        self.facet_engine = FacetEngine(
            self.repository,
            value_limit=self.config.facet_value_limit,
            location_limit=self.config.location_facet_limit,
            concurrency=self.config.facet_concurrency,
        )

    async def search(
        self,
        q: str | None = None,
        category: str | None = None,
        filters: str | dict[str, Any] | None = None,
        page: Any = None,
        limit: Any = None,
        sort: str | None = None,
    ) -> SearchResult:
        """Search listings and compute facets.

        Args:
            q: Free-text query.
            category: Category slug.
            filters: JSON-encoded (or already decoded) filter map.
            page: Page number, 1-indexed.
            limit: Results per page.
            sort: Sort key.

        Returns:
            Results, facets, pagination and the normalized query.

        Raises:
            StoreError: If the results or the count cannot be fetched.
            SearchTimeoutError: If the request exceeds its deadline.
        """
        return await self._with_deadline(
            self._search(q, category, filters, page, limit, sort)
        )

    async def _search(self, q, category, filters, page, limit, sort) -> SearchResult:
        page = normalize_page(page)
        limit = normalize_limit(limit, self.config.default_page_size, self.config.max_page_size)
        sort_mode = SortMode.parse(sort)
        filter_map = filters if isinstance(filters, dict) else parse_filters(filters)

        compiled = await self.compiler.compile(q=q, category_slug=category, filters=filter_map)

        facets_started = time.perf_counter()
        results_task = asyncio.ensure_future(
            self.executor.execute(compiled.predicate, sort_mode, page, limit)
        )
        facets_task = asyncio.ensure_future(
            self.facet_engine.compute_facets(
                compiled.category,
                compiled.predicate,
                compiled.applied_filters,
            )
        )
        try:
            execution, facets = await asyncio.gather(results_task, facets_task)
        except BaseException:
            facets_task.cancel()
            raise

        query = QueryEcho(
            q=(q or "").strip() or None,
            category=category or None,
            filters=compiled.applied_filters,
            page=page,
            limit=limit,
            sort=sort_mode.value,
        )

        logger.info(
            "Search completed",
            q=query.q,
            category=query.category,
            category_resolved=compiled.category is not None,
            total=execution.total,
            page=page,
            facet_count=len(facets),
            execution_ms=execution.elapsed_ms,
            facets_ms=round((time.perf_counter() - facets_started) * 1000, 2),
            request_id=self.request_id,
        )

        return assemble(execution, facets, query)

    async def facets(
        self,
        category: str | None = None,
        q: str | None = None,
        filters: str | dict[str, Any] | None = None,
        limit: Any = None,
    ) -> FacetsResult:
        """Compute facets and the total count without fetching results.

        Args:
            category: Category slug.
            q: Free-text query.
            filters: JSON-encoded (or already decoded) filter map.
            limit: Values kept per enum facet.

        Returns:
            Facets, total result count and the applied filters.

        Raises:
            StoreError: If the total count cannot be fetched.
            SearchTimeoutError: If the request exceeds its deadline.
        """
        return await self._with_deadline(self._facets(category, q, filters, limit))

    async def _facets(self, category, q, filters, limit) -> FacetsResult:
        value_limit = normalize_limit(
            limit,
            self.config.facet_value_limit,
            self.config.max_facet_value_limit,
        )
        filter_map = filters if isinstance(filters, dict) else parse_filters(filters)

        compiled = await self.compiler.compile(q=q, category_slug=category, filters=filter_map)

        count_task = asyncio.ensure_future(self.repository.count(compiled.predicate))
        facets_task = asyncio.ensure_future(
            self.facet_engine.compute_facets(
                compiled.category,
                compiled.predicate,
                compiled.applied_filters,
                limit=value_limit,
            )
        )
        try:
            total, facets = await asyncio.gather(count_task, facets_task)
        except BaseException:
            facets_task.cancel()
            raise

        logger.info(
            "Facets computed",
            category=category,
            category_resolved=compiled.category is not None,
            total=total,
            facet_count=len(facets),
            request_id=self.request_id,
        )

        return FacetsResult(
            facets=facets,
            total_results=total,
            applied_filters=compiled.applied_filters,
        )

    async def list_categories(self) -> list[Category]:
        """Get active categories for navigation.

        Returns:
            Active categories ordered by sort order and name.
        """
        return await self.registry.list_active()

    async def _with_deadline(self, operation):
        timeout = self.config.request_timeout_seconds
        try:
            return await asyncio.wait_for(operation, timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("Search deadline exceeded", timeout=timeout, request_id=self.request_id)
            raise SearchTimeoutError(timeout)
