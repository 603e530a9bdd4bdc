"""Result assembly.

Pure data shaping: merges executor output and facets into the response
contract and computes pagination.
"""

from dataclasses import dataclass, field
from typing import Any

from marketsearch.search.executor import ExecutionResult
from marketsearch.search.facets import Facet


@dataclass
class Pagination:
    """Pagination metadata.

    Attributes:
        page: Current page (1-indexed).
        limit: Items per page.
        total: Total count across pages.
    """

    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        """Calculate total pages."""
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_next(self) -> bool:
        """Check if there's a next page."""
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        """Check if there's a previous page."""
        return self.page > 1


@dataclass
class QueryEcho:
    """The normalized query that was actually executed."""

    q: str | None
    category: str | None
    filters: dict[str, Any]
    page: int
    limit: int
    sort: str


@dataclass
class SearchResult:
    """Complete search response."""

    results: list[dict[str, Any]]
    facets: list[Facet]
    pagination: Pagination
    query: QueryEcho
    execution_time: float


@dataclass
class FacetsResult:
    """Standalone facet preview."""

    facets: list[Facet] = field(default_factory=list)
    total_results: int = 0
    applied_filters: dict[str, Any] = field(default_factory=dict)


def assemble(
    execution: ExecutionResult,
    facets: list[Facet],
    query: QueryEcho,
) -> SearchResult:
    """Build the search response.

    Args:
        execution: Results page and total from the executor.
        facets: Facets from the facet engine.
        query: Normalized query echo (carries page and limit).

    Returns:
        Assembled search result.
    """
    return SearchResult(
        results=[hit.listing for hit in execution.hits],
        facets=facets,
        pagination=Pagination(page=query.page, limit=query.limit, total=execution.total),
        query=query,
        execution_time=execution.elapsed_ms,
    )
