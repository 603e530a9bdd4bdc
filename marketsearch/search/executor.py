"""Search executor.

Runs a compiled predicate against the listing store: one sorted page of
results and the total match count, fetched concurrently.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from marketsearch.catalog.repository import ListingRepository
from marketsearch.search.predicate import Predicate

logger = structlog.get_logger()

# Largest OFFSET a store accepts (signed 64-bit)
MAX_OFFSET = 2**63 - 1


class SortMode(str, Enum):
    """Result orderings."""

    RELEVANCE = "relevance"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    NEWEST = "newest"
    POPULAR = "popular"

    @classmethod
    def parse(cls, raw: str | None) -> "SortMode":
        """Parse a sort key, falling back to relevance.

        Args:
            raw: Sort key from the request.

        Returns:
            Matching sort mode, or RELEVANCE for unknown keys.
        """
        if not raw:
            return cls.RELEVANCE
        try:
            return cls(raw.strip().lower())
        except ValueError:
            logger.debug("Unknown sort key, using relevance", sort=raw)
            return cls.RELEVANCE


@dataclass
class SearchHit:
    """One result listing with its relevance score."""

    listing: dict[str, Any]
    score: float | None = None


@dataclass
class ExecutionResult:
    """Page of results plus the total match count.

    Attributes:
        hits: Listings on the requested page.
        total: Matches across all pages.
        elapsed_ms: Wall-clock time of the fetch and count.
    """

    hits: list[SearchHit] = field(default_factory=list)
    total: int = 0
    elapsed_ms: float = 0.0


class SearchExecutor:
    """Executes predicates with sorting and pagination.

    Example usage:
        executor = SearchExecutor(repository)
        result = await executor.execute(predicate, SortMode.PRICE_ASC, page=2, limit=20)
    """

    def __init__(self, repository: ListingRepository) -> None:
        """Initialize executor.

        Args:
            repository: Listing store queries.
        """
        self.repository = repository

    async def execute(
        self,
        predicate: Predicate,
        sort: SortMode = SortMode.RELEVANCE,
        page: int = 1,
        limit: int = 20,
    ) -> ExecutionResult:
        """Fetch one page and the total count for a predicate.

        Args:
            predicate: Compiled search predicate.
            sort: Result ordering.
            page: Page number (1-indexed).
            limit: Results per page.

        Returns:
            Page of hits, total count and elapsed time.

        Raises:
            StoreError: If either query fails. No partial result is returned.
        """
        offset = (page - 1) * limit
        start_time = time.perf_counter()

        if offset > MAX_OFFSET:
            # No store holds this many rows, so the page is past the end
            logger.debug("Page beyond any result, counting only", page=page, limit=limit)
            rows, total = [], await self.repository.count(predicate)
        else:
            rows, total = await asyncio.gather(
                self.repository.find(predicate, sort=sort.value, limit=limit, offset=offset),
                self.repository.count(predicate),
            )

        elapsed_ms = (time.perf_counter() - start_time) * 1000

        hits = []
        for listing, score in rows:
            data = listing.to_dict()
            if score is not None:
                data["score"] = score
            hits.append(SearchHit(listing=data, score=score))

        return ExecutionResult(hits=hits, total=total, elapsed_ms=round(elapsed_ms, 2))
