"""Tests for the search executor and result assembly."""

import pytest

from marketsearch.catalog.repository import ListingRepository
from marketsearch.search.assembler import Pagination, QueryEcho, assemble
from marketsearch.search.executor import ExecutionResult, SearchExecutor, SearchHit, SortMode
from marketsearch.search.predicate import Predicate, StatusIs, TextMatch

ACTIVE = Predicate((StatusIs("active"),))


class TestSortMode:
    """Tests for sort key parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (None, SortMode.RELEVANCE),
            ("", SortMode.RELEVANCE),
            ("price_asc", SortMode.PRICE_ASC),
            (" PRICE_DESC ", SortMode.PRICE_DESC),
            ("newest", SortMode.NEWEST),
            ("popular", SortMode.POPULAR),
            ("cheapest", SortMode.RELEVANCE),
        ],
    )
    def test_parse(self, raw, expected) -> None:
        """Unknown keys fall back to relevance."""
        assert SortMode.parse(raw) is expected


class TestExecute:
    """Tests for fetching result pages."""

    @pytest.mark.asyncio
    async def test_page_and_total(self, sessions) -> None:
        """A page holds at most limit hits; total covers all pages."""
        executor = SearchExecutor(ListingRepository(sessions))

        result = await executor.execute(ACTIVE, SortMode.PRICE_ASC, page=1, limit=3)

        assert result.total == 10
        assert [hit.listing["id"] for hit in result.hits] == ["of-01", "sh-03", "of-02"]
        assert result.elapsed_ms >= 0

    @pytest.mark.asyncio
    async def test_pages_cover_all_results(self, sessions) -> None:
        """Walking every page yields each match exactly once."""
        executor = SearchExecutor(ListingRepository(sessions))

        seen: list[str] = []
        for page in range(1, 5):
            result = await executor.execute(ACTIVE, SortMode.RELEVANCE, page=page, limit=3)
            seen.extend(hit.listing["id"] for hit in result.hits)

        assert len(seen) == result.total
        assert len(set(seen)) == len(seen)

    @pytest.mark.asyncio
    async def test_page_past_end_is_empty(self, sessions) -> None:
        """Pages beyond the last one are empty, not errors."""
        executor = SearchExecutor(ListingRepository(sessions))

        result = await executor.execute(ACTIVE, SortMode.RELEVANCE, page=50, limit=20)

        assert result.hits == []
        assert result.total == 10

    @pytest.mark.asyncio
    async def test_huge_page_is_empty(self, sessions) -> None:
        """Offsets beyond any store's range still give an empty page."""
        executor = SearchExecutor(ListingRepository(sessions))

        result = await executor.execute(ACTIVE, SortMode.PRICE_ASC, page=10**18, limit=20)

        assert result.hits == []
        assert result.total == 10

    @pytest.mark.asyncio
    async def test_score_attached_for_text_search(self, sessions) -> None:
        """Text searches carry the relevance score on each listing."""
        executor = SearchExecutor(ListingRepository(sessions))
        predicate = ACTIVE.and_(TextMatch(("running",)))

        result = await executor.execute(predicate)

        assert [hit.listing["id"] for hit in result.hits] == ["sh-02", "sh-01"]
        assert result.hits[0].listing["score"] == 10.0
        assert result.hits[1].score == 5.0

    @pytest.mark.asyncio
    async def test_listing_shape(self, sessions) -> None:
        """Listings are nested and fall back to the placeholder image."""
        executor = SearchExecutor(ListingRepository(sessions))

        result = await executor.execute(ACTIVE, SortMode.PRICE_ASC, limit=1)
        listing = result.hits[0].listing

        assert listing["id"] == "of-01"
        assert listing["location"]["city"] == "Kolkata"
        assert listing["inventory"] == {"quantity": 0, "unit": "reams", "moq": 1}
        assert listing["images"] == ["/placeholder-product.jpg"]
        assert listing["is_available"] is False
        assert "score" not in listing


class TestPagination:
    """Tests for pagination metadata."""

    @pytest.mark.parametrize(
        "page,limit,total,pages,has_next,has_prev",
        [
            (1, 20, 0, 0, False, False),
            (1, 20, 45, 3, True, False),
            (3, 20, 45, 3, False, True),
            (4, 20, 45, 3, False, True),
            (1, 10, 10, 1, False, False),
        ],
    )
    def test_metadata(self, page, limit, total, pages, has_next, has_prev) -> None:
        """Total pages round up; next/prev follow the page number."""
        pagination = Pagination(page=page, limit=limit, total=total)

        assert pagination.total_pages == pages
        assert pagination.has_next is has_next
        assert pagination.has_prev is has_prev


class TestAssemble:
    """Tests for response assembly."""

    def test_assemble(self) -> None:
        """Results, pagination and timing come from the execution."""
        execution = ExecutionResult(
            hits=[SearchHit(listing={"id": "a"}), SearchHit(listing={"id": "b"})],
            total=7,
            elapsed_ms=12.5,
        )
        query = QueryEcho(q="tv", category=None, filters={}, page=2, limit=2, sort="relevance")

        result = assemble(execution, [], query)

        assert result.results == [{"id": "a"}, {"id": "b"}]
        assert result.pagination.total_pages == 4
        assert result.pagination.has_next is True
        assert result.execution_time == 12.5
        assert result.query is query
