"""Facet engine.

Computes the refinement options shown next to search results: price
buckets, cities, and one facet per filterable attribute of the resolved
category. Every count is taken under the current predicate plus the value
being counted, so a count never exceeds the number of search results.

Each facet needs its own store queries (one per enum value for enums), so
the engine fans them out concurrently behind a semaphore. A facet whose
queries fail is left out; the others are still returned.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from marketsearch.catalog.repository import ListingRepository
from marketsearch.catalog.schema import AttributeDefinition, AttributeType, Category
from marketsearch.search.compiler import LOCATION_KEY, PRICE_MAX_KEY, PRICE_MIN_KEY
from marketsearch.search.predicate import (
    AttributeIn,
    Predicate,
    PriceRange,
    Scalar,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class PriceBucket:
    """Fixed price range shown in the price facet."""

    value: str
    label: str
    minimum: float
    maximum: float


# Bounds are inclusive on both ends, so a price on a boundary counts in two buckets
PRICE_BUCKETS = (
    PriceBucket("0-25000", "Under ₹25,000", 0, 25000),
    PriceBucket("25000-50000", "₹25,000 - ₹50,000", 25000, 50000),
    PriceBucket("50000-100000", "₹50,000 - ₹1,00,000", 50000, 100000),
    PriceBucket("100000-999999", "Above ₹1,00,000", 100000, 999999),
)

BOOLEAN_LABELS = ((True, "Yes"), (False, "No"))


@dataclass
class FacetValue:
    """One refinement option with its result count."""

    value: Scalar
    label: str
    count: int
    selected: bool = False


@dataclass
class Facet:
    """A filterable dimension with its options.

    Discrete facets carry ``values``; numeric facets carry ``min``/``max``
    bounds taken from the matching listings instead.
    """

    key: str
    label: str
    type: str
    values: list[FacetValue] = field(default_factory=list)
    min: float | None = None
    max: float | None = None
    unit: str | None = None

    @property
    def is_empty(self) -> bool:
        """Whether the facet has nothing to offer."""
        return not self.values and self.min is None


def rank_values(values: list[FacetValue], limit: int | None = None) -> list[FacetValue]:
    """Drop zero counts and order by count, keeping source order on ties.

    Args:
        values: Candidate values in source order.
        limit: Maximum number of values to keep.

    Returns:
        Ranked values.
    """
    ranked = sorted((v for v in values if v.count > 0), key=lambda v: v.count, reverse=True)
    return ranked[:limit] if limit is not None else ranked


def _is_selected(applied: Any, value: Scalar) -> bool:
    if applied is None:
        return False
    candidates = applied if isinstance(applied, list) else [applied]
    return any(str(candidate) == str(value) for candidate in candidates)


class FacetEngine:
    """Computes facets for a compiled search.

    Example usage:
        engine = FacetEngine(repository, value_limit=10, concurrency=8)
        facets = await engine.compute_facets(category, predicate, applied_filters)
    """

    def __init__(
        self,
        repository: ListingRepository,
        value_limit: int = 10,
        location_limit: int = 10,
        concurrency: int = 8,
    ) -> None:
        """Initialize facet engine.

        Args:
            repository: Listing store queries.
            value_limit: Default number of values kept per enum facet.
            location_limit: Number of distinct cities fetched.
            concurrency: Maximum store queries in flight per computation.
        """
        self.repository = repository
        self.value_limit = value_limit
        self.location_limit = location_limit
        self.concurrency = concurrency

    async def compute_facets(
        self,
        category: Category | None,
        predicate: Predicate,
        applied_filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[Facet]:
        """Compute all facets for a search.

        Args:
            category: Resolved category, or None for an uncategorized search.
            predicate: Compiled search predicate.
            applied_filters: Normalized filters, used to flag selected values.
            limit: Values kept per enum facet (defaults to ``value_limit``).

        Returns:
            Non-empty facets: price first, then category attributes in
            declaration order, then location.
        """
        applied = applied_filters or {}
        value_limit = limit if limit is not None else self.value_limit
        semaphore = asyncio.Semaphore(self.concurrency)

        async def count(extended: Predicate) -> int:
            async with semaphore:
                return await self.repository.count(extended)

        builders: list[tuple[str, Callable[[], Awaitable[Facet | None]]]] = [
            ("price", lambda: self._price_facet(predicate, applied, count)),
        ]

        if category is not None:
            for key, definition in category.filterable_attributes().items():
                builders.append(
                    (
                        key,
                        lambda key=key, definition=definition: self._attribute_facet(
                            key, definition, predicate, applied, value_limit, count, semaphore
                        ),
                    )
                )

        builders.append(
            ("location", lambda: self._location_facet(predicate, applied, semaphore)),
        )

        facets = await asyncio.gather(*(self._isolated(key, build) for key, build in builders))
        return [facet for facet in facets if facet is not None and not facet.is_empty]

    async def _isolated(
        self,
        key: str,
        build: Callable[[], Awaitable[Facet | None]],
    ) -> Facet | None:
        """Build one facet, dropping it if any of its queries fail."""
        try:
            return await build()
        except Exception as e:
            logger.warning(
                "Facet computation failed, omitting facet",
                facet=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def _price_facet(
        self,
        predicate: Predicate,
        applied: dict[str, Any],
        count: Callable[[Predicate], Awaitable[int]],
    ) -> Facet | None:
        counts = await asyncio.gather(
            *(count(predicate.and_(PriceRange(b.minimum, b.maximum))) for b in PRICE_BUCKETS)
        )
        values = [
            FacetValue(
                value=bucket.value,
                label=bucket.label,
                count=n,
                selected=(
                    applied.get(PRICE_MIN_KEY) == bucket.minimum
                    and applied.get(PRICE_MAX_KEY) == bucket.maximum
                ),
            )
            for bucket, n in zip(PRICE_BUCKETS, counts)
            if n > 0
        ]
        if not values:
            return None
        return Facet(key="price", label="Price Range", type="range", values=values, unit="₹")

    async def _location_facet(
        self,
        predicate: Predicate,
        applied: dict[str, Any],
        semaphore: asyncio.Semaphore,
    ) -> Facet | None:
        async with semaphore:
            cities = await self.repository.city_counts(predicate, limit=self.location_limit)

        selected_city = str(applied.get(LOCATION_KEY, "")).lower()
        values = rank_values(
            [
                FacetValue(
                    value=city,
                    label=city,
                    count=n,
                    selected=bool(selected_city) and city.lower() == selected_city,
                )
                for city, n in cities
            ]
        )
        if not values:
            return None
        return Facet(key="location", label="Location", type="enum", values=values)

    async def _attribute_facet(
        self,
        key: str,
        definition: AttributeDefinition,
        predicate: Predicate,
        applied: dict[str, Any],
        limit: int,
        count: Callable[[Predicate], Awaitable[int]],
        semaphore: asyncio.Semaphore,
    ) -> Facet | None:
        facet = Facet(
            key=key,
            label=definition.label,
            type=definition.type.value,
            unit=definition.unit,
        )

        if definition.type is AttributeType.ENUM:
            candidates: list[tuple[Scalar, str]] = [(v, v) for v in definition.values]
        elif definition.type is AttributeType.BOOLEAN:
            candidates = list(BOOLEAN_LABELS)
        elif definition.type.is_numeric:
            async with semaphore:
                bounds = await self.repository.attribute_bounds(predicate, key)
            if bounds is None:
                return None
            facet.min, facet.max = bounds
            return facet
        else:
            return None

        counts = await asyncio.gather(
            *(count(predicate.and_(AttributeIn(key, (value,)))) for value, _ in candidates)
        )
        facet.values = rank_values(
            [
                FacetValue(
                    value=value,
                    label=label,
                    count=n,
                    selected=_is_selected(applied.get(key), value),
                )
                for (value, label), n in zip(candidates, counts)
            ],
            limit,
        )
        return facet if facet.values else None

