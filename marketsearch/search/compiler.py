"""Filter compiler.

Turns the loosely-typed search input (free text, category slug, JSON filter
map) into a predicate. Search input comes straight from a UI, so everything
here is best-effort normalization: a value that cannot be used is dropped
and logged, and the request carries on without it.
"""

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any

import structlog

from marketsearch.catalog.models import ListingStatus
from marketsearch.catalog.registry import CategoryRegistry
from marketsearch.catalog.schema import Category
from marketsearch.domain.exceptions import CategoryNotFoundError
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

PRICE_MIN_KEY = "priceMin"
PRICE_MAX_KEY = "priceMax"
LOCATION_KEY = "location"

# Attribute keys address a JSON member; anything that could address a
# nested path or an operator is rejected.
ATTRIBUTE_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_-]*$")

_TERM_PATTERN = re.compile(r'"([^"]+)"|(\S+)')


@dataclass
class CompiledQuery:
    """Result of compiling search input.

    Attributes:
        predicate: Conditions every result must satisfy.
        category: Resolved category, if the slug matched one.
        applied_filters: The filters that made it into the predicate,
            in their normalized form.
    """

    predicate: Predicate
    category: Category | None = None
    applied_filters: dict[str, Any] = field(default_factory=dict)


# ============================================================================
# Input Normalization
# ============================================================================


def parse_filters(raw: str | None) -> dict[str, Any]:
    """Parse the JSON-encoded filter map.

    Args:
        raw: JSON text from the query string.

    Returns:
        The filter object, or an empty map if the input is unusable.
    """
    if raw is None or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("Invalid filters JSON, ignoring", filters=raw[:200])
        return {}
    if not isinstance(parsed, dict):
        logger.warning("Filters JSON is not an object, ignoring", filters=raw[:200])
        return {}
    return parsed


def normalize_page(raw: Any) -> int:
    """Coerce a page number, defaulting to 1."""
    try:
        page = int(raw)
    except (TypeError, ValueError):
        return 1
    return max(page, 1)


def normalize_limit(raw: Any, default: int, maximum: int) -> int:
    """Coerce a page size into [1, maximum], defaulting on bad input."""
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        return default
    if limit < 1:
        return default
    return min(limit, maximum)


def split_terms(q: str) -> tuple[str, ...]:
    """Split a query into terms; double-quoted phrases stay whole."""
    terms: list[str] = []
    for phrase, word in _TERM_PATTERN.findall(q):
        term = (phrase or word).strip()
        if term and term.lower() not in (t.lower() for t in terms):
            terms.append(term)
    return tuple(terms)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _as_scalar(value: Any) -> Scalar | None:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    return None


# ============================================================================
# Compiler
# ============================================================================


class FilterCompiler:
    """Compiles search input into a predicate.

    Rules, applied in order:
        1. Non-empty text adds a text match.
        2. A resolvable category slug scopes results to that category.
        3. Each filter entry adds a price bound, a city match or an
           attribute match.
        4. Only active listings ever match.

    Example usage:
        compiler = FilterCompiler(registry)
        compiled = await compiler.compile(
            q="samsung",
            category_slug="televisions",
            filters={"brand": ["Samsung", "LG"], "priceMax": 50000},
        )
    """

    def __init__(self, registry: CategoryRegistry) -> None:
        """Initialize compiler.

        Args:
            registry: Category lookup.
        """
        self.registry = registry

    async def compile(
        self,
        q: str | None = None,
        category_slug: str | None = None,
        filters: dict[str, Any] | None = None,
    ) -> CompiledQuery:
        """Compile search input.

        Args:
            q: Free-text query.
            category_slug: Category slug.
            filters: Filter map (reserved keys or attribute keys).

        Returns:
            Compiled predicate with resolved category and applied filters.
        """
        conditions: list[Condition] = [StatusIs(ListingStatus.ACTIVE.value)]

        terms = split_terms(q or "")
        if terms:
            conditions.append(TextMatch(terms))

        category = await self._resolve_category(category_slug)
        if category is not None:
            conditions.append(CategoryMatch(category.id))

        filter_conditions, applied = self.compile_filters(filters or {})
        conditions.extend(filter_conditions)

        return CompiledQuery(
            predicate=Predicate(tuple(conditions)),
            category=category,
            applied_filters=applied,
        )

    async def _resolve_category(self, slug: str | None) -> Category | None:
        if not slug or not slug.strip():
            return None
        try:
            return await self.registry.get_by_slug(slug)
        except CategoryNotFoundError:
            logger.info("Unknown category, searching all categories", category=slug)
            return None

    def compile_filters(
        self,
        filters: dict[str, Any],
    ) -> tuple[list[Condition], dict[str, Any]]:
        """Compile the filter map.

        Args:
            filters: Filter map.

        Returns:
            Conditions and the normalized filters they were built from.
        """
        if not isinstance(filters, dict):
            return [], {}

        conditions: list[Condition] = []
        applied: dict[str, Any] = {}

        price_min = price_max = None
        for key, value in filters.items():
            if key == PRICE_MIN_KEY:
                price_min = _as_number(value)
                if price_min is None:
                    logger.debug("Skipping non-numeric filter", key=key, value=value)
                else:
                    applied[key] = price_min
            elif key == PRICE_MAX_KEY:
                price_max = _as_number(value)
                if price_max is None:
                    logger.debug("Skipping non-numeric filter", key=key, value=value)
                else:
                    applied[key] = price_max
            elif key == LOCATION_KEY:
                location = value.strip() if isinstance(value, str) else ""
                if location:
                    conditions.append(CityContains(location))
                    applied[key] = location
                else:
                    logger.debug("Skipping empty location filter", value=value)
            else:
                condition = self._attribute_condition(key, value)
                if condition is not None:
                    conditions.append(condition)
                    applied[key] = _applied_value(condition, value)

        if price_min is not None or price_max is not None:
            conditions.append(PriceRange(price_min, price_max))

        return conditions, applied

    def _attribute_condition(self, key: Any, value: Any) -> Condition | None:
        if not isinstance(key, str) or not ATTRIBUTE_KEY_PATTERN.match(key):
            logger.warning("Skipping filter with invalid attribute key", key=str(key)[:100])
            return None

        if isinstance(value, dict):
            return self._range_condition(key, value)

        if isinstance(value, list):
            values = tuple(v for v in (_as_scalar(item) for item in value) if v is not None)
            if not values:
                logger.debug("Skipping empty attribute filter", key=key)
                return None
            return AttributeIn(key, tuple(dict.fromkeys(values)))

        scalar = _as_scalar(value)
        if scalar is None:
            logger.debug("Skipping unusable attribute filter", key=key, value=value)
            return None
        return AttributeIn(key, (scalar,))

    def _range_condition(self, key: str, value: dict[str, Any]) -> Condition | None:
        if not value or set(value) - {"min", "max"}:
            logger.debug("Skipping unsupported attribute filter object", key=key)
            return None
        minimum = _as_number(value.get("min")) if "min" in value else None
        maximum = _as_number(value.get("max")) if "max" in value else None
        if minimum is None and maximum is None:
            logger.debug("Skipping attribute range without numeric bounds", key=key)
            return None
        return AttributeRange(key, minimum, maximum)


def _applied_value(condition: Condition, raw: Any) -> Any:
    if isinstance(condition, AttributeRange):
        bounds = {}
        if condition.minimum is not None:
            bounds["min"] = condition.minimum
        if condition.maximum is not None:
            bounds["max"] = condition.maximum
        return bounds
    if isinstance(condition, AttributeIn):
        return list(condition.values) if isinstance(raw, list) else condition.values[0]
    raise TypeError(f"Unexpected attribute condition: {condition!r}")
