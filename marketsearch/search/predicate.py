"""Engine-agnostic search predicates.

A predicate is a conjunction of small immutable conditions. The filter
compiler produces them, the facet engine extends them with one extra
condition per counted value, and the listing repository translates them
into SQL. Nothing here knows about SQLAlchemy.
"""

from dataclasses import dataclass
from typing import Union

Scalar = Union[str, int, float, bool]


@dataclass(frozen=True)
class TextMatch:
    """Free-text match on title, description and supplier name.

    A listing matches if any term occurs in any of the fields.
    """

    terms: tuple[str, ...]


@dataclass(frozen=True)
class CategoryMatch:
    """Listing belongs to the category."""

    category_id: str


@dataclass(frozen=True)
class StatusIs:
    """Listing has the given lifecycle status."""

    status: str


@dataclass(frozen=True)
class PriceRange:
    """Price within inclusive bounds. Either bound may be open."""

    minimum: float | None = None
    maximum: float | None = None


@dataclass(frozen=True)
class CityContains:
    """Case-insensitive substring match on the city."""

    value: str


@dataclass(frozen=True)
class AttributeIn:
    """Dynamic attribute equals any of the values."""

    key: str
    values: tuple[Scalar, ...]


@dataclass(frozen=True)
class AttributeRange:
    """Numeric dynamic attribute within inclusive bounds."""

    key: str
    minimum: float | None = None
    maximum: float | None = None


Condition = Union[
    TextMatch,
    CategoryMatch,
    StatusIs,
    PriceRange,
    CityContains,
    AttributeIn,
    AttributeRange,
]


@dataclass(frozen=True)
class Predicate:
    """Conjunction of conditions a listing must satisfy."""

    conditions: tuple[Condition, ...] = ()

    def and_(self, *conditions: Condition) -> "Predicate":
        """Return a new predicate with extra conditions appended."""
        return Predicate(self.conditions + tuple(conditions))

    @property
    def text(self) -> TextMatch | None:
        """The text condition, if the predicate has one."""
        for condition in self.conditions:
            if isinstance(condition, TextMatch):
                return condition
        return None

    @property
    def has_text_search(self) -> bool:
        """Whether relevance scoring applies."""
        return self.text is not None
