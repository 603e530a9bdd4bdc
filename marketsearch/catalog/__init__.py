"""Listing catalog.

Category attribute schemas, the ORM tables and the store queries used by
search.
"""

from marketsearch.catalog.models import Category as CategoryRow
from marketsearch.catalog.models import Listing, ListingStatus
from marketsearch.catalog.registry import CategoryRegistry
from marketsearch.catalog.repository import ListingRepository
from marketsearch.catalog.schema import (
    AttributeDefinition,
    AttributeType,
    Category,
    parse_attribute_schema,
)

__all__ = [
    # Schema
    "AttributeDefinition",
    "AttributeType",
    "Category",
    "parse_attribute_schema",
    # Models
    "CategoryRow",
    "Listing",
    "ListingStatus",
    # Queries
    "CategoryRegistry",
    "ListingRepository",
]
