"""API schemas for the search API.

Pydantic models for response serialization. Field names are snake_case in
Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base model serializing to camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error: str = Field(..., description="Human-readable error message")
    error_code: str = Field(..., description="Machine-readable error code")
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


# ============================================================================
# Listing Schemas
# ============================================================================


class CoordinatesSchema(ApiModel):
    """Geographic coordinates."""

    lat: float
    lng: float


class LocationSchema(ApiModel):
    """Listing location."""

    city: str
    state: str
    country: str
    coordinates: CoordinatesSchema | None = None


class SupplierSchema(ApiModel):
    """Supplier details."""

    name: str
    email: str
    phone: str | None = None
    verified: bool = False
    rating: float | None = Field(default=None, ge=0, le=5)


class InventorySchema(ApiModel):
    """Stock details."""

    quantity: int = Field(..., ge=0)
    unit: str
    moq: int = Field(..., ge=1, description="Minimum order quantity")


class CategoryRefSchema(ApiModel):
    """Category summary embedded in a listing."""

    id: str
    name: str
    slug: str


class ListingSchema(ApiModel):
    """A search result listing."""

    id: str
    title: str
    description: str
    price: float = Field(..., ge=0)
    currency: str
    location: LocationSchema
    category_id: str
    category: CategoryRefSchema | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    images: list[str] = Field(default_factory=list)
    supplier: SupplierSchema
    inventory: InventorySchema
    status: str
    featured: bool = False
    views: int = 0
    inquiries: int = 0
    is_available: bool = False
    score: float | None = Field(default=None, description="Text relevance score")
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Facet Schemas
# ============================================================================


class FacetValueSchema(ApiModel):
    """One facet option with its count."""

    value: str | int | float | bool
    label: str
    count: int
    selected: bool = False


class FacetSchema(ApiModel):
    """A facet with its options or numeric bounds."""

    key: str
    label: str
    type: str
    values: list[FacetValueSchema] = Field(default_factory=list)
    min: float | None = None
    max: float | None = None
    unit: str | None = None


# ============================================================================
# Search Schemas
# ============================================================================


class PaginationSchema(ApiModel):
    """Pagination metadata."""

    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class QueryEchoSchema(ApiModel):
    """The normalized query that was executed."""

    q: str | None = None
    category: str | None = None
    filters: dict[str, Any] = Field(default_factory=dict)
    page: int
    limit: int
    sort: str


class SearchResponse(ApiModel):
    """Response for GET /search."""

    results: list[ListingSchema]
    facets: list[FacetSchema]
    pagination: PaginationSchema
    query: QueryEchoSchema
    execution_time: float = Field(..., description="Results and count time in ms")


class FacetsResponse(ApiModel):
    """Response for GET /facets."""

    facets: list[FacetSchema]
    total_results: int
    applied_filters: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Category Schemas
# ============================================================================


class CategorySchema(ApiModel):
    """An active category with its attribute schema."""

    id: str
    name: str
    slug: str
    description: str | None = None
    sort_order: int = 0
    attribute_schema: dict[str, dict[str, Any]] = Field(default_factory=dict)


class CategoriesResponse(ApiModel):
    """Response for GET /categories."""

    categories: list[CategorySchema]
