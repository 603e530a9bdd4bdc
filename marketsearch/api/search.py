"""Search API endpoints.

Provides faceted listing search, a standalone facet preview and the list
of active categories. All endpoints are read-only.
"""

from collections.abc import AsyncIterator
from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from marketsearch.api.schemas import (
    CategoriesResponse,
    CategorySchema,
    ErrorResponse,
    FacetSchema,
    FacetsResponse,
    ListingSchema,
    PaginationSchema,
    QueryEchoSchema,
    SearchResponse,
)
from marketsearch.catalog.schema import Category
from marketsearch.infrastructure.database import Database, get_database
from marketsearch.search.assembler import FacetsResult, SearchResult
from marketsearch.search.facets import Facet
from marketsearch.search.service import SearchService

router = APIRouter(tags=["Search"])


# ============================================================================
# Dependencies
# ============================================================================


async def get_service(
    request: Request,
    database: Annotated[Database, Depends(get_database)],
) -> AsyncIterator[SearchService]:
    """Get search service bound to the shared database for this request."""
    request_id = getattr(request.state, "request_id", None)
    async with database.lease() as sessions:
        yield SearchService(sessions, request_id=request_id)


# ============================================================================
# Converters
# ============================================================================


def facet_to_schema(facet: Facet) -> FacetSchema:
    """Convert a Facet to its response schema."""
    return FacetSchema.model_validate(asdict(facet))


def search_result_to_response(result: SearchResult) -> SearchResponse:
    """Convert a SearchResult to the response schema."""
    pagination = result.pagination
    return SearchResponse(
        results=[ListingSchema.model_validate(listing) for listing in result.results],
        facets=[facet_to_schema(f) for f in result.facets],
        pagination=PaginationSchema(
            page=pagination.page,
            limit=pagination.limit,
            total=pagination.total,
            total_pages=pagination.total_pages,
            has_next=pagination.has_next,
            has_prev=pagination.has_prev,
        ),
        query=QueryEchoSchema.model_validate(asdict(result.query)),
        execution_time=result.execution_time,
    )


def facets_result_to_response(result: FacetsResult) -> FacetsResponse:
    """Convert a FacetsResult to the response schema."""
    return FacetsResponse(
        facets=[facet_to_schema(f) for f in result.facets],
        total_results=result.total_results,
        applied_filters=result.applied_filters,
    )


def category_to_schema(category: Category) -> CategorySchema:
    """Convert a Category to its response schema."""
    return CategorySchema(
        id=category.id,
        name=category.name,
        slug=category.slug,
        description=category.description,
        sort_order=category.sort_order,
        attribute_schema={
            key: definition.to_dict()
            for key, definition in category.attribute_schema.items()
        },
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "/search",
    response_model=SearchResponse,
    response_model_exclude_none=True,
    responses={500: {"model": ErrorResponse}},
    summary="Search listings",
    description="Full-text and faceted search over active listings.",
)
async def search_listings(
    service: Annotated[SearchService, Depends(get_service)],
    q: Annotated[str | None, Query(description="Free-text query")] = None,
    category: Annotated[str | None, Query(description="Category slug")] = None,
    filters: Annotated[str | None, Query(description="JSON-encoded filter map")] = None,
    page: Annotated[str | None, Query(description="Page number, 1-indexed")] = None,
    limit: Annotated[str | None, Query(description="Results per page")] = None,
    sort: Annotated[
        str | None,
        Query(description="relevance, price_asc, price_desc, newest or popular"),
    ] = None,
) -> SearchResponse:
    """Search listings.

    Malformed parameters fall back to defaults rather than failing the
    request: bad filter JSON is ignored, unknown sort keys use relevance and
    unusable page numbers use the first page.

    Args:
        service: Search service.
        q: Free-text query.
        category: Category slug; unknown slugs search all categories.
        filters: JSON object of filters.
        page: Page number.
        limit: Results per page.
        sort: Sort key.

    Returns:
        Results, facets, pagination and the executed query.
    """
    result = await service.search(
        q=q,
        category=category,
        filters=filters,
        page=page,
        limit=limit,
        sort=sort,
    )
    return search_result_to_response(result)


@router.get(
    "/facets",
    response_model=FacetsResponse,
    response_model_exclude_none=True,
    responses={500: {"model": ErrorResponse}},
    summary="Preview facets",
    description="Facets and total count for a query without fetching results.",
)
async def preview_facets(
    service: Annotated[SearchService, Depends(get_service)],
    category: Annotated[str | None, Query(description="Category slug")] = None,
    q: Annotated[str | None, Query(description="Free-text query")] = None,
    filters: Annotated[str | None, Query(description="JSON-encoded filter map")] = None,
    limit: Annotated[str | None, Query(description="Values per facet")] = None,
) -> FacetsResponse:
    """Compute facets for a query.

    Args:
        service: Search service.
        category: Category slug.
        q: Free-text query.
        filters: JSON object of filters.
        limit: Values kept per enum facet.

    Returns:
        Facets, total result count and applied filters.
    """
    result = await service.facets(category=category, q=q, filters=filters, limit=limit)
    return facets_result_to_response(result)


@router.get(
    "/categories",
    response_model=CategoriesResponse,
    response_model_exclude_none=True,
    responses={500: {"model": ErrorResponse}},
    summary="List categories",
)
async def list_categories(
    service: Annotated[SearchService, Depends(get_service)],
) -> CategoriesResponse:
    """List active categories with their attribute schemas."""
    categories = await service.list_categories()
    return CategoriesResponse(categories=[category_to_schema(c) for c in categories])
