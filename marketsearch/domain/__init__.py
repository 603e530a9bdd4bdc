"""Domain layer - search exceptions.

Example usage:
    from marketsearch.domain import StoreError

    try:
        result = await service.search(q="samsung")
    except StoreError:
        ...
"""

from marketsearch.domain.exceptions import (
    CategoryNotFoundError,
    DomainError,
    QueryTimeoutError,
    SearchError,
    SearchTimeoutError,
    StoreError,
    StoreUnavailableError,
)

__all__ = [
    "CategoryNotFoundError",
    "DomainError",
    "QueryTimeoutError",
    "SearchError",
    "SearchTimeoutError",
    "StoreError",
    "StoreUnavailableError",
]
