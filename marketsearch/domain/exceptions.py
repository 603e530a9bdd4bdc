"""Domain exceptions.

All search-level errors. Input problems never show up here: malformed
filters, pages and sort keys are normalized to defaults before they reach
the store. What remains are conditions the caller cannot fix.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SearchError(DomainError):
    """Base class for search errors."""

    pass


# ============================================================================
# Catalog Errors
# ============================================================================


class CategoryNotFoundError(SearchError):
    """Raised when a slug does not resolve to an active category.

    Search callers treat this as "no category scoping" rather than a failure.
    """

    def __init__(self, slug: str) -> None:
        """Initialize category not found error.

        Args:
            slug: The slug that was looked up.
        """
        super().__init__(
            f"Category not found: {slug}",
            details={"slug": slug},
        )
        self.slug = slug


# ============================================================================
# Store Errors
# ============================================================================


class StoreError(SearchError):
    """Base class for listing store failures."""

    pass


class StoreUnavailableError(StoreError):
    """Raised when the store cannot be reached or rejects a query."""

    def __init__(self, operation: str, reason: str) -> None:
        """Initialize store unavailable error.

        Args:
            operation: Store operation that failed.
            reason: Underlying error description.
        """
        super().__init__(
            f"Store operation '{operation}' failed: {reason}",
            details={"operation": operation, "reason": reason},
        )
        self.operation = operation


class QueryTimeoutError(StoreError):
    """Raised when a single store query exceeds its timeout."""

    def __init__(self, operation: str, timeout_seconds: float) -> None:
        """Initialize query timeout error.

        Args:
            operation: Store operation that timed out.
            timeout_seconds: Timeout that was exceeded.
        """
        super().__init__(
            f"Store operation '{operation}' timed out after {timeout_seconds}s",
            details={"operation": operation, "timeout_seconds": timeout_seconds},
        )
        self.operation = operation


class SearchTimeoutError(SearchError):
    """Raised when a whole search request exceeds its deadline."""

    def __init__(self, timeout_seconds: float) -> None:
        """Initialize search timeout error.

        Args:
            timeout_seconds: Request deadline that was exceeded.
        """
        super().__init__(
            f"Search did not complete within {timeout_seconds}s",
            details={"timeout_seconds": timeout_seconds},
        )
