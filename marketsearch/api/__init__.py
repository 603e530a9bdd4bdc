"""API layer module.

Contains FastAPI routers and response schemas.
"""

from marketsearch.api.health import router as health_router
from marketsearch.api.search import router as search_router

__all__ = [
    "health_router",
    "search_router",
]
