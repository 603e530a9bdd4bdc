"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False
    cors_origins: list[str] = ["*"]

    # Database
    database_url: str = "postgresql+asyncpg://marketplace:marketplace_dev_password@db:5432/marketplace"
    db_pool_size: int = 10
    db_connect_timeout: float = 5.0

    # Query budgets (seconds)
    query_timeout_seconds: float = 10.0
    request_timeout_seconds: float = 30.0

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    # Facets
    facet_value_limit: int = 10
    max_facet_value_limit: int = 50
    location_facet_limit: int = 10
    facet_concurrency: int = 8

    # Logging
    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
