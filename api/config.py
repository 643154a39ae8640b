"""
API configuration settings.
"""

from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Book Catalog GraphQL API"
    api_version: str = "1.0.0"
    api_description: str = "GraphQL API for searching books, authors and comments"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    graphql_path: str = "/graphql"
    graphiql: bool = True

    # Rate Limiting
    search_rate_limit: int = 3  # requests per window
    search_rate_window: int = 60  # seconds

    # CORS Settings
    cors_origins: List[str] = ["*"]  # Configure appropriately for production
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    @field_validator('search_rate_limit', 'search_rate_window')
    @classmethod
    def validate_positive(cls, v):
        """Ensure rate limit settings are positive."""
        if v < 1:
            raise ValueError('rate limit settings must be at least 1')
        return v

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }


# Global config instance
config = APIConfig()
