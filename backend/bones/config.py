"""
Bones Backend — Application Configuration
==========================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by the app factory, the services, and the client layer.
When:  Loaded once at module import time; validated before app starts.

The same settings object configures both sides of the wire: the server
(host, port, CORS, validation limits) and the client cache layer
(base URL, timeouts, retry and revalidation behavior).
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for local development.
    Attributes are grouped by concern for readability.
    """

    # ── Server ────────────────────────────────────────────────────────────
    app_name: str = Field(default="Greact-Bones API")
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8080, ge=1024, le=65535)

    # What: Allowed origins for cross-origin requests
    # Format: Comma-separated URLs (split by cors_origins_list)
    # Default: the Vite dev server
    cors_origins: str = Field(default="http://localhost:5173")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Resource Validation ───────────────────────────────────────────────
    # Lengths are measured after trimming surrounding whitespace
    name_max_length: int = Field(default=100, ge=1, le=1000)
    email_max_length: int = Field(default=254, ge=6, le=1000)

    # ── API Client ────────────────────────────────────────────────────────
    # What: Where the client layer finds the backend
    api_base_url: str = Field(default="http://localhost:8080")

    # What: Per-request timeout for the httpx client, in seconds
    client_timeout: float = Field(default=10.0, gt=0, le=300)

    # What: Tenacity retry settings for idempotent reads
    # Writes are never retried by the client; a retried POST could create twice
    # min must not exceed max; UsersApiClient rejects the combination on construction
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_min_wait: float = Field(default=0.5, ge=0, le=30)
    retry_max_wait: float = Field(default=5.0, ge=0, le=120)

    # ── Query Cache ───────────────────────────────────────────────────────
    # What: Seconds an errored entry keeps re-raising its stored error
    #       before the next query is allowed to fetch again
    # 0 means every query after a failure fetches again
    cache_error_retry_delay: float = Field(default=0.0, ge=0, le=3600)

    # What: Revalidate invalidated entries right after a mutation instead of
    #       waiting for the next read
    cache_refetch_on_invalidate: bool = Field(default=False)

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton instance — imported throughout the application
settings = Settings()
