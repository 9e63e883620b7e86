"""
Configuration Management for the Finance Tracker API

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The database connection string is the only required value; everything
else has a sensible default for local development.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MongoSettings(BaseSettings):
    """MongoDB connection configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONGODB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    uri: str = Field(
        ...,
        description="MongoDB connection string"
    )
    db_name: str = Field(
        default="finance_tracker",
        description="Database name"
    )
    server_selection_timeout_ms: int = Field(
        default=5000,
        ge=100,
        le=60000,
        description="How long to wait for a server before giving up"
    )
    max_pool_size: int = Field(
        default=10,
        ge=1,
        le=200,
        description="Maximum connections in the driver pool"
    )

    # Collection names
    transactions_collection: str = Field(default="transactions")
    categories_collection: str = Field(default="categories")
    budgets_collection: str = Field(default="budgets")
    users_collection: str = Field(default="users")
    audit_collection: str = Field(
        default="audit_log",
        description="Collection for persisted audit events"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    # HTTP
    port: int = Field(
        default=3001,
        ge=1,
        le=65535,
        description="Port the API listens on"
    )
    cors_origins: str = Field(
        default="http://localhost:8080,http://localhost:3000",
        description="Comma-separated list of allowed CORS origins"
    )

    # Listing limits
    default_page_size: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Default number of transactions returned by a list call"
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Get allowed origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so the app can start
    # (and report unhealthy) without a database configured.

    @property
    def mongo(self) -> MongoSettings:
        return MongoSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.mongo
        results["mongo"] = True
    except Exception as e:
        results["mongo"] = False
        results["mongo_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
