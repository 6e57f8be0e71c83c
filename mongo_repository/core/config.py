"""Repository configuration using Pydantic Settings.

Configuration is loaded from environment variables.

Optionally, you may point `ENV_FILE` at a local env file (for development).
When it is unset, nothing but the process environment is consulted.
"""

import logging
import os
from enum import Enum

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppEnvironment(str, Enum):
    """Application environment values."""

    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class Settings(BaseSettings):
    """
    Repository settings with type validation.

    Every value has a default suitable for a local MongoDB so that importing
    the package never fails for lack of configuration.
    """

    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE") or None, env_prefix="", extra="ignore"
    )

    # Application
    app_env: AppEnvironment = AppEnvironment.LOCAL
    app_name: str = "mongo-repository"
    app_log_level: str = "INFO"

    # Observability
    observability_structured_logs: bool = True

    # MongoDB connection
    mongo_url: str = "mongodb://localhost:27017"
    mongo_database: str = "app"
    mongo_server_selection_timeout_ms: int = Field(default=5000, ge=1)
    mongo_app_name: str | None = None

    # Query defaults
    stream_batch_size: int = Field(default=100, ge=1)
    default_page_size: int = Field(default=10, ge=1)

    @field_validator("app_env", mode="before")
    @classmethod
    def validate_app_env(cls, v: str | AppEnvironment) -> AppEnvironment:
        """Validate and parse app_env to AppEnvironment enum."""
        if isinstance(v, AppEnvironment):
            return v
        try:
            return AppEnvironment(v.lower())
        except ValueError:
            raise ValueError(
                f"app_env must be one of {[e.value for e in AppEnvironment]}, got '{v}'"
            )

    @field_validator("app_log_level")
    @classmethod
    def validate_app_log_level(cls, v: str) -> str:
        """Normalize the log level and reject names logging does not know."""
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"app_log_level must be a logging level name, got '{v}'")
        return level

    @field_validator("mongo_url")
    @classmethod
    def validate_mongo_url(cls, v: str) -> str:
        """Validate that mongo_url is a MongoDB connection string."""
        v = v.strip()
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError("mongo_url must use the mongodb:// or mongodb+srv:// scheme")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """
        Validate production-specific settings.

        These checks prevent insecure configurations from being deployed to production.
        """
        if self.app_env == AppEnvironment.PROD:
            uses_tls = self.mongo_url.startswith("mongodb+srv://") or any(
                flag in self.mongo_url for flag in ("tls=true", "ssl=true")
            )
            if not uses_tls:
                raise ValueError("MONGO_URL must use TLS (tls=true or mongodb+srv://) in production")

        return self


settings = Settings()
