"""
Client Registry Configuration
Settings are read from environment variables or a ``.env`` file.
"""
from functools import lru_cache
from typing import Optional
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


STORE_BACKENDS = ("memory", "postgres")


class RegistrySettings(BaseSettings):
    """Client registry settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    APP_ENV: str = Field(default="production", description="Application environment")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Root log level for the registry")
    LOG_JSON: bool = Field(default=True, description="Emit JSON structured logs")

    # Document store
    STORE_BACKEND: str = Field(default="memory", description="memory or postgres")
    POSTGRES_DSN: Optional[str] = Field(default=None, description="asyncpg connection string")
    POSTGRES_POOL_MIN_SIZE: int = Field(default=2, ge=1)
    POSTGRES_POOL_MAX_SIZE: int = Field(default=10, ge=1)

    # Collections
    CLIENTS_COLLECTION: str = "clients"
    CLIENT_VERSIONS_COLLECTION: str = "client_versions"
    QUERIES_COLLECTION: str = "queries"
    PUBLISH_REPORTS_COLLECTION: str = "client_publish_reports"
    PUBLISHED_CLIENTS_COLLECTION: str = "published_clients"

    @field_validator('APP_ENV')
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate and normalize application environment"""
        normalized = v.lower()
        if normalized in ["dev", "development"]:
            return "development"
        if normalized in ["prod", "production"]:
            return "production"
        if normalized in ["test", "testing"]:
            return "testing"
        return normalized

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        normalized = v.upper()
        if normalized not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown LOG_LEVEL: {v}")
        return normalized

    @field_validator('STORE_BACKEND')
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        normalized = v.lower()
        if normalized not in STORE_BACKENDS:
            raise ValueError(
                f"STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)} (got {v})"
            )
        return normalized

    @model_validator(mode="after")
    def validate_postgres(self) -> "RegistrySettings":
        if self.STORE_BACKEND == "postgres" and not self.POSTGRES_DSN:
            raise ValueError("POSTGRES_DSN is required when STORE_BACKEND=postgres")
        if self.POSTGRES_POOL_MIN_SIZE > self.POSTGRES_POOL_MAX_SIZE:
            raise ValueError("POSTGRES_POOL_MIN_SIZE must not exceed POSTGRES_POOL_MAX_SIZE")
        return self


@lru_cache()
def get_settings() -> RegistrySettings:
    """Get cached registry settings"""
    return RegistrySettings()
