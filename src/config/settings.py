"""
Application Settings - Pydantic Settings for configuration management.

Supports environment variables and .env file loading.
"""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import BeforeValidator, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def normalize_to_lowercase(v: str) -> str:
    """Normalize string to lowercase."""
    if isinstance(v, str):
        return v.lower()
    return v


class MongoSettings(BaseSettings):
    """Document store connection settings."""

    model_config = SettingsConfigDict(env_prefix="MONGO_")

    uri: str = Field(default="mongodb://localhost:27017", description="Connection string")
    database: str = Field(default="benchmark", description="Database name")
    max_pool_size: int = Field(default=50, description="Connection pool size")
    server_selection_timeout_ms: int = Field(
        default=30000, description="Server selection timeout in milliseconds"
    )
    app_name: str = Field(default="docbench", description="Application name reported to the server")


class BenchmarkSettings(BaseSettings):
    """Query benchmark defaults (overridden by a suite's queryExecution block)."""

    model_config = SettingsConfigDict(env_prefix="BENCHMARK_")

    iterations: int = Field(default=10, ge=0, description="Measured iterations per query")
    warmup_iterations: int = Field(default=3, ge=0, description="Discarded warmup iterations per query")
    threads: int = Field(default=1, ge=1, description="Queries benchmarked concurrently")
    include_explain_plan: bool = Field(default=False, description="Capture one explain plan per query")

    sample_size: int = Field(
        default=1000, ge=1, description="Documents read when building sample caches"
    )
    max_join_depth: int = Field(default=16, ge=1, description="Maximum nested join levels")
    seed: int | None = Field(default=None, description="Random seed for reproducible parameters")
    progress_interval: int = Field(default=10, ge=1, description="Iterations between progress callbacks")


class ObservabilitySettings(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="OBSERVABILITY_")

    log_format: Annotated[
        Literal["json", "console"],
        BeforeValidator(normalize_to_lowercase),
    ] = Field(default="json", description="Log format (json for production, console for development)")


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="Document Store Query Benchmark", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )

    mongo: MongoSettings = Field(default_factory=MongoSettings)
    benchmark: BenchmarkSettings = Field(default_factory=BenchmarkSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
