"""Application settings for the curriculum generation service."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings; every field can be overridden with PREPFORGE_<NAME>."""

    model_config = SettingsConfigDict(
        env_prefix="PREPFORGE_",
        env_file=None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core application settings
    app_env: Literal["development", "staging", "production", "test"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Infrastructure
    redis_url: str = "redis://localhost:6379/0"
    openai_api_key: str | None = None

    # Provider
    model_name: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 60.0
    llm_max_retries: int = Field(default=2, ge=0)
    enable_web_search: bool = True

    # Orchestration
    batch_max_concurrency: int = 5
    cache_ttl_days: int = Field(default=7, ge=1)
    quality_threshold: float = 80.0
    max_refinement_attempts: int = Field(default=2, ge=0)
    fallback_quality_score: float = 75.0
    refinement_temperature_step: float = 0.15
    fact_reuse_cap: int = Field(default=2, ge=1)
    max_dynamic_sources: int = Field(default=5, ge=0)
    graph_recursion_limit: int = 50

    # Tracing
    langchain_tracing_v2: bool = False
    langchain_project: str = "prepforge-curriculum"

    @field_validator("batch_max_concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """The batch ceiling bounds in-flight calls and must allow at least one."""
        if v < 1:
            raise ValueError("Batch concurrency must be at least 1")
        return v

    @field_validator("quality_threshold", "fallback_quality_score")
    @classmethod
    def validate_score(cls, v: float) -> float:
        if not 0 <= v <= 100:
            raise ValueError("Quality scores must be within [0, 100]")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
