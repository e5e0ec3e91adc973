"""Tests for application settings."""

import os
import tempfile

import pytest
from pydantic import ValidationError

from libs.common.settings import Settings, get_settings


class TestSettings:
    """Test settings configuration."""

    def test_defaults(self):
        settings = Settings(app_env="development")
        assert settings.batch_max_concurrency == 5
        assert settings.cache_ttl_days == 7
        assert settings.quality_threshold == 80.0
        assert settings.max_refinement_attempts == 2
        assert settings.fallback_quality_score == 75.0
        assert settings.fact_reuse_cap == 2

    def test_settings_from_env_file(self):
        env_vars = {
            "PREPFORGE_REDIS_URL": "redis://cache:6379/2",
            "PREPFORGE_BATCH_MAX_CONCURRENCY": "3",
            "PREPFORGE_QUALITY_THRESHOLD": "85",
        }

        with tempfile.NamedTemporaryFile(mode="w", suffix=".env", delete=False) as f:
            for key, value in env_vars.items():
                f.write(f"{key}={value}\n")
            env_file = f.name

        try:
            settings = Settings(_env_file=env_file)
            assert settings.redis_url == "redis://cache:6379/2"
            assert settings.batch_max_concurrency == 3
            assert settings.quality_threshold == 85.0
        finally:
            os.unlink(env_file)

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(batch_max_concurrency=0)
        assert "Batch concurrency must be at least 1" in str(exc_info.value)

    def test_scores_must_be_percentages(self):
        with pytest.raises(ValidationError):
            Settings(quality_threshold=120)

    def test_settings_environment_properties(self):
        assert Settings(app_env="production").is_production
        assert not Settings(app_env="development").is_production
        assert Settings(app_env="test").is_test

    def test_get_settings_reads_environment(self, monkeypatch):
        monkeypatch.setenv("PREPFORGE_FACT_REUSE_CAP", "3")
        get_settings.cache_clear()

        settings = get_settings()

        assert settings.fact_reuse_cap == 3
        assert settings.is_test
        assert get_settings() is settings
