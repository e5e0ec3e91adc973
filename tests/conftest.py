"""
Pytest configuration and fixtures for curriculum tests.

Provides shared fixtures for:
- Test environment settings (PREPFORGE_APP_ENV=test)
- Fake Redis client (fakeredis)
- Discovery cache and curriculum repository on fakeredis
"""

import pytest

from libs.caching.discovery_cache import DiscoveryCache
from libs.common.settings import Settings, get_settings
from libs.persistence.curriculum_repository import RedisCurriculumRepository


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("PREPFORGE_APP_ENV", "test")
    monkeypatch.setenv("PREPFORGE_LLM_MAX_RETRIES", "0")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(app_env="test", llm_max_retries=0)


@pytest.fixture
async def redis_client():
    """
    Provide fakeredis client for testing.

    This avoids requiring actual Redis server during tests.
    """
    from fakeredis import aioredis as fakeredis

    client = fakeredis.FakeRedis(decode_responses=True)

    yield client

    await client.flushdb()
    await client.aclose()


@pytest.fixture
def discovery_cache(redis_client) -> DiscoveryCache:
    return DiscoveryCache(redis_client=redis_client)


@pytest.fixture
def repository(redis_client) -> RedisCurriculumRepository:
    return RedisCurriculumRepository(redis_client=redis_client)
