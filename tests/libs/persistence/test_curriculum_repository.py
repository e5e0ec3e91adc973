"""
Tests for Redis curriculum storage.

Tests verify:
- Complete and partial runs are stored under curriculum:{id}
- Saving without job data or without Redis raises PersistenceError
- Redis write failures surface as PersistenceError
- load() returns None for unknown ids
"""

from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from curriculum.errors import PersistenceError
from curriculum.schemas.generation_state import create_initial_state
from libs.persistence.curriculum_repository import RedisCurriculumRepository
from fakes import sample_job


class TestRedisCurriculumRepository:
    @pytest.mark.asyncio
    async def test_save_partial_run_and_load(self, repository, redis_client):
        state = create_initial_state("Software Engineer at Netflix").model_copy(
            update={"job_data": sample_job(), "quality_score": 72.0}
        )

        curriculum_id = await repository.save(state)

        assert await redis_client.exists(f"curriculum:{curriculum_id}") == 1
        stored = await repository.load(curriculum_id)
        assert stored.id == curriculum_id
        assert stored.status == "partial"
        assert stored.company_name == "Netflix"
        assert stored.role_title == "Software Engineer"
        assert stored.quality_score == 72.0
        assert stored.state["request_id"] == state.request_id

    @pytest.mark.asyncio
    async def test_save_requires_job_data(self, repository):
        state = create_initial_state("Software Engineer at Netflix")

        with pytest.raises(PersistenceError, match="job data"):
            await repository.save(state)

    @pytest.mark.asyncio
    async def test_save_without_redis(self):
        repository = RedisCurriculumRepository(redis_client=None)
        state = create_initial_state("x").model_copy(update={"job_data": sample_job()})

        with pytest.raises(PersistenceError):
            await repository.save(state)

    @pytest.mark.asyncio
    async def test_redis_error_becomes_persistence_error(self):
        client = AsyncMock()
        client.set.side_effect = redis.ConnectionError("connection refused")
        repository = RedisCurriculumRepository(redis_client=client)
        state = create_initial_state("x").model_copy(update={"job_data": sample_job()})

        with pytest.raises(PersistenceError, match="connection refused"):
            await repository.save(state)

    @pytest.mark.asyncio
    async def test_load_unknown_id(self, repository):
        assert await repository.load("missing") is None
