"""
Tests for the terminal save stage.

Tests verify:
- A run without job data is marked aborted and nothing is saved
- A saved run records the curriculum id and finish time
- A failed save becomes a state error instead of raising
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from curriculum.errors import CurriculumGenerationFailed, PersistenceError
from curriculum.nodes.context import NodeContext
from curriculum.nodes.persistence import save_curriculum
from curriculum.orchestrators.curriculum_orchestrator import CurriculumOrchestrator
from curriculum.schemas.generation_state import create_initial_state, merge_state
from fakes import ScriptedGenerator, happy_path_responses, sample_job


def failing_repository(reason: str = "Redis write failed: connection reset") -> MagicMock:
    repository = MagicMock()
    repository.save = AsyncMock(side_effect=PersistenceError(reason))
    return repository


@pytest.fixture
def parsed_state():
    return merge_state(create_initial_state("Software Engineer at Netflix"), {"job_data": sample_job()})


class TestSaveCurriculum:
    @pytest.mark.asyncio
    async def test_without_job_data_aborts(self, discovery_cache, test_settings):
        repository = MagicMock()
        repository.save = AsyncMock()
        ctx = NodeContext.build(ScriptedGenerator(), discovery_cache, repository, test_settings)

        update = await save_curriculum(create_initial_state("hello there"), ctx)

        assert update["aborted"] is True
        assert update["finished_at"] is not None
        repository.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_saved_run_records_id(self, discovery_cache, repository, test_settings, parsed_state):
        ctx = NodeContext.build(ScriptedGenerator(), discovery_cache, repository, test_settings)

        update = await save_curriculum(parsed_state, ctx)

        stored = await repository.load(update["curriculum_id"])
        assert stored.status == "partial"
        assert "errors" not in update

    @pytest.mark.asyncio
    async def test_failed_save_is_reported_not_raised(self, discovery_cache, test_settings, parsed_state):
        ctx = NodeContext.build(ScriptedGenerator(), discovery_cache, failing_repository(), test_settings)

        update = await save_curriculum(parsed_state, ctx)

        assert update["errors"] == ["Failed to save curriculum: Redis write failed: connection reset"]
        assert "curriculum_id" not in update
        assert update["finished_at"] is not None

    @pytest.mark.asyncio
    async def test_failed_save_fails_the_run(self, discovery_cache, test_settings):
        orchestrator = CurriculumOrchestrator(
            ScriptedGenerator(happy_path_responses()), discovery_cache, failing_repository(), settings=test_settings
        )

        state = await orchestrator.run("Software Engineer at Netflix")

        assert state.curriculum_id is None
        assert state.errors == ["Failed to save curriculum: Redis write failed: connection reset"]
        assert len(state.rounds) == 5

        with pytest.raises(CurriculumGenerationFailed):
            await orchestrator.generate("Software Engineer at Netflix")
