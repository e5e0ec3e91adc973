"""
End-to-end tests for the curriculum orchestrator.

Runs the compiled graph against a scripted generation client, fakeredis
cache and repository.

Tests verify:
- A passing run produces five rounds and a stored curriculum
- A failing score is refined until the budget is spent, at rising temperature
- Unusable sources route through fallback research without failing the run
- An unidentifiable request aborts and generate() raises
- A repeat request is served from the discovery cache
"""

import pytest
from langgraph.checkpoint.memory import MemorySaver

from curriculum.errors import CurriculumGenerationFailed
from curriculum.nodes.discovery import FALLBACK_RESEARCH_WARNING, NO_USEFUL_SOURCES_WARNING
from curriculum.orchestrators.curriculum_orchestrator import CurriculumOrchestrator
from curriculum.orchestrators.refinement import RefinementPhase
from fakes import ScriptedGenerator, happy_path_responses

REQUEST = "Software Engineer at Netflix"


@pytest.fixture
def make_orchestrator(discovery_cache, repository, test_settings):
    def build(generator):
        return CurriculumOrchestrator(generator, discovery_cache, repository, settings=test_settings)

    return build


class TestCurriculumRun:
    @pytest.mark.asyncio
    async def test_passing_run_is_saved(self, make_orchestrator, repository):
        generator = ScriptedGenerator(happy_path_responses(score=90))

        state = await make_orchestrator(generator).run(REQUEST)

        assert state.errors == []
        assert state.aborted is False
        assert state.progress == 100
        assert state.current_step == "save_curriculum"
        assert [r.round_number for r in state.rounds] == [1, 2, 3, 4, 5]
        assert state.quality_score == 90.0
        assert state.refinement_attempts == 0
        assert state.refinement_phase is RefinementPhase.DONE
        assert state.constraint_report.constraint_satisfied is True
        assert state.company_context is not None
        assert "evaluate_quality" in state.stage_timings

        stored = await repository.load(state.curriculum_id)
        assert stored.status == "complete"
        assert stored.company_name == "Netflix"
        assert stored.role_title == "Software Engineer"

    @pytest.mark.asyncio
    async def test_generate_returns_curriculum_id(self, make_orchestrator, repository):
        curriculum_id = await make_orchestrator(ScriptedGenerator(happy_path_responses())).generate(REQUEST)

        assert await repository.load(curriculum_id) is not None

    @pytest.mark.asyncio
    async def test_low_score_spends_refinement_budget(self, make_orchestrator):
        generator = ScriptedGenerator(happy_path_responses(score=50))

        state = await make_orchestrator(generator).run(REQUEST)

        assert state.refinement_attempts == 2
        assert state.curriculum_id is not None
        assert len(generator.calls_for("QualityEvaluation")) == 3
        round_calls = generator.calls_for("RoundContent")
        assert len(round_calls) == 15
        assert [c["options"].temperature for c in round_calls] == [0.6] * 5 + [0.75] * 5 + [0.9] * 5
        assert [r.generation_pass for r in state.rounds] == [3] * 5

    @pytest.mark.asyncio
    async def test_unusable_sources_use_fallback_research(self, make_orchestrator):
        generator = ScriptedGenerator(happy_path_responses(), failing={"search"})

        state = await make_orchestrator(generator).run(REQUEST)

        assert NO_USEFUL_SOURCES_WARNING in state.warnings
        assert FALLBACK_RESEARCH_WARNING in state.warnings
        assert state.company_context.confidence == 0.3
        assert state.job_data.parsing_confidence <= 0.3
        assert state.curriculum_id is not None
        assert len(state.rounds) == 5

    @pytest.mark.asyncio
    async def test_unidentifiable_request_aborts(self, make_orchestrator, repository):
        generator = ScriptedGenerator(happy_path_responses(), failing={"ExtractedEntities", "JobData"})

        state = await make_orchestrator(generator).run("hello there")

        assert state.aborted is True
        assert state.curriculum_id is None
        assert state.errors
        assert state.rounds == []
        assert generator.calls_for("InterviewerPersona") == []

        with pytest.raises(CurriculumGenerationFailed):
            await make_orchestrator(generator).generate("hello there")

    @pytest.mark.asyncio
    async def test_repeat_request_hits_discovery_cache(self, make_orchestrator):
        generator = ScriptedGenerator(happy_path_responses())
        orchestrator = make_orchestrator(generator)

        first = await orchestrator.run(REQUEST)
        second = await orchestrator.run(REQUEST)

        assert first.research_discovery.cache_hit is False
        assert second.research_discovery.cache_hit is True
        assert second.research_discovery.payload == first.research_discovery.payload
        assert first.request_id != second.request_id

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self, make_orchestrator):
        generator = ScriptedGenerator(happy_path_responses())
        orchestrator = make_orchestrator(generator)

        await orchestrator.run(REQUEST)
        state = await orchestrator.run(REQUEST, force_refresh=True)

        assert state.research_discovery.cache_hit is False

    @pytest.mark.asyncio
    async def test_batches_respect_concurrency_limit(self, make_orchestrator):
        generator = ScriptedGenerator(happy_path_responses(), jitter=0.002)

        await make_orchestrator(generator).run(REQUEST)

        assert generator.max_in_flight <= 5


class TestCheckpointing:
    @pytest.mark.asyncio
    async def test_no_checkpoints_kept_by_default(self, make_orchestrator):
        orchestrator = make_orchestrator(ScriptedGenerator(happy_path_responses()))

        await orchestrator.run(REQUEST)

        assert orchestrator.graph.checkpointer is None

    @pytest.mark.asyncio
    async def test_checkpointer_records_run_by_request_id(self, discovery_cache, repository, test_settings):
        saver = MemorySaver()
        orchestrator = CurriculumOrchestrator(
            ScriptedGenerator(happy_path_responses()), discovery_cache, repository, settings=test_settings, checkpointer=saver
        )

        state = await orchestrator.run(REQUEST)

        threads = {c.config["configurable"]["thread_id"] for c in saver.list(None)}
        assert threads == {state.request_id}


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_wires_shared_redis(self, monkeypatch):
        """create() builds the provider client lazily and attaches the shared fakeredis client."""
        from curriculum.llm.structured_client import StructuredGenerationClient
        from libs.caching import discovery_cache as discovery_cache_module
        from libs.caching.redis_client import reset_redis_client

        monkeypatch.setattr(discovery_cache_module, "_global_cache", None)
        await reset_redis_client()

        orchestrator = await CurriculumOrchestrator.create()
        try:
            assert isinstance(orchestrator.context.generator, StructuredGenerationClient)
            assert orchestrator.context.cache.enabled
            assert orchestrator.context.repository.redis_client is not None
            assert orchestrator.context.dispatcher.max_concurrency == 5
        finally:
            await orchestrator.aclose()
            await reset_redis_client()
