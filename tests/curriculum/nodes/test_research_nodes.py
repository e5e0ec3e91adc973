"""
Tests for research stage handlers.

Tests verify:
- parse_job prefers the most trusted useful source and falls back to the request
- parse_job without any company raises MissingPrecondition
- research_company reads through the discovery cache and honours force_refresh
- analyze_role derives facts, with a basic analysis on provider failure
- unified_context is a no-op without a profile and generic on failure
"""

import pytest

from curriculum.errors import MissingPrecondition
from curriculum.nodes.context import NodeContext
from curriculum.nodes.research import analyze_role, parse_job, research_company, unified_context
from curriculum.schemas.generation_state import create_initial_state, merge_state
from curriculum.schemas.research import DiscoveredSource, ResearchDiscovery
from fakes import SOURCE_TEXT, ScriptedGenerator, happy_path_responses, prompt_text, sample_ci, sample_job


@pytest.fixture
def make_ctx(discovery_cache, repository, test_settings):
    def build(generator):
        return NodeContext.build(generator, discovery_cache, repository, test_settings)

    return build


class TestParseJob:
    @pytest.mark.asyncio
    async def test_uses_most_trusted_source(self, make_ctx):
        generator = ScriptedGenerator(happy_path_responses())
        sources = [
            DiscoveredSource(url="https://low.example", trust_score=0.5, content="low " * 30, is_useful=True),
            DiscoveredSource(url="https://high.example", trust_score=0.95, content=SOURCE_TEXT, is_useful=True),
        ]
        state = merge_state(create_initial_state("Software Engineer at Netflix"), {"discovered_sources": sources})

        update = await parse_job(state, make_ctx(generator))

        assert update["job_data"].company_name == "Netflix"
        assert update["company_name"] == "Netflix"
        assert "https://high.example" in prompt_text(generator.calls_for("JobData")[0]["prompt"])

    @pytest.mark.asyncio
    async def test_without_sources_confidence_is_low(self, make_ctx):
        update = await parse_job(create_initial_state("Software Engineer at Netflix"), make_ctx(ScriptedGenerator(happy_path_responses())))
        assert update["job_data"].parsing_confidence == 0.3

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_request(self, make_ctx):
        generator = ScriptedGenerator(failing={"JobData"})
        state = merge_state(create_initial_state("x"), {"company_name": "Netflix", "role_title": "Data Scientist"})

        update = await parse_job(state, make_ctx(generator))

        assert update["job_data"].title == "Data Scientist"
        assert update["job_data"].parsing_confidence == 0.3
        assert update["warnings"]

    @pytest.mark.asyncio
    async def test_failure_without_company_raises(self, make_ctx):
        with pytest.raises(MissingPrecondition):
            await parse_job(create_initial_state("x"), make_ctx(ScriptedGenerator(failing={"JobData"})))


class TestResearchCompany:
    @pytest.mark.asyncio
    async def test_miss_then_hit(self, make_ctx, discovery_cache):
        state = merge_state(create_initial_state("x"), {"job_data": sample_job(title="Senior Tax Analyst II")})

        generator = ScriptedGenerator(happy_path_responses())
        first = await research_company(state, make_ctx(generator))
        discovery: ResearchDiscovery = first["research_discovery"]
        assert discovery.cache_hit is False
        assert discovery.payload.competitors[0].name == "Disney+"
        assert set(discovery.payload.search_queries) == {"competitors", "interview_experiences", "company_news"}
        assert len(generator.calls_for("search")) == 3

        second_generator = ScriptedGenerator(happy_path_responses())
        second = await research_company(state, make_ctx(second_generator))
        assert second["research_discovery"].cache_hit is True
        assert second["research_discovery"].payload == discovery.payload
        assert second_generator.calls == []

        entry = await discovery_cache.get("Netflix", "Senior Tax Analyst II")
        assert entry.key == "discovery:netflix:general"

    @pytest.mark.asyncio
    async def test_force_refresh_skips_cache_read(self, make_ctx):
        state = merge_state(create_initial_state("x", force_refresh=True), {"job_data": sample_job()})

        await research_company(state, make_ctx(ScriptedGenerator(happy_path_responses())))
        generator = ScriptedGenerator(happy_path_responses())
        update = await research_company(state, make_ctx(generator))

        assert update["research_discovery"].cache_hit is False
        assert len(generator.calls_for("search")) == 3

    @pytest.mark.asyncio
    async def test_failed_topics_are_reported(self, make_ctx, discovery_cache):
        state = merge_state(create_initial_state("x"), {"job_data": sample_job()})

        update = await research_company(state, make_ctx(ScriptedGenerator(failing={"search"})))

        discovery = update["research_discovery"]
        assert sorted(discovery.fallback_topics) == ["company_news", "competitors", "interview_experiences"]
        assert update["warnings"]
        # Nothing was found, so nothing is cached
        assert await discovery_cache.get("Netflix", "Software Engineer") is None


class TestAnalyzeRole:
    @pytest.mark.asyncio
    async def test_derives_facts(self, make_ctx):
        state = merge_state(create_initial_state("x"), {"job_data": sample_job()})

        update = await analyze_role(state, make_ctx(ScriptedGenerator(happy_path_responses())))

        assert update["competitive_intelligence"] == sample_ci()
        assert [f.id for f in update["facts"]][:2] == ["strategic_1", "strategic_2"]

    @pytest.mark.asyncio
    async def test_failure_uses_basic_analysis(self, make_ctx):
        state = merge_state(create_initial_state("x"), {"job_data": sample_job()})

        update = await analyze_role(state, make_ctx(ScriptedGenerator(failing={"CompetitiveIntelligence"})))

        ci = update["competitive_intelligence"]
        assert ci.strategic_advantages and ci.recent_developments
        assert update["facts"]
        assert update["warnings"] == ["Competitive analysis failed, using basic analysis"]


class TestUnifiedContext:
    @pytest.mark.asyncio
    async def test_no_profile_is_a_no_op(self, make_ctx):
        generator = ScriptedGenerator()
        state = merge_state(create_initial_state("x"), {"job_data": sample_job(), "competitive_intelligence": sample_ci()})

        assert await unified_context(state, make_ctx(generator)) == {}
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_personalized(self, make_ctx):
        state = merge_state(
            create_initial_state("x", user_profile={"years_experience": 6}),
            {"job_data": sample_job(), "competitive_intelligence": sample_ci()},
        )

        update = await unified_context(state, make_ctx(ScriptedGenerator(happy_path_responses())))

        assert update["unified_context"].personalized is True

    @pytest.mark.asyncio
    async def test_failure_is_generic(self, make_ctx):
        state = merge_state(
            create_initial_state("x", cv_data={"skills": ["python"]}),
            {"job_data": sample_job(), "competitive_intelligence": sample_ci()},
        )

        update = await unified_context(state, make_ctx(ScriptedGenerator(failing={"UnifiedContext"})))

        assert update["unified_context"].personalized is False
        assert update["warnings"]
