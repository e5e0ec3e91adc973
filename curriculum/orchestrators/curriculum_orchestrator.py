"""Curriculum orchestrator using LangGraph.

Wires the seventeen stages into a StageGraph, compiles it once, and runs
one request at a time through it. The generation client, discovery cache
and repository are handed in at construction time so tests can substitute
fakes for all three.
"""

from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, Optional

import structlog
from langchain_core.runnables import RunnableConfig
from langgraph.checkpoint.base import BaseCheckpointSaver
from langsmith import traceable

from curriculum.errors import CurriculumGenerationFailed
from curriculum.llm.structured_client import StructuredGenerationClient
from curriculum.nodes import discovery, generation, personas, persistence, research
from curriculum.nodes.context import GenerationClient, NodeContext
from curriculum.orchestrators.stage_graph import StageGraph, StageId
from curriculum.schemas.generation_state import GenerationState, create_initial_state
from libs.caching.discovery_cache import DiscoveryCache, get_discovery_cache
from libs.caching.redis_client import close_redis_client
from libs.common.logging import configure_logging
from libs.common.settings import Settings, get_settings
from libs.persistence.curriculum_repository import CurriculumRepository, RedisCurriculumRepository

logger = structlog.get_logger(__name__)


def build_stage_graph(ctx: NodeContext) -> StageGraph:
    """Declare every stage with its successor, redirects and preconditions."""

    def bind(handler):
        return partial(handler, ctx=ctx)

    graph = StageGraph(entry=StageId.DISCOVER_SOURCES, terminal=StageId.SAVE_CURRICULUM)

    # Discovery
    graph.add_stage(StageId.DISCOVER_SOURCES, bind(discovery.discover_sources), next=StageId.FETCH_SOURCES, progress=5)
    graph.add_stage(StageId.FETCH_SOURCES, bind(discovery.fetch_sources), next=StageId.VALIDATE_SOURCES, progress=10)
    graph.add_stage(
        StageId.VALIDATE_SOURCES,
        bind(discovery.validate_sources),
        next=StageId.MERGE_RESEARCH,
        redirects=[StageId.FALLBACK_RESEARCH],
        progress=15,
    )
    graph.add_stage(
        StageId.MERGE_RESEARCH,
        bind(discovery.merge_research),
        next=StageId.PARSE_JOB,
        requires=["discovered_sources"],
        progress=20,
    )
    graph.add_stage(StageId.FALLBACK_RESEARCH, bind(discovery.fallback_research), next=StageId.PARSE_JOB, progress=20)

    # Research
    graph.add_stage(
        StageId.PARSE_JOB, bind(research.parse_job), next=StageId.RESEARCH_COMPANY, terminal_capable=True, progress=25
    )
    graph.add_stage(
        StageId.RESEARCH_COMPANY,
        bind(research.research_company),
        next=StageId.ANALYZE_ROLE,
        requires=["job_data"],
        terminal_capable=True,
        progress=35,
    )
    graph.add_stage(
        StageId.ANALYZE_ROLE,
        bind(research.analyze_role),
        next=StageId.UNIFIED_CONTEXT,
        requires=["job_data"],
        terminal_capable=True,
        progress=40,
    )
    graph.add_stage(
        StageId.UNIFIED_CONTEXT,
        bind(research.unified_context),
        next=StageId.GENERATE_PERSONAS,
        requires=["competitive_intelligence"],
        terminal_capable=True,
        progress=42,
    )

    # Per-round content
    graph.add_stage(
        StageId.GENERATE_PERSONAS,
        bind(personas.generate_personas),
        next=StageId.GENERATE_QUESTIONS,
        requires=["job_data", "competitive_intelligence"],
        terminal_capable=True,
        progress=45,
    )
    graph.add_stage(
        StageId.GENERATE_QUESTIONS,
        bind(personas.generate_questions),
        next=StageId.GENERATE_PREP_GUIDES,
        requires=["job_data", "personas"],
        terminal_capable=True,
        progress=55,
    )
    graph.add_stage(
        StageId.GENERATE_PREP_GUIDES,
        bind(personas.generate_prep_guides),
        next=StageId.DESIGN_STRUCTURE,
        requires=["job_data", "standard_question_sets", "competitive_intelligence"],
        terminal_capable=True,
        progress=65,
    )

    # Assembly and quality loop
    graph.add_stage(
        StageId.DESIGN_STRUCTURE,
        bind(generation.design_structure),
        next=StageId.GENERATE_ROUNDS,
        requires=["job_data", "personas"],
        terminal_capable=True,
        progress=70,
    )
    graph.add_stage(
        StageId.GENERATE_ROUNDS,
        bind(generation.generate_rounds),
        next=StageId.EVALUATE_QUALITY,
        requires=["job_data", "structure", "personas", "standard_question_sets"],
        terminal_capable=True,
        progress=80,
    )
    graph.add_stage(
        StageId.EVALUATE_QUALITY,
        bind(generation.evaluate_quality),
        next=StageId.SAVE_CURRICULUM,
        redirects=[StageId.REFINE_ROUNDS],
        requires=["rounds"],
        terminal_capable=True,
        progress=90,
    )
    graph.add_stage(
        StageId.REFINE_ROUNDS,
        bind(generation.refine_rounds),
        next=StageId.EVALUATE_QUALITY,
        requires=["job_data", "structure", "rounds"],
        terminal_capable=True,
        progress=85,
    )

    graph.add_stage(StageId.SAVE_CURRICULUM, bind(persistence.save_curriculum), progress=100)
    return graph


class CurriculumOrchestrator:
    """Runs curriculum generation requests through the compiled stage graph."""

    def __init__(
        self,
        generator: GenerationClient,
        cache: DiscoveryCache,
        repository: CurriculumRepository,
        settings: Optional[Settings] = None,
        checkpointer: Optional[BaseCheckpointSaver] = None,
    ):
        self.settings = settings or get_settings()
        self.context = NodeContext.build(generator, cache, repository, self.settings)
        self.stage_graph = build_stage_graph(self.context)
        # Runs are never resumed, so checkpoints are only kept when a saver is passed in
        self.graph = self.stage_graph.compile(checkpointer=checkpointer)
        logger.info("Curriculum graph compiled", stages=len(self.stage_graph.stages))

    @classmethod
    async def create(cls, settings: Optional[Settings] = None) -> "CurriculumOrchestrator":
        """Build an orchestrator on the shared Redis client and the OpenAI-backed generation client."""
        settings = settings or get_settings()
        configure_logging(settings.log_level, json=settings.is_production)

        cache = await get_discovery_cache()
        repository = RedisCurriculumRepository()
        await repository.connect()
        if not repository.redis_client:
            logger.warning("Redis unavailable, curricula will not be saved")

        return cls(StructuredGenerationClient(settings), cache, repository, settings)

    async def aclose(self) -> None:
        await close_redis_client()

    @staticmethod
    def _graph_input(state: GenerationState) -> Dict[str, Any]:
        # Only explicitly set fields; the refinement counter must start from its channel default
        return {
            name: getattr(state, name)
            for name in state.model_fields_set
            if name != "refinement_attempts"
        }

    @traceable(run_type="chain", name="curriculum_generation", tags=["curriculum", "langgraph"])
    async def run(
        self,
        user_input: str,
        user_profile: Optional[Dict[str, Any]] = None,
        cv_data: Optional[Dict[str, Any]] = None,
        force_refresh: bool = False,
    ) -> GenerationState:
        """
        Run one request to completion and return the final state.

        Stage failures end up in the state's errors and warnings; only a
        broken graph (for example an undeclared redirect) raises.
        """
        initial = create_initial_state(user_input, user_profile, cv_data, force_refresh)
        initial = initial.model_copy(update={"started_at": datetime.now(timezone.utc)})

        logger.info(
            "Curriculum run started",
            request_id=initial.request_id,
            input_type=initial.input_type,
            force_refresh=force_refresh,
        )

        config = RunnableConfig(
            configurable={"thread_id": initial.request_id},
            recursion_limit=self.settings.graph_recursion_limit,
            metadata={"request_id": initial.request_id, "input_type": initial.input_type},
            tags=["curriculum"],
        )
        result = await self.graph.ainvoke(self._graph_input(initial), config=config)
        final = GenerationState.model_validate(dict(result))

        logger.info(
            "Curriculum run finished",
            request_id=final.request_id,
            curriculum_id=final.curriculum_id,
            aborted=final.aborted,
            quality_score=final.quality_score,
            refinement_attempts=final.refinement_attempts,
            errors=len(final.errors),
            warnings=len(final.warnings),
        )
        return final

    async def generate(
        self,
        user_input: str,
        user_profile: Optional[Dict[str, Any]] = None,
        cv_data: Optional[Dict[str, Any]] = None,
        force_refresh: bool = False,
    ) -> str:
        """
        Run a request and return the saved curriculum id.

        Raises:
            CurriculumGenerationFailed: the run recorded errors or saved nothing
        """
        state = await self.run(user_input, user_profile, cv_data, force_refresh)
        if state.errors or not state.curriculum_id:
            raise CurriculumGenerationFailed(state.errors)
        return state.curriculum_id
