"""
Research stages: job parsing, cache-aware company discovery, competitive
intelligence and the optional personalization context.
"""

import time
from datetime import date
from typing import Any, Dict, List, Optional, Tuple, Type

import structlog
from pydantic import BaseModel

from curriculum.composer.prompts import (
    COMPETITOR_SEARCH_TEMPLATE,
    EXPERIENCE_SEARCH_TEMPLATE,
    JOB_PARSING_TEMPLATE,
    NEWS_SEARCH_TEMPLATE,
    ROLE_ANALYSIS_TEMPLATE,
    TOPIC_PARSE_TEMPLATE,
    UNIFIED_CONTEXT_TEMPLATE,
    bullet_list,
)
from curriculum.errors import GenerationError, MissingPrecondition
from curriculum.nodes.context import NodeContext
from curriculum.nodes.discovery import FALLBACK_CONFIDENCE
from curriculum.schemas.generation_state import GenerationState
from curriculum.schemas.research import (
    CompanyNewsCollection,
    CompetitiveIntelligence,
    CompetitorCollection,
    DiscoveryPayload,
    InterviewExperienceCollection,
    JobData,
    ResearchDiscovery,
    UnifiedContext,
)
from curriculum.tools.fact_ledger import derive_facts
from curriculum.tools.query_builder import (
    build_company_news_query,
    build_competitor_query,
    build_interview_experience_query,
)

logger = structlog.get_logger(__name__)

MAX_SOURCE_CHARS = 12000


# ==============================================================================
# parse_job
# ==============================================================================

async def parse_job(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    """Parse the job from the most trusted useful source, or from the raw input."""
    useful = sorted(
        (s for s in state.discovered_sources if s.is_useful and s.content),
        key=lambda s: s.trust_score,
        reverse=True,
    )
    best = useful[0] if useful else None

    prompt = JOB_PARSING_TEMPLATE.format_messages(
        user_input=state.user_input,
        source_url=best.url if best else "none",
        source_content=(best.content[:MAX_SOURCE_CHARS] if best else "No source content available."),
    )

    warnings: List[str] = []
    try:
        job = await ctx.generator.generate_structured(JobData, "job_parsing", prompt)
    except GenerationError as e:
        if not state.company_name or not state.role_title:
            raise MissingPrecondition("parse_job", ["company_name"]) from e
        logger.warning("Job parsing failed, using input", error=str(e), request_id=state.request_id)
        job = JobData(
            title=state.role_title,
            company_name=state.company_name,
            parsing_confidence=FALLBACK_CONFIDENCE,
        )
        warnings.append("Job parsing failed, using the role and company from the request")

    if best is None:
        job = job.model_copy(update={"parsing_confidence": min(job.parsing_confidence, FALLBACK_CONFIDENCE)})
    if job.url is None and state.input_type == "url":
        job = job.model_copy(update={"url": state.user_input.strip()})

    logger.info(
        "parse_job completed",
        company=job.company_name,
        title=job.title,
        level=job.level,
        confidence=job.parsing_confidence,
        request_id=state.request_id,
    )

    update: Dict[str, Any] = {
        "job_data": job,
        "company_name": state.company_name or job.company_name,
        "role_title": state.role_title or job.title,
    }
    if warnings:
        update["warnings"] = warnings
    return update


# ==============================================================================
# research_company
# ==============================================================================

_TOPICS: Tuple[Tuple[str, Any, Any, Type[BaseModel]], ...] = (
    ("competitors", build_competitor_query, COMPETITOR_SEARCH_TEMPLATE, CompetitorCollection),
    ("interview_experiences", build_interview_experience_query, EXPERIENCE_SEARCH_TEMPLATE, InterviewExperienceCollection),
    ("company_news", build_company_news_query, NEWS_SEARCH_TEMPLATE, CompanyNewsCollection),
)


async def _discover_topic(
    topic: str,
    query_builder,
    template,
    schema: Type[BaseModel],
    company: str,
    role: str,
    ctx: NodeContext,
    today: Optional[date] = None,
) -> Tuple[str, str, List[Any], Dict[str, Any]]:
    """Search pass then structured parse; returns (topic, query, items, grounding)."""
    query = query_builder(company, role, today)
    try:
        search = await ctx.generator.generate_with_search(
            "company_research",
            template.format_messages(company=company, role=role, search_query=query),
        )
        parsed = await ctx.generator.generate_structured(
            schema,
            "company_research",
            TOPIC_PARSE_TEMPLATE.format_messages(topic=topic.replace("_", " "), content=search.content),
        )
    except GenerationError as e:
        logger.warning("Topic discovery failed", topic=topic, company=company, error=str(e))
        return topic, query, [], {}

    items = list(getattr(parsed, next(iter(type(parsed).model_fields))))
    return topic, query, items, dict(search.grounding_metadata or {})


async def discover_with_cache(
    company: str,
    role: str,
    ctx: NodeContext,
    force_refresh: bool = False,
    timings: Optional[Dict[str, float]] = None,
) -> ResearchDiscovery:
    """Read the discovery cache, or run the three topic searches and cache the result."""
    started = time.perf_counter()

    if not force_refresh:
        entry = await ctx.cache.get(company, role)
        if entry is not None:
            payload = DiscoveryPayload.model_validate(entry.payload)
            latency_ms = round((time.perf_counter() - started) * 1000, 2)
            logger.info("Discovery cache hit", company=company, role=role, hit_count=entry.hit_count, latency_ms=latency_ms)
            return ResearchDiscovery(payload=payload, cache_hit=True, latency_ms=latency_ms)

    results = await ctx.dispatcher.run_calls(
        "company_research",
        [
            (lambda t=t: _discover_topic(t[0], t[1], t[2], t[3], company, role, ctx))
            for t in _TOPICS
        ],
        timings=timings,
    )

    fields: Dict[str, List[Any]] = {}
    queries: Dict[str, str] = {}
    grounding: Dict[str, Any] = {}
    fallback_topics: List[str] = []
    for topic, query, items, metadata in results:
        fields[topic] = items
        queries[topic] = query
        if metadata:
            grounding[topic] = metadata
        if not items:
            fallback_topics.append(topic)

    payload = DiscoveryPayload(**fields, search_queries=queries, grounding_metadata=grounding)

    if len(fallback_topics) < len(_TOPICS):
        stored = await ctx.cache.set(company, role, payload.model_dump(mode="json"))
        if not stored:
            logger.warning("Discovery cache write skipped", company=company, role=role)

    latency_ms = round((time.perf_counter() - started) * 1000, 2)
    logger.info(
        "Discovery completed",
        company=company,
        role=role,
        competitors=len(payload.competitors),
        experiences=len(payload.interview_experiences),
        news=len(payload.company_news),
        fallback_topics=fallback_topics,
        latency_ms=latency_ms,
    )
    return ResearchDiscovery(payload=payload, cache_hit=False, latency_ms=latency_ms, fallback_topics=fallback_topics)


async def research_company(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    job = state.job_data
    timings: Dict[str, float] = {}
    discovery = await discover_with_cache(
        job.company_name,
        job.title,
        ctx,
        force_refresh=state.force_refresh,
        timings=timings,
    )

    update: Dict[str, Any] = {"research_discovery": discovery, "batch_timings": timings}
    if discovery.fallback_topics:
        update["warnings"] = [f"No research found for: {', '.join(discovery.fallback_topics)}"]
    return update


# ==============================================================================
# analyze_role
# ==============================================================================

def basic_competitive_intelligence(state: GenerationState) -> CompetitiveIntelligence:
    """Minimal intelligence built from whatever discovery found."""
    job = state.job_data
    payload = state.research_discovery.payload if state.research_discovery else DiscoveryPayload()
    industry = state.company_context.industry if state.company_context else "unknown"
    competitors = [c.name for c in payload.competitors][:5]

    developments = [n.title for n in payload.company_news][:3] or [
        f"{job.company_name} is hiring for {job.title}"
    ]
    positioning = (
        f"{job.company_name} competes with {', '.join(competitors)}"
        if competitors
        else f"{job.company_name} is an established employer in the {industry} sector"
    )
    return CompetitiveIntelligence(
        primary_competitors=competitors,
        strategic_advantages=[f"{job.company_name} has an established position in its market"],
        recent_developments=developments,
        competitive_positioning=positioning,
    )


def summarize_competitive_intelligence(ci: Optional[CompetitiveIntelligence]) -> str:
    if ci is None:
        return "No competitive intelligence available."
    return "\n".join(
        [
            "Strategic advantages:",
            bullet_list(ci.strategic_advantages),
            "Recent developments:",
            bullet_list(ci.recent_developments),
            f"Positioning: {ci.competitive_positioning}",
            f"Primary competitors: {', '.join(ci.primary_competitors) or 'unknown'}",
        ]
    )


async def analyze_role(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    job = state.job_data
    payload = state.research_discovery.payload if state.research_discovery else DiscoveryPayload()
    context = state.company_context

    prompt = ROLE_ANALYSIS_TEMPLATE.format_messages(
        company=job.company_name,
        role=job.title,
        job_summary=bullet_list([f"Level: {job.level}"] + job.requirements[:5] + job.responsibilities[:5]),
        company_summary=bullet_list(
            ([f"Industry: {context.industry}"] + context.culture_highlights) if context else []
        ),
        competitors=bullet_list(
            f"{c.name}: {', '.join(c.differentiators) or c.industry}" for c in payload.competitors
        ),
        news=bullet_list(f"{n.title} ({n.date_published or 'undated'})" for n in payload.company_news),
        experiences=bullet_list(
            insight for e in payload.interview_experiences for insight in e.key_insights[:2]
        ),
    )

    warnings: List[str] = []
    try:
        ci = await ctx.generator.generate_structured(CompetitiveIntelligence, "role_analysis", prompt)
    except GenerationError as e:
        logger.warning("Role analysis failed, using basic analysis", error=str(e), request_id=state.request_id)
        ci = basic_competitive_intelligence(state)
        warnings.append("Competitive analysis failed, using basic analysis")

    facts = derive_facts(ci)
    logger.info(
        "analyze_role completed",
        advantages=len(ci.strategic_advantages),
        developments=len(ci.recent_developments),
        facts=len(facts),
        request_id=state.request_id,
    )

    update: Dict[str, Any] = {"competitive_intelligence": ci, "facts": facts}
    if warnings:
        update["warnings"] = warnings
    return update


# ==============================================================================
# unified_context
# ==============================================================================

def generic_unified_context() -> UnifiedContext:
    return UnifiedContext(
        confidence_builders=["Prepare three specific stories with measurable outcomes"],
        ci_integration_strategy="Reference one company advantage or recent development per round",
        personalized_approach="General preparation strategy",
        personalized=False,
    )


async def unified_context(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    """Combine research with the candidate's profile and CV when either is given."""
    if not state.user_profile and not state.cv_data:
        return {}

    prompt = UNIFIED_CONTEXT_TEMPLATE.format_messages(
        role=state.job_data.title if state.job_data else state.role_title,
        company=state.job_data.company_name if state.job_data else state.company_name,
        profile=state.user_profile or "not provided",
        cv=state.cv_data or "not provided",
        ci_summary=summarize_competitive_intelligence(state.competitive_intelligence),
    )
    try:
        context = await ctx.generator.generate_structured(UnifiedContext, "unified_context", prompt)
    except GenerationError as e:
        logger.warning("Unified context failed, using generic strategy", error=str(e), request_id=state.request_id)
        return {
            "unified_context": generic_unified_context(),
            "warnings": ["Personalization failed, using a generic strategy"],
        }

    return {"unified_context": context.model_copy(update={"personalized": True})}
