"""
Source discovery stages.

discover_sources -> fetch_sources -> validate_sources -> merge_research
                                            |
                                            +--> fallback_research (no useful sources)

Nothing here fails the run: a failed extraction, suggestion or fetch leaves a
warning and the research continues with whatever was found.
"""

import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import structlog

from curriculum.composer.prompts import (
    ENTITY_EXTRACTION_TEMPLATE,
    SOURCE_FETCH_TEMPLATE,
    SOURCE_SUGGESTION_TEMPLATE,
)
from curriculum.errors import GenerationError
from curriculum.nodes.context import NodeContext
from curriculum.orchestrators.stage_graph import GoTo, StageId
from curriculum.schemas.generation_state import GenerationState
from curriculum.schemas.research import (
    CompanyContext,
    DiscoveredSource,
    ExtractedEntities,
    SourceSuggestions,
)

logger = structlog.get_logger(__name__)

NO_USEFUL_SOURCES_WARNING = "No useful sources found, using minimal context"
FALLBACK_RESEARCH_WARNING = "Using fallback research with limited data"

MIN_USEFUL_CONTENT_CHARS = 80
NO_CONTENT_MARKER = "no relevant content"
FALLBACK_CONFIDENCE = 0.3

_ROLE_AT_COMPANY = re.compile(r"^\s*(?P<role>.+?)\s+at\s+(?P<company>.+?)\s*$", re.IGNORECASE)
_SLUG = re.compile(r"[^a-z0-9]+")


def company_slug(company: str) -> str:
    return _SLUG.sub("-", company.lower()).strip("-")


def build_core_sources(company: str) -> List[DiscoveredSource]:
    """The sources every text request starts from."""
    slug = company_slug(company)
    return [
        DiscoveredSource(
            url=f"https://www.linkedin.com/company/{slug}",
            title=f"{company} on LinkedIn",
            source_type="linkedin",
            priority="core",
            trust_score=0.85,
        ),
        DiscoveredSource(
            url=f"https://www.glassdoor.com/Reviews/{slug}-Reviews",
            title=f"{company} reviews on Glassdoor",
            source_type="glassdoor",
            priority="core",
            trust_score=0.8,
        ),
        DiscoveredSource(
            url=f"https://careers.{slug.replace('-', '')}.com",
            title=f"{company} careers",
            source_type="careers",
            priority="core",
            trust_score=0.95,
        ),
    ]


def split_role_at_company(text: str) -> Optional[Tuple[str, str]]:
    """Parse '<role> at <company>'; returns (company, role) or None."""
    match = _ROLE_AT_COMPANY.match(text)
    if not match:
        return None
    return match.group("company"), match.group("role")


def company_from_url(url: str) -> Optional[str]:
    host = urlparse(url).hostname or ""
    parts = [p for p in host.split(".") if p not in ("www", "jobs", "careers", "boards")]
    if len(parts) < 2:
        return None
    return parts[-2].capitalize()


async def _extract_entities(user_input: str, ctx: NodeContext) -> Optional[Tuple[str, str]]:
    try:
        entities = await ctx.generator.generate_structured(
            ExtractedEntities,
            "job_parsing",
            ENTITY_EXTRACTION_TEMPLATE.format_messages(user_input=user_input),
        )
        return entities.company_name, entities.role_title
    except GenerationError as e:
        logger.warning("Entity extraction failed, trying pattern match", error=str(e))
        return split_role_at_company(user_input)


async def _suggest_sources(
    company: str,
    role: str,
    known: List[DiscoveredSource],
    ctx: NodeContext,
) -> Tuple[List[DiscoveredSource], Optional[str]]:
    limit = ctx.settings.max_dynamic_sources
    if limit <= 0:
        return [], None

    known_urls = {s.url for s in known}
    try:
        suggestions = await ctx.generator.generate_structured(
            SourceSuggestions,
            "company_research",
            SOURCE_SUGGESTION_TEMPLATE.format_messages(
                company=company,
                role=role,
                max_sources=limit,
                known_urls="\n".join(sorted(known_urls)),
            ),
        )
    except GenerationError as e:
        logger.warning("Source suggestion failed", company=company, error=str(e))
        return [], f"Dynamic source discovery failed: {e}"

    sources = [
        DiscoveredSource(
            url=s.url,
            title=s.title,
            source_type=s.source_type,
            priority="dynamic",
            trust_score=0.6,
        )
        for s in suggestions.sources
        if s.url not in known_urls
    ]
    return sources[:limit], None


async def discover_sources(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    """Identify company and role and list the sources to research."""
    if state.input_type == "url":
        source = DiscoveredSource(
            url=state.user_input.strip(),
            title="Job posting",
            source_type="official",
            priority="core",
            trust_score=0.95,
        )
        logger.info("discover_sources completed", input_type="url", sources=1, request_id=state.request_id)
        return {"discovered_sources": [source]}

    entities = await _extract_entities(state.user_input, ctx)
    if entities is None:
        logger.warning("Could not identify company and role", request_id=state.request_id)
        return {"warnings": ["Could not identify company and role from input"]}

    company, role = entities
    core = build_core_sources(company)
    dynamic, warning = await _suggest_sources(company, role, core, ctx)

    logger.info(
        "discover_sources completed",
        input_type="text",
        company=company,
        role=role,
        core=len(core),
        dynamic=len(dynamic),
        request_id=state.request_id,
    )
    update: Dict[str, Any] = {
        "company_name": company,
        "role_title": role,
        "discovered_sources": core + dynamic,
    }
    if warning:
        update["warnings"] = [warning]
    return update


async def fetch_sources(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    """Fetch the content of every source that has none yet."""
    pending = [s for s in state.discovered_sources if not s.content]
    if not pending:
        return {}

    company = state.company_name or company_from_url(pending[0].url) or "the company"
    role = state.role_title or "the advertised role"

    async def fetch(source: DiscoveredSource) -> DiscoveredSource:
        try:
            result = await ctx.generator.generate_with_search(
                "company_research",
                SOURCE_FETCH_TEMPLATE.format_messages(url=source.url, company=company, role=role),
            )
        except GenerationError as e:
            logger.warning("Source fetch failed", url=source.url, error=str(e))
            return source.model_copy(update={"content": "", "is_useful": False})
        return source.model_copy(
            update={"content": result.content, "grounding_metadata": result.grounding_metadata or None}
        )

    timings: Dict[str, float] = {}
    fetched = await ctx.dispatcher.run_calls(
        "source_fetch",
        [(lambda s=s: fetch(s)) for s in pending],
        timings=timings,
    )
    failed = sum(1 for s in fetched if not s.content)

    update: Dict[str, Any] = {"discovered_sources": fetched, "batch_timings": timings}
    if failed:
        update["warnings"] = [f"{failed} of {len(fetched)} sources could not be fetched"]
    return update


def assess_source(source: DiscoveredSource) -> DiscoveredSource:
    content = (source.content or "").strip()
    useful = len(content) >= MIN_USEFUL_CONTENT_CHARS and NO_CONTENT_MARKER not in content.lower()
    confidence = round(source.trust_score * min(1.0, 0.5 + len(content) / 2000), 2) if useful else 0.0
    return source.model_copy(update={"is_useful": useful, "confidence": confidence})


async def validate_sources(state: GenerationState, ctx: NodeContext):
    """Mark each source useful or not; redirect to fallback research if none are."""
    assessed = [assess_source(s) for s in state.discovered_sources]
    useful = [s for s in assessed if s.is_useful]

    logger.info(
        "validate_sources completed",
        total=len(assessed),
        useful=len(useful),
        request_id=state.request_id,
    )

    if not useful:
        return GoTo(
            StageId.FALLBACK_RESEARCH,
            {"discovered_sources": assessed, "warnings": [NO_USEFUL_SOURCES_WARNING]},
        )
    return {"discovered_sources": assessed}


async def merge_research(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    """Build the company context from the useful sources, most trusted first."""
    useful = sorted(
        (s for s in state.discovered_sources if s.is_useful),
        key=lambda s: (s.confidence or 0.0, s.trust_score),
        reverse=True,
    )
    name = state.company_name or company_from_url(state.user_input) or "Unknown company"

    confidence = round(sum(s.confidence or 0.0 for s in useful) / len(useful), 2) if useful else FALLBACK_CONFIDENCE
    highlights = [
        f"{s.title or s.source_type}: {s.content.strip().splitlines()[0][:200]}"
        for s in useful[:3]
        if s.content and s.content.strip()
    ]
    news = [s.title for s in useful if s.source_type == "news" and s.title]

    context = CompanyContext(
        name=name,
        culture_highlights=highlights,
        recent_news=news[:5],
        confidence=confidence,
        source_urls=[s.url for s in useful],
    )
    logger.info("merge_research completed", company=name, sources=len(useful), confidence=confidence)
    return {"company_context": context}


async def fallback_research(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    """Minimal company context when no source produced anything usable."""
    name = state.company_name or company_from_url(state.user_input) or "Unknown company"
    logger.warning("fallback_research used", company=name, request_id=state.request_id)
    return {
        "company_context": CompanyContext(name=name, confidence=FALLBACK_CONFIDENCE),
        "warnings": [FALLBACK_RESEARCH_WARNING],
    }
