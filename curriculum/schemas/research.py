"""
Research-side models: sources, job data, company context, discovery topics,
competitive intelligence and the facts derived from it.

Models that are sent to the provider as structured-output schemas carry field
descriptions; the descriptions double as instructions to the model.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SourcePriority = Literal["core", "dynamic"]
SourceType = Literal["official", "linkedin", "glassdoor", "careers", "news", "blog", "forum", "other"]

FactSourceType = Literal[
    "strategic_advantage",
    "recent_development",
    "competitive_comparison",
    "scale_challenge",
    "tech_change",
    "growth_area",
]


# ==============================================================================
# Sources
# ==============================================================================

class DiscoveredSource(BaseModel):
    """A web source about the company or role. Identified by URL."""

    url: str = Field(..., description="Source URL")
    title: Optional[str] = Field(default=None, description="Human-readable title")
    source_type: SourceType = Field(default="other", description="Kind of source")
    priority: SourcePriority = Field(default="dynamic", description="core sources are always fetched")
    trust_score: float = Field(default=0.5, ge=0.0, le=1.0, description="Prior trust in the source")

    # Filled in by later stages
    content: Optional[str] = Field(default=None, description="Fetched text content")
    grounding_metadata: Optional[Dict[str, Any]] = Field(default=None)
    is_useful: Optional[bool] = Field(default=None)
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class ExtractedEntities(BaseModel):
    """Company and role parsed from free-text input."""

    company_name: str = Field(..., description="Company the candidate is interviewing with")
    role_title: str = Field(..., description="Job title the candidate is applying for")
    location: Optional[str] = Field(default=None, description="Job location if stated")


class SuggestedSource(BaseModel):
    url: str = Field(..., description="URL likely to contain company or role information")
    title: str = Field(..., description="Short description of the page")
    source_type: SourceType = Field(default="other", description="Kind of source")


class SourceSuggestions(BaseModel):
    """Additional sources proposed by the provider."""

    sources: List[SuggestedSource] = Field(default_factory=list, max_length=10)


# ==============================================================================
# Job and company
# ==============================================================================

class JobData(BaseModel):
    """Parsed job posting."""

    title: str = Field(..., min_length=1, description="Job title")
    company_name: str = Field(..., min_length=1, description="Company name")
    level: str = Field(default="mid", description="Job level (e.g. entry, mid, senior, lead, executive)")
    department: Optional[str] = Field(default=None, description="Department or team")
    location: Optional[str] = Field(default=None, description="Job location")
    requirements: List[str] = Field(default_factory=list, description="Key requirements")
    responsibilities: List[str] = Field(default_factory=list, description="Key responsibilities")
    url: Optional[str] = Field(default=None, description="Original job posting URL")
    parsing_confidence: float = Field(default=0.8, ge=0.0, le=1.0, description="Confidence in the parse")


class CompanyContext(BaseModel):
    """What is known about the company from research sources."""

    name: str = Field(..., min_length=1, description="Company name")
    industry: str = Field(default="unknown", description="Industry sector")
    size: Optional[str] = Field(default=None, description="Company size")
    values: List[str] = Field(default_factory=list, description="Company values")
    culture_highlights: List[str] = Field(default_factory=list, description="Key cultural highlights")
    recent_news: List[str] = Field(default_factory=list, description="Recent company news")
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    source_urls: List[str] = Field(default_factory=list)


# ==============================================================================
# Discovery topics
# ==============================================================================

class Competitor(BaseModel):
    name: str = Field(..., min_length=1, description="Competitor company name")
    url: str = Field(..., description="Competitor website or careers page URL")
    industry: str = Field(..., description="Industry sector or vertical")
    size: Optional[str] = Field(default=None, description="Company size")
    differentiators: List[str] = Field(default_factory=list, description="Key differentiators")


class InterviewRoundDetail(BaseModel):
    round_name: str = Field(..., description="Name of the interview round")
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    format: Optional[str] = Field(default=None, description="Phone, Video, Onsite, Take-home")
    focus_areas: List[str] = Field(default_factory=list)


class InterviewExperience(BaseModel):
    source_url: str = Field(..., description="Source URL (Glassdoor, Blind, ...)")
    date_posted: Optional[str] = Field(default=None)
    role: Optional[str] = Field(default=None)
    outcome: Optional[str] = Field(default=None)
    overall_difficulty: Optional[str] = Field(default=None)
    rounds: List[InterviewRoundDetail] = Field(default_factory=list)
    preparation_tips: List[str] = Field(default_factory=list)
    key_insights: List[str] = Field(default_factory=list)


class CompanyNews(BaseModel):
    title: str = Field(..., min_length=1, description="Headline")
    url: str = Field(..., description="Article URL")
    summary: Optional[str] = Field(default=None)
    date_published: Optional[str] = Field(default=None)
    relevance_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    sentiment: Optional[Literal["positive", "neutral", "negative"]] = Field(default=None)
    source: Optional[str] = Field(default=None, description="Publisher")


class CompetitorCollection(BaseModel):
    competitors: List[Competitor] = Field(..., min_length=1, max_length=5)


class InterviewExperienceCollection(BaseModel):
    experiences: List[InterviewExperience] = Field(..., min_length=1, max_length=10)


class CompanyNewsCollection(BaseModel):
    news: List[CompanyNews] = Field(..., min_length=1, max_length=6)


class DiscoveryPayload(BaseModel):
    """The cached unit of discovery research for one (company, role family)."""

    competitors: List[Competitor] = Field(default_factory=list)
    interview_experiences: List[InterviewExperience] = Field(default_factory=list)
    company_news: List[CompanyNews] = Field(default_factory=list)
    search_queries: Dict[str, str] = Field(default_factory=dict)
    grounding_metadata: Dict[str, Any] = Field(default_factory=dict)


class ResearchDiscovery(BaseModel):
    """Discovery payload plus how it was obtained."""

    payload: DiscoveryPayload
    cache_hit: bool = False
    latency_ms: float = 0.0
    fallback_topics: List[str] = Field(default_factory=list)


# ==============================================================================
# Competitive intelligence and facts
# ==============================================================================

class CompetitiveIntelligence(BaseModel):
    """How the company stands against its competitors, from the role's point of view."""

    primary_competitors: List[str] = Field(default_factory=list, description="Primary competitors")
    strategic_advantages: List[str] = Field(..., min_length=1, max_length=5, description="Strategic competitive advantages")
    recent_developments: List[str] = Field(..., min_length=1, max_length=5, description="Recent company developments")
    competitive_positioning: str = Field(..., min_length=1, description="How the company positions against competitors")
    role_comparison: str = Field(default="", description="How this role compares to the same role at competitors")
    market_trends: List[str] = Field(default_factory=list, max_length=3, description="Market trends shaping the role")


class Fact(BaseModel):
    """An atomic competitive-intelligence statement that generated content may cite."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    source_type: FactSourceType


class UnifiedContext(BaseModel):
    """Personalization strategy combining research with the candidate profile."""

    strength_amplifiers: List[str] = Field(default_factory=list, description="Candidate strengths to emphasise")
    gap_bridges: List[str] = Field(default_factory=list, description="How to address gaps against the role")
    confidence_builders: List[str] = Field(default_factory=list, description="Preparation that builds confidence")
    ci_integration_strategy: str = Field(default="", description="How to weave company research into answers")
    personalized_approach: str = Field(default="", description="Overall approach for this candidate")
    personalized: bool = Field(default=True)
