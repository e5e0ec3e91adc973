"""Test doubles and sample data shared across the curriculum tests."""

import asyncio
import random
from typing import Any, Dict, List, Optional, Type

from curriculum.errors import GenerationError
from curriculum.llm.structured_client import SearchResult
from curriculum.schemas.content import (
    ROUND_ORDER,
    AllRoundsReverseQuestions,
    CandidatePrep,
    InterviewerPersona,
    PersonaIdentity,
    QualityEvaluation,
    ReverseQuestion,
    RoundContent,
    RoundFactAllocation,
    RoundReverseQuestions,
    RoundTopic,
    StandardQuestion,
    StandardQuestionSet,
)
from curriculum.schemas.research import (
    CompanyNews,
    CompanyNewsCollection,
    CompetitiveIntelligence,
    Competitor,
    CompetitorCollection,
    ExtractedEntities,
    InterviewExperience,
    InterviewExperienceCollection,
    JobData,
    SourceSuggestions,
    SuggestedSource,
    UnifiedContext,
)


class ScriptedGenerator:
    """
    Fake generation client.

    Responses are registered per schema name ("search" for search calls) as
    a value or a callable taking the prompt. Names in ``failing`` raise
    GenerationError. Every call is recorded, along with the peak number of
    calls in flight.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Any]] = None,
        failing: Optional[set] = None,
        jitter: float = 0.0,
    ):
        self.responses: Dict[str, Any] = dict(responses or {})
        self.failing = set(failing or ())
        self.jitter = jitter
        self.calls: List[Dict[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self, name: str, task_id: str, prompt: Any, options: Any) -> None:
        self.calls.append({"schema": name, "task_id": task_id, "prompt": prompt, "options": options})
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(random.uniform(0, self.jitter) if self.jitter else 0)
        finally:
            self.in_flight -= 1

    def _respond(self, name: str, prompt: Any) -> Any:
        if name in self.failing:
            raise GenerationError(f"{name} failed", task_id=name)
        response = self.responses[name]
        return response(prompt) if callable(response) else response

    async def generate_structured(self, schema: Type, task_id: str, prompt: Any, options: Any = None):
        await self._enter(schema.__name__, task_id, prompt, options)
        return self._respond(schema.__name__, prompt)

    async def generate_with_search(self, task_id: str, prompt: Any, options: Any = None) -> SearchResult:
        await self._enter("search", task_id, prompt, options)
        return self._respond("search", prompt)

    def calls_for(self, name: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["schema"] == name]


def prompt_text(prompt: Any) -> str:
    """Flatten a prompt (string or message list) to text for assertions."""
    if isinstance(prompt, str):
        return prompt
    return "\n".join(str(getattr(m, "content", m)) for m in prompt)


# ==============================================================================
# Sample data
# ==============================================================================

SOURCE_TEXT = (
    "Netflix is a global streaming entertainment company. Engineers work in small teams "
    "with high autonomy, following the culture memo of freedom and responsibility."
)


def sample_job(**overrides) -> JobData:
    data = dict(
        title="Software Engineer",
        company_name="Netflix",
        level="senior",
        requirements=["Distributed systems", "Java or Python"],
        responsibilities=["Build streaming services"],
    )
    data.update(overrides)
    return JobData(**data)


def sample_ci() -> CompetitiveIntelligence:
    return CompetitiveIntelligence(
        primary_competitors=["Disney+", "Amazon Prime Video"],
        strategic_advantages=["Global original content scale", "Personalized recommendation technology"],
        recent_developments=["Launched an ad-supported subscription tier"],
        competitive_positioning="Largest global subscription streamer",
        market_trends=["Live sports streaming"],
    )


def sample_persona(prompt: Any = None) -> InterviewerPersona:
    return InterviewerPersona(
        id="persona",
        round_number=1,
        round_type=ROUND_ORDER[0],
        identity=PersonaIdentity(
            name="Alex Rivera",
            role="Engineering Manager at Netflix",
            personality_traits=["direct", "curious"],
        ),
    )


def sample_question_set(prompt: Any = None) -> StandardQuestionSet:
    return StandardQuestionSet(
        questions=[
            StandardQuestion(id=f"q{i}", text=f"Tell me about a system you designed, part {i}.", category="behavioral")
            for i in range(1, 4)
        ]
    )


def reverse_questions_citing(fact_ids_by_round: Dict[str, List[str]]) -> AllRoundsReverseQuestions:
    """Reverse questions where the i-th question of each round cites the i-th listed fact."""
    questions = {
        round_id: [
            ReverseQuestion(
                id=f"{round_id}-rq{i}",
                question_text=f"How has this shaped the team's priorities this year? ({fact_id})",
                ci_fact_id=fact_id,
            )
            for i, fact_id in enumerate(fact_ids, start=1)
        ]
        for round_id, fact_ids in fact_ids_by_round.items()
    }
    return AllRoundsReverseQuestions(
        fact_allocation=RoundFactAllocation(**fact_ids_by_round),
        questions=RoundReverseQuestions(**questions),
    )


# Each of the five sample facts cited exactly twice
BALANCED_CITATIONS = {
    "recruiter_screen": ["strategic_1", "strategic_2"],
    "behavioral_deep_dive": ["development_1", "positioning_1"],
    "culture_values_alignment": ["trend_1", "strategic_1"],
    "strategic_role_discussion": ["strategic_2", "development_1"],
    "executive_final": ["positioning_1", "trend_1"],
}


def sample_round_content(prompt: Any = None) -> RoundContent:
    return RoundContent(
        topics=[RoundTopic(topic="System design discussion", time_allocation=20)],
        opening_script="Welcome, let's get started.",
        closing_script="Thanks for your time.",
    )


def happy_path_responses(score: int = 90) -> Dict[str, Any]:
    """A response for every call a full text-input run makes."""
    return {
        "ExtractedEntities": ExtractedEntities(company_name="Netflix", role_title="Software Engineer"),
        "SourceSuggestions": SourceSuggestions(
            sources=[SuggestedSource(url="https://netflixtechblog.com", title="Netflix Tech Blog", source_type="blog")]
        ),
        "search": SearchResult(content=SOURCE_TEXT, grounding_metadata={"provider": "fake"}),
        "JobData": sample_job(),
        "CompetitorCollection": CompetitorCollection(
            competitors=[Competitor(name="Disney+", url="https://disneyplus.com", industry="Streaming")]
        ),
        "InterviewExperienceCollection": InterviewExperienceCollection(
            experiences=[
                InterviewExperience(
                    source_url="https://www.glassdoor.com/Interview/netflix",
                    key_insights=["Expect questions about the culture memo"],
                )
            ]
        ),
        "CompanyNewsCollection": CompanyNewsCollection(
            news=[CompanyNews(title="Netflix expands live events", url="https://news.example.com/netflix-live")]
        ),
        "CompetitiveIntelligence": sample_ci(),
        "UnifiedContext": UnifiedContext(personalized_approach="Lead with streaming backend experience"),
        "InterviewerPersona": sample_persona,
        "StandardQuestionSet": sample_question_set,
        "CandidatePrep": CandidatePrep(),
        "AllRoundsReverseQuestions": reverse_questions_citing(BALANCED_CITATIONS),
        "RoundContent": sample_round_content,
        "QualityEvaluation": QualityEvaluation(overall_score=score),
    }
