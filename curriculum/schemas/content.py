"""
Generated-content models: personas, questions, preparation guides, reverse
questions, the curriculum structure, round content and quality evaluation.
"""

from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from curriculum.schemas.research import FactSourceType


class RoundType(str, Enum):
    """The five fixed interview rounds, in order."""

    RECRUITER_SCREEN = "recruiter_screen"
    BEHAVIORAL_DEEP_DIVE = "behavioral_deep_dive"
    CULTURE_VALUES_ALIGNMENT = "culture_values_alignment"
    STRATEGIC_ROLE_DISCUSSION = "strategic_role_discussion"
    EXECUTIVE_FINAL = "executive_final"

    @property
    def round_number(self) -> int:
        return ROUND_ORDER.index(self) + 1


ROUND_ORDER: List[RoundType] = list(RoundType)

QuestionCategory = Literal["motivation", "behavioral", "cultural", "strategic"]

ReverseQuestionPattern = Literal[
    "recent_event_team_impact",
    "real_world_tradeoff",
    "concrete_example",
    "scale_challenge_solution",
    "day_to_day_impact",
    "future_growth",
    "process_deepdive",
    "comparative_framing",
]


# ==============================================================================
# Personas and standard questions
# ==============================================================================

class PersonaIdentity(BaseModel):
    name: str = Field(..., min_length=1, description="Full name of the interviewer")
    role: str = Field(..., min_length=1, description="Job title and company")
    tenure_years: int = Field(default=3, ge=1, le=15, description="Years at the company")
    personality_traits: List[str] = Field(..., min_length=2, max_length=5, description="Key personality traits")


class PersonaKnowledgeBase(BaseModel):
    strategic_advantages: List[str] = Field(default_factory=list, max_length=3, description="Company strategic advantages")
    recent_developments: List[str] = Field(default_factory=list, max_length=3, description="Recent company developments")
    competitive_context: str = Field(default="", description="Understanding of the competitive landscape")


class InterviewerPersona(BaseModel):
    """The interviewer a candidate faces in one round."""

    id: str = Field(..., description="Unique identifier for the persona")
    round_number: int = Field(..., ge=1, le=5, description="Interview round number")
    round_type: RoundType = Field(..., description="Type of interview round")
    identity: PersonaIdentity
    knowledge_base: PersonaKnowledgeBase = Field(default_factory=PersonaKnowledgeBase)


class StandardQuestion(BaseModel):
    id: str = Field(..., description="Unique question identifier")
    text: str = Field(..., min_length=10, description="The interview question")
    category: QuestionCategory = Field(..., description="Question category")
    follow_ups: List[str] = Field(default_factory=list, max_length=3, description="Follow-up questions")
    time_allocation_minutes: int = Field(default=5, ge=2, le=10, description="Recommended time allocation")


class StandardQuestionSet(BaseModel):
    """Questions the interviewer is likely to ask in one round."""

    questions: List[StandardQuestion] = Field(..., min_length=3, max_length=8)


# ==============================================================================
# Candidate preparation
# ==============================================================================

class AdvantageTalkingPoint(BaseModel):
    advantage: str
    how_to_weave_in: str
    example_response: str = ""


class DevelopmentTalkingPoint(BaseModel):
    development: str
    relevance_to_role: str
    conversation_starters: List[str] = Field(default_factory=list, max_length=3)


class TalkingPoints(BaseModel):
    strategic_advantages: List[AdvantageTalkingPoint] = Field(default_factory=list, max_length=3)
    recent_developments: List[DevelopmentTalkingPoint] = Field(default_factory=list, max_length=3)


class RecognitionTraining(BaseModel):
    what_great_answers_sound_like: List[str] = Field(default_factory=list, max_length=5)
    how_to_demonstrate_company_knowledge: List[str] = Field(default_factory=list, max_length=5)


class StandardQuestionPrep(BaseModel):
    question: str
    why_asked: str
    approach: str
    key_points: List[str] = Field(default_factory=list, max_length=4)


class CandidatePrep(BaseModel):
    """Preparation guide for one round."""

    ci_talking_points: TalkingPoints = Field(default_factory=TalkingPoints)
    recognition_training: RecognitionTraining = Field(default_factory=RecognitionTraining)
    standard_questions_prep: List[StandardQuestionPrep] = Field(default_factory=list, max_length=5)


# ==============================================================================
# Reverse questions (the candidate asks the interviewer)
# ==============================================================================

class ReverseQuestion(BaseModel):
    id: str = Field(..., description="Unique question identifier, e.g. recruiter_screen-rq1")
    question_text: str = Field(..., min_length=20, description="Natural, conversational question")
    ci_fact_id: Optional[str] = Field(default=None, description="Id of the fact this question is based on")
    ci_fact_used: str = Field(default="", description="Exact text of the fact used")
    ci_source_type: Optional[FactSourceType] = Field(default=None, description="Type of fact used")
    success_pattern: ReverseQuestionPattern = Field(default="concrete_example")
    why_this_works: str = Field(default="", description="Why the question shows research")
    green_flags: List[str] = Field(default_factory=list, max_length=4)
    red_flags: List[str] = Field(default_factory=list, max_length=3)
    expected_insights: List[str] = Field(default_factory=list, max_length=4)
    best_timing: Literal["opening", "mid_conversation", "closing"] = "closing"
    natural_phrasing_tip: Optional[str] = None


class RoundFactAllocation(BaseModel):
    """Fact ids each round may draw from."""

    recruiter_screen: List[str] = Field(default_factory=list)
    behavioral_deep_dive: List[str] = Field(default_factory=list)
    culture_values_alignment: List[str] = Field(default_factory=list)
    strategic_role_discussion: List[str] = Field(default_factory=list)
    executive_final: List[str] = Field(default_factory=list)


class RoundReverseQuestions(BaseModel):
    recruiter_screen: List[ReverseQuestion] = Field(..., min_length=2, max_length=5)
    behavioral_deep_dive: List[ReverseQuestion] = Field(..., min_length=2, max_length=5)
    culture_values_alignment: List[ReverseQuestion] = Field(..., min_length=2, max_length=5)
    strategic_role_discussion: List[ReverseQuestion] = Field(..., min_length=2, max_length=5)
    executive_final: List[ReverseQuestion] = Field(..., min_length=2, max_length=5)


class AllRoundsReverseQuestions(BaseModel):
    """Allocation and reverse questions for every round, produced in one call."""

    fact_allocation: RoundFactAllocation = Field(..., description="Which fact ids go to which round")
    questions: RoundReverseQuestions = Field(..., description="Generated questions for all rounds")


class ConstraintViolation(BaseModel):
    """A fact cited more often than the reuse cap allows."""

    fact_id: str
    count: int


class ConstraintReport(BaseModel):
    constraint_satisfied: bool = True
    cap: int = 2
    fact_usage: Dict[str, int] = Field(default_factory=dict)
    violations: List[ConstraintViolation] = Field(default_factory=list)
    unknown_citations: List[str] = Field(default_factory=list)


# ==============================================================================
# Structure, rounds, quality
# ==============================================================================

class RoundDefinition(BaseModel):
    round_number: int
    round_type: RoundType
    title: str
    focus_areas: List[str] = Field(default_factory=list)
    duration_minutes: int = 30


class CurriculumStructure(BaseModel):
    total_rounds: int
    difficulty_level: Literal["beginner", "intermediate", "advanced", "expert"] = "intermediate"
    rounds: List[RoundDefinition]


class RoundTopic(BaseModel):
    topic: str = Field(..., description="Topic name")
    subtopics: List[str] = Field(default_factory=list)
    depth: Literal["basic", "intermediate", "advanced"] = "intermediate"
    time_allocation: int = Field(default=5, description="Minutes")


class EvaluationCriterion(BaseModel):
    criterion: str
    weight: float = Field(..., ge=0.0, le=1.0)
    rubric: str


class RoundContent(BaseModel):
    """Provider-generated body of one round."""

    topics: List[RoundTopic] = Field(..., min_length=1, description="Interview topics")
    evaluation_criteria: List[EvaluationCriterion] = Field(default_factory=list)
    opening_script: str = Field(default="", description="How the interviewer opens the round")
    closing_script: str = Field(default="", description="How the interviewer closes the round")


class GeneratedRound(BaseModel):
    """A fully assembled round. Identified by round_number."""

    round_number: int = Field(..., ge=1)
    round_type: RoundType
    title: str
    duration_minutes: int
    persona: Optional[InterviewerPersona] = None
    standard_questions: List[StandardQuestion] = Field(default_factory=list)
    prep_guide: Optional[CandidatePrep] = None
    reverse_questions: List[ReverseQuestion] = Field(default_factory=list)
    content: RoundContent
    generation_pass: int = 1
    fallback_used: bool = False


class QualityEvaluation(BaseModel):
    overall_score: int = Field(..., ge=0, le=100, description="Overall quality score 0-100")
    weak_areas: List[str] = Field(default_factory=list, description="Areas needing improvement")
    strengths: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
