"""
Pre-authored content used when a generation batch fails.

Every builder returns exactly one artifact for its round so a degraded
curriculum still has something in every slot.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from curriculum.schemas.content import (
    AdvantageTalkingPoint,
    CandidatePrep,
    DevelopmentTalkingPoint,
    EvaluationCriterion,
    InterviewerPersona,
    PersonaIdentity,
    PersonaKnowledgeBase,
    QuestionCategory,
    RecognitionTraining,
    ReverseQuestion,
    RoundContent,
    RoundTopic,
    RoundType,
    StandardQuestion,
    StandardQuestionPrep,
    TalkingPoints,
)
from curriculum.schemas.research import CompetitiveIntelligence


@dataclass(frozen=True)
class RoundBlueprint:
    round_type: RoundType
    title: str
    duration_minutes: int
    focus: str
    category: QuestionCategory
    interviewer_name: str
    interviewer_title: str
    traits: tuple


ROUND_BLUEPRINTS: Dict[RoundType, RoundBlueprint] = {
    RoundType.RECRUITER_SCREEN: RoundBlueprint(
        RoundType.RECRUITER_SCREEN,
        "Recruiter Screen",
        30,
        "motivation, background fit and logistics",
        "motivation",
        "Sarah Chen",
        "Global Talent Recruiter",
        ("friendly", "thorough", "efficient"),
    ),
    RoundType.BEHAVIORAL_DEEP_DIVE: RoundBlueprint(
        RoundType.BEHAVIORAL_DEEP_DIVE,
        "Behavioral Deep Dive",
        45,
        "past behaviour, ownership and handling difficulty",
        "behavioral",
        "Michael Rodriguez",
        "Senior Manager",
        ("analytical", "detail-oriented", "patient"),
    ),
    RoundType.CULTURE_VALUES_ALIGNMENT: RoundBlueprint(
        RoundType.CULTURE_VALUES_ALIGNMENT,
        "Culture & Values Alignment",
        45,
        "values, collaboration style and team fit",
        "cultural",
        "Emma Thompson",
        "Team Lead",
        ("collaborative", "values-driven", "perceptive"),
    ),
    RoundType.STRATEGIC_ROLE_DISCUSSION: RoundBlueprint(
        RoundType.STRATEGIC_ROLE_DISCUSSION,
        "Strategic Role Discussion",
        60,
        "business impact, priorities and competitive landscape",
        "strategic",
        "David Kim",
        "Director",
        ("strategic", "business-focused", "forward-thinking"),
    ),
    RoundType.EXECUTIVE_FINAL: RoundBlueprint(
        RoundType.EXECUTIVE_FINAL,
        "Executive Final",
        45,
        "long-term vision, leadership and mutual fit",
        "strategic",
        "Lisa Johnson",
        "VP",
        ("decisive", "visionary", "leadership-focused"),
    ),
}

_FALLBACK_QUESTIONS: Dict[RoundType, List[str]] = {
    RoundType.RECRUITER_SCREEN: [
        "Why are you interested in this role?",
        "What do you know about our company?",
        "Walk me through your background.",
    ],
    RoundType.BEHAVIORAL_DEEP_DIVE: [
        "Tell me about a challenging project you worked on.",
        "Describe a time you had to work with a difficult team member.",
        "Tell me about a time you made a mistake and how you handled it.",
    ],
    RoundType.CULTURE_VALUES_ALIGNMENT: [
        "Which of our values resonates most with you, and why?",
        "Describe the team environment where you do your best work.",
        "Tell me about a time you disagreed with a team decision.",
    ],
    RoundType.STRATEGIC_ROLE_DISCUSSION: [
        "How would you approach your first 90 days in this role?",
        "Where do you see the biggest opportunity for this team?",
        "How do you decide what not to work on?",
    ],
    RoundType.EXECUTIVE_FINAL: [
        "Where do you want your career to be in five years?",
        "What would make you successful here a year from now?",
        "Why should we choose you over other candidates?",
    ],
}

_FALLBACK_REVERSE_QUESTIONS: Dict[RoundType, List[str]] = {
    RoundType.RECRUITER_SCREEN: [
        "What does a successful first six months look like for someone in this role?",
        "How would you describe the team I would be joining?",
    ],
    RoundType.BEHAVIORAL_DEEP_DIVE: [
        "Can you share an example of a recent challenge the team worked through together?",
        "How does the team give and receive feedback day to day?",
    ],
    RoundType.CULTURE_VALUES_ALIGNMENT: [
        "How do the company values show up in everyday decisions on this team?",
        "What has changed about the culture in the time you have been here?",
    ],
    RoundType.STRATEGIC_ROLE_DISCUSSION: [
        "Which priorities for this role matter most over the next year?",
        "How does this team measure the impact of its work on the business?",
    ],
    RoundType.EXECUTIVE_FINAL: [
        "Where do you see the company heading over the next few years?",
        "What would you most want someone in this role to accomplish in their first year?",
    ],
}


def fallback_persona(round_type: RoundType, company: str, ci: Optional[CompetitiveIntelligence] = None) -> InterviewerPersona:
    blueprint = ROUND_BLUEPRINTS[round_type]
    return InterviewerPersona(
        id=f"{round_type.value}-persona",
        round_number=round_type.round_number,
        round_type=round_type,
        identity=PersonaIdentity(
            name=blueprint.interviewer_name,
            role=f"{blueprint.interviewer_title} at {company}",
            tenure_years=3,
            personality_traits=list(blueprint.traits),
        ),
        knowledge_base=PersonaKnowledgeBase(
            strategic_advantages=list(ci.strategic_advantages[:3]) if ci else [],
            recent_developments=list(ci.recent_developments[:3]) if ci else [],
            competitive_context=ci.competitive_positioning if ci else "",
        ),
    )


def fallback_questions(round_type: RoundType) -> List[StandardQuestion]:
    category = ROUND_BLUEPRINTS[round_type].category
    return [
        StandardQuestion(
            id=f"{round_type.value}-fallback-q{i}",
            text=text,
            category=category,
            follow_ups=["Can you tell me more about that?", "What was the outcome?"],
            time_allocation_minutes=5,
        )
        for i, text in enumerate(_FALLBACK_QUESTIONS[round_type], start=1)
    ]


def fallback_prep_guide(
    round_type: RoundType,
    ci: Optional[CompetitiveIntelligence],
    questions: Sequence[StandardQuestion] = (),
) -> CandidatePrep:
    advantages = ci.strategic_advantages[:3] if ci else []
    developments = ci.recent_developments[:2] if ci else []
    return CandidatePrep(
        ci_talking_points=TalkingPoints(
            strategic_advantages=[
                AdvantageTalkingPoint(
                    advantage=advantage,
                    how_to_weave_in="Reference this advantage when explaining why you want to join",
                    example_response=f"Part of what draws me here is {advantage[:1].lower() + advantage[1:]}",
                )
                for advantage in advantages
            ],
            recent_developments=[
                DevelopmentTalkingPoint(
                    development=development,
                    relevance_to_role="This development creates new challenges and opportunities for the role",
                    conversation_starters=[f"I noticed {development}", f"How has {development} affected the team?"],
                )
                for development in developments
            ],
        ),
        recognition_training=RecognitionTraining(
            what_great_answers_sound_like=[
                "Demonstrates specific knowledge of the company's competitive position",
                "Shows understanding of recent company developments",
            ],
            how_to_demonstrate_company_knowledge=[
                "Reference specific competitive advantages naturally",
                "Connect recent developments to the work of the role",
            ],
        ),
        standard_questions_prep=[
            StandardQuestionPrep(
                question=q.text,
                why_asked=f"Tests {ROUND_BLUEPRINTS[round_type].focus}",
                approach="Answer with a specific example: situation, action, result",
                key_points=["Be specific", "Quantify the outcome"],
            )
            for q in list(questions)[:5]
        ],
    )


def fallback_reverse_questions(round_type: RoundType) -> List[ReverseQuestion]:
    return [
        ReverseQuestion(
            id=f"{round_type.value}-rq{i}",
            question_text=text,
            success_pattern="day_to_day_impact",
            why_this_works="Shows interest in how the role works in practice",
            best_timing="closing",
        )
        for i, text in enumerate(_FALLBACK_REVERSE_QUESTIONS[round_type], start=1)
    ]


def fallback_round_content(round_type: RoundType, questions: Sequence[StandardQuestion] = ()) -> RoundContent:
    blueprint = ROUND_BLUEPRINTS[round_type]
    per_topic = max(5, blueprint.duration_minutes // max(1, len(questions) or 3))
    topics = [
        RoundTopic(topic=q.text, time_allocation=per_topic) for q in questions
    ] or [RoundTopic(topic=blueprint.focus, time_allocation=blueprint.duration_minutes)]
    return RoundContent(
        topics=topics,
        evaluation_criteria=[
            EvaluationCriterion(criterion="Specificity", weight=0.5, rubric="Uses concrete examples with outcomes"),
            EvaluationCriterion(criterion="Company knowledge", weight=0.5, rubric="Connects answers to the company"),
        ],
        opening_script=f"Thanks for joining. Today we will focus on {blueprint.focus}.",
        closing_script="Thanks for your time. What questions do you have for me?",
    )
