"""
Per-round content generation: interviewer personas, standard questions,
candidate preparation guides and reverse questions.

Each stage issues one batch across the five rounds. A failed batch falls
back to the pre-authored content in ``fallbacks`` for every slot and leaves
a warning; it never fails the run.
"""

from typing import Any, Dict, List

import structlog

from curriculum.composer.prompts import (
    PERSONA_TEMPLATE,
    PREP_GUIDE_TEMPLATE,
    QUESTION_TEMPLATE,
    REVERSE_QUESTIONS_TEMPLATE,
    bullet_list,
    format_facts,
)
from curriculum.errors import GenerationError
from curriculum.nodes.context import NodeContext
from curriculum.nodes.fallbacks import (
    ROUND_BLUEPRINTS,
    fallback_persona,
    fallback_prep_guide,
    fallback_questions,
    fallback_reverse_questions,
)
from curriculum.nodes.research import summarize_competitive_intelligence
from curriculum.schemas.content import (
    ROUND_ORDER,
    AllRoundsReverseQuestions,
    CandidatePrep,
    InterviewerPersona,
    ReverseQuestion,
    StandardQuestionSet,
)
from curriculum.schemas.generation_state import GenerationState
from curriculum.tools.fact_ledger import FactLedger, check_fact_reuse

logger = structlog.get_logger(__name__)


def _company_and_role(state: GenerationState):
    job = state.job_data
    return job.company_name, job.title


async def generate_personas(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    company, role = _company_and_role(state)
    ci = state.competitive_intelligence
    ci_summary = summarize_competitive_intelligence(ci)

    prompts = [
        PERSONA_TEMPLATE.format_messages(
            round_number=round_type.round_number,
            round_type=round_type.value,
            role=role,
            company=company,
            focus=ROUND_BLUEPRINTS[round_type].focus,
            ci_summary=ci_summary,
            persona_id=f"{round_type.value}-persona",
        )
        for round_type in ROUND_ORDER
    ]

    timings: Dict[str, float] = {}
    warnings: List[str] = []
    try:
        generated = await ctx.dispatcher.batch_generate(
            InterviewerPersona, "persona_generation", prompts, timings=timings
        )
        # Slot identity comes from the position, not from the model's answer
        personas = {
            round_type.value: persona.model_copy(
                update={"round_type": round_type, "round_number": round_type.round_number}
            )
            for round_type, persona in zip(ROUND_ORDER, generated)
        }
    except GenerationError as e:
        logger.warning("Persona batch failed, using fallback personas", error=str(e), request_id=state.request_id)
        personas = {rt.value: fallback_persona(rt, company, ci) for rt in ROUND_ORDER}
        warnings.append(f"Persona generation failed, using fallback personas: {e}")

    logger.info("generate_personas completed", personas=len(personas), request_id=state.request_id)
    update: Dict[str, Any] = {"personas": personas, "batch_timings": timings}
    if warnings:
        update["warnings"] = warnings
    return update


async def generate_questions(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    company, role = _company_and_role(state)
    ci_summary = summarize_competitive_intelligence(state.competitive_intelligence)

    prompts = []
    for round_type in ROUND_ORDER:
        blueprint = ROUND_BLUEPRINTS[round_type]
        persona = state.personas.get(round_type.value)
        interviewer = (
            f"{persona.identity.name} ({persona.identity.role})" if persona else blueprint.interviewer_name
        )
        prompts.append(
            QUESTION_TEMPLATE.format_messages(
                interviewer=interviewer,
                round_type=round_type.value,
                role=role,
                company=company,
                focus=blueprint.focus,
                category=blueprint.category,
                ci_summary=ci_summary,
            )
        )

    timings: Dict[str, float] = {}
    warnings: List[str] = []
    try:
        generated = await ctx.dispatcher.batch_generate(
            StandardQuestionSet, "question_generation", prompts, timings=timings
        )
        question_sets = {rt.value: qs.questions for rt, qs in zip(ROUND_ORDER, generated)}
    except GenerationError as e:
        logger.warning("Question batch failed, using fallback questions", error=str(e), request_id=state.request_id)
        question_sets = {rt.value: fallback_questions(rt) for rt in ROUND_ORDER}
        warnings.append(f"Question generation failed, using fallback questions: {e}")

    logger.info(
        "generate_questions completed",
        questions=sum(len(q) for q in question_sets.values()),
        request_id=state.request_id,
    )
    update: Dict[str, Any] = {"standard_question_sets": question_sets, "batch_timings": timings}
    if warnings:
        update["warnings"] = warnings
    return update


def _strategy_summary(state: GenerationState) -> str:
    context = state.unified_context
    if context is None:
        return "General preparation; no candidate profile was provided."
    return "\n".join(
        [
            context.personalized_approach or "General preparation",
            "Strengths to amplify:",
            bullet_list(context.strength_amplifiers),
            "Gaps to bridge:",
            bullet_list(context.gap_bridges),
        ]
    )


async def _generate_prep(
    state: GenerationState, ctx: NodeContext, timings: Dict[str, float], warnings: List[str]
) -> Dict[str, CandidatePrep]:
    company, role = _company_and_role(state)
    ci = state.competitive_intelligence
    ci_summary = summarize_competitive_intelligence(ci)
    strategy = _strategy_summary(state)

    prompts = [
        PREP_GUIDE_TEMPLATE.format_messages(
            round_type=round_type.value,
            role=role,
            company=company,
            questions=bullet_list(q.text for q in state.standard_question_sets.get(round_type.value, [])),
            ci_summary=ci_summary,
            strategy=strategy,
        )
        for round_type in ROUND_ORDER
    ]
    try:
        generated = await ctx.dispatcher.batch_generate(CandidatePrep, "candidate_prep", prompts, timings=timings)
        return {rt.value: guide for rt, guide in zip(ROUND_ORDER, generated)}
    except GenerationError as e:
        logger.warning("Prep guide batch failed, using fallback guides", error=str(e), request_id=state.request_id)
        warnings.append(f"Prep guide generation failed, using fallback guides: {e}")
        return {
            rt.value: fallback_prep_guide(rt, ci, state.standard_question_sets.get(rt.value, []))
            for rt in ROUND_ORDER
        }


async def _generate_reverse_questions(
    state: GenerationState, ctx: NodeContext, timings: Dict[str, float], warnings: List[str]
):
    """One consolidated call so the fact allocation can be planned across all rounds."""
    company, role = _company_and_role(state)
    prompt = REVERSE_QUESTIONS_TEMPLATE.format_messages(
        role=role,
        company=company,
        facts=format_facts(state.facts),
        cap=ctx.settings.fact_reuse_cap,
    )
    try:
        [result] = await ctx.dispatcher.batch_generate(
            AllRoundsReverseQuestions, "reverse_interview_questions", [prompt], timings=timings
        )
    except GenerationError as e:
        logger.warning("Reverse question generation failed, using fallbacks", error=str(e), request_id=state.request_id)
        warnings.append(f"Reverse question generation failed, using fallback questions: {e}")
        return {rt.value: fallback_reverse_questions(rt) for rt in ROUND_ORDER}, {}

    questions: Dict[str, List[ReverseQuestion]] = {
        rt.value: list(getattr(result.questions, rt.value)) for rt in ROUND_ORDER
    }
    allocation: Dict[str, List[str]] = {
        rt.value: list(getattr(result.fact_allocation, rt.value)) for rt in ROUND_ORDER
    }
    return questions, allocation


async def generate_prep_guides(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    """Prep guides per round, reverse questions across rounds, then the fact reuse check."""
    timings: Dict[str, float] = {}
    warnings: List[str] = []

    prep_guides = await _generate_prep(state, ctx, timings, warnings)
    reverse_questions, allocation = await _generate_reverse_questions(state, ctx, timings, warnings)

    cap = ctx.settings.fact_reuse_cap
    if allocation:
        for note in FactLedger(state.facts, cap).allocation_warnings(allocation, reverse_questions):
            logger.info("Fact allocation note", note=note, request_id=state.request_id)

    report = check_fact_reuse(state.facts, reverse_questions, cap)
    if not report.constraint_satisfied:
        overused = ", ".join(f"{v.fact_id} ({v.count} uses)" for v in report.violations)
        warnings.append(f"Fact reuse limit of {cap} exceeded: {overused}")

    logger.info(
        "generate_prep_guides completed",
        prep_guides=len(prep_guides),
        reverse_questions=sum(len(q) for q in reverse_questions.values()),
        constraint_satisfied=report.constraint_satisfied,
        request_id=state.request_id,
    )

    update: Dict[str, Any] = {
        "prep_guides": prep_guides,
        "reverse_questions": reverse_questions,
        "constraint_report": report,
        "batch_timings": timings,
    }
    if allocation:
        update["fact_allocation"] = allocation
    if warnings:
        update["warnings"] = warnings
    return update
