"""
Round assembly and the quality loop.

design_structure -> generate_rounds -> evaluate_quality -> save_curriculum
                                           |      ^
                                           v      |
                                        refine_rounds

evaluate_quality asks the RefinementLoopController whether to refine; each
refinement pass regenerates the rounds at a higher temperature with the
evaluator's weak areas in the prompt.
"""

from typing import Any, Dict, List, Optional

import structlog

from curriculum.composer.prompts import QUALITY_EVALUATION_TEMPLATE, ROUND_CONTENT_TEMPLATE, bullet_list
from curriculum.errors import GenerationError
from curriculum.llm.structured_client import GenerationOptions
from curriculum.nodes.context import NodeContext
from curriculum.nodes.fallbacks import ROUND_BLUEPRINTS, fallback_round_content
from curriculum.orchestrators.refinement import RefinementPhase
from curriculum.orchestrators.stage_graph import GoTo, StageId
from curriculum.schemas.content import (
    ROUND_ORDER,
    CurriculumStructure,
    GeneratedRound,
    QualityEvaluation,
    RoundContent,
    RoundDefinition,
)
from curriculum.schemas.generation_state import GenerationState

logger = structlog.get_logger(__name__)

_DIFFICULTY_BY_LEVEL = {
    "intern": "beginner",
    "entry": "beginner",
    "junior": "beginner",
    "senior": "advanced",
    "staff": "advanced",
    "lead": "advanced",
    "principal": "expert",
    "director": "expert",
    "executive": "expert",
    "vp": "expert",
}


def difficulty_for_level(level: Optional[str]) -> str:
    text = (level or "").lower()
    for keyword, difficulty in _DIFFICULTY_BY_LEVEL.items():
        if keyword in text:
            return difficulty
    return "intermediate"


async def design_structure(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    """Five fixed rounds; focus areas pick up the job's top requirements."""
    job = state.job_data
    requirements = job.requirements[:2]

    rounds = []
    for round_type in ROUND_ORDER:
        blueprint = ROUND_BLUEPRINTS[round_type]
        focus = [blueprint.focus]
        if round_type.value in ("behavioral_deep_dive", "strategic_role_discussion"):
            focus.extend(requirements)
        rounds.append(
            RoundDefinition(
                round_number=round_type.round_number,
                round_type=round_type,
                title=blueprint.title,
                focus_areas=focus,
                duration_minutes=blueprint.duration_minutes,
            )
        )

    structure = CurriculumStructure(
        total_rounds=len(rounds),
        difficulty_level=difficulty_for_level(job.level),
        rounds=rounds,
    )
    logger.info(
        "design_structure completed",
        rounds=structure.total_rounds,
        difficulty=structure.difficulty_level,
        request_id=state.request_id,
    )
    return {"structure": structure, "refinement_phase": RefinementPhase.GENERATING}


def _refinement_note(evaluation: Optional[QualityEvaluation]) -> str:
    if evaluation is None or not (evaluation.weak_areas or evaluation.recommendations):
        return ""
    return "\nA reviewer found these weaknesses in the previous version; fix them:\n" + bullet_list(
        evaluation.weak_areas + evaluation.recommendations
    )


async def _generate_round_pass(state: GenerationState, ctx: NodeContext, refinement_attempt: int) -> Dict[str, Any]:
    """Generate content for every round; refinement_attempt 0 is the first pass."""
    job = state.job_data
    definitions: List[RoundDefinition] = state.structure.rounds
    note = _refinement_note(state.quality_evaluation) if refinement_attempt else ""

    prompts = []
    for definition in definitions:
        persona = state.personas.get(definition.round_type.value)
        questions = state.standard_question_sets.get(definition.round_type.value, [])
        prompts.append(
            ROUND_CONTENT_TEMPLATE.format_messages(
                round_number=definition.round_number,
                title=definition.title,
                duration=definition.duration_minutes,
                role=job.title,
                company=job.company_name,
                interviewer=f"{persona.identity.name}, {persona.identity.role}" if persona else "the interviewer",
                focus=", ".join(definition.focus_areas),
                questions=bullet_list(q.text for q in questions),
                refinement_note=note,
            )
        )

    temperature = ctx.refinement.temperature_for(refinement_attempt)
    timings: Dict[str, float] = {}
    warnings: List[str] = []
    try:
        contents: List[RoundContent] = await ctx.dispatcher.batch_generate(
            RoundContent,
            "round_generation",
            prompts,
            options=GenerationOptions(temperature=temperature),
            timings=timings,
        )
        fallback_used = False
    except GenerationError as e:
        logger.warning("Round batch failed, using fallback content", error=str(e), request_id=state.request_id)
        contents = [
            fallback_round_content(d.round_type, state.standard_question_sets.get(d.round_type.value, []))
            for d in definitions
        ]
        fallback_used = True
        warnings.append(f"Round generation failed, using fallback content: {e}")

    rounds = [
        GeneratedRound(
            round_number=definition.round_number,
            round_type=definition.round_type,
            title=definition.title,
            duration_minutes=definition.duration_minutes,
            persona=state.personas.get(definition.round_type.value),
            standard_questions=state.standard_question_sets.get(definition.round_type.value, []),
            prep_guide=state.prep_guides.get(definition.round_type.value),
            reverse_questions=state.reverse_questions.get(definition.round_type.value, []),
            content=content,
            generation_pass=refinement_attempt + 1,
            fallback_used=fallback_used,
        )
        for definition, content in zip(definitions, contents)
    ]

    logger.info(
        "Round pass completed",
        generation_pass=refinement_attempt + 1,
        temperature=temperature,
        rounds=len(rounds),
        fallback_used=fallback_used,
        request_id=state.request_id,
    )
    update: Dict[str, Any] = {
        "rounds": rounds,
        "refinement_phase": RefinementPhase.EVALUATING,
        "batch_timings": {f"round_generation_pass_{refinement_attempt + 1}": timings.get("round_generation", 0.0)},
    }
    if warnings:
        update["warnings"] = warnings
    return update


async def generate_rounds(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    return await _generate_round_pass(state, ctx, refinement_attempt=0)


def summarize_curriculum(rounds: List[GeneratedRound]) -> str:
    sections = []
    for r in rounds:
        sections.append(
            "\n".join(
                [
                    f"Round {r.round_number}: {r.title} ({r.duration_minutes} min)",
                    f"Interviewer: {r.persona.identity.name if r.persona else 'unassigned'}",
                    "Topics:",
                    bullet_list(t.topic for t in r.content.topics),
                    "Questions:",
                    bullet_list(q.text for q in r.standard_questions),
                    "Reverse questions:",
                    bullet_list(q.question_text for q in r.reverse_questions),
                ]
            )
        )
    return "\n\n".join(sections)


async def evaluate_quality(state: GenerationState, ctx: NodeContext):
    """Score the rounds, then refine or move on to saving."""
    job = state.job_data
    warnings: List[str] = []
    evaluation: Optional[QualityEvaluation] = None
    try:
        evaluation = await ctx.generator.generate_structured(
            QualityEvaluation,
            "quality_evaluation",
            QUALITY_EVALUATION_TEMPLATE.format_messages(
                role=job.title if job else state.role_title,
                company=job.company_name if job else state.company_name,
                curriculum=summarize_curriculum(state.rounds),
            ),
        )
        score = float(evaluation.overall_score)
    except GenerationError as e:
        score = ctx.settings.fallback_quality_score
        logger.warning("Quality evaluation failed, using fallback score", score=score, error=str(e))
        warnings.append(f"Quality evaluation failed, assuming a score of {score:g}")

    phase = ctx.refinement.decide(score, state.refinement_attempts)
    logger.info(
        "evaluate_quality completed",
        score=score,
        refinement_attempts=state.refinement_attempts,
        phase=phase.value,
        request_id=state.request_id,
    )

    update: Dict[str, Any] = {"quality_score": score, "refinement_phase": phase}
    if evaluation is not None:
        update["quality_evaluation"] = evaluation
    if warnings:
        update["warnings"] = warnings

    if phase is RefinementPhase.REFINING:
        return GoTo(StageId.REFINE_ROUNDS, update)
    return update


async def refine_rounds(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    attempt = state.refinement_attempts + 1
    update = await _generate_round_pass(state, ctx, refinement_attempt=attempt)
    update["refinement_attempts"] = 1
    return update
