"""
GenerationState: the single record threaded through every stage of a
curriculum run, and the merge rules applied to stage updates.

Each field is annotated with its reducer. LangGraph reads the annotations to
merge node updates into its channels; merge_state() applies the same reducers
outside the graph. Reducers fall into three merge classes:

- Overwrite: the latest non-empty write wins.
- Append-unique: elements are unioned by a natural key (URL, fact id,
  round number); a repeated key updates the earlier element in place.
- Accumulate: lists are concatenated; the refinement counter adds exactly
  one per merge whatever the payload.

No reducer turns a non-empty field empty.
"""

from datetime import datetime
from enum import Enum
from functools import lru_cache
from typing import Annotated, Any, Callable, Dict, Literal, Mapping, Optional, get_args
from uuid import uuid4

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from curriculum.orchestrators.refinement import RefinementPhase
from curriculum.schemas.content import (
    ConstraintReport,
    CurriculumStructure,
    CandidatePrep,
    GeneratedRound,
    InterviewerPersona,
    QualityEvaluation,
    ReverseQuestion,
    StandardQuestion,
)
from curriculum.schemas.research import (
    CompanyContext,
    CompetitiveIntelligence,
    DiscoveredSource,
    Fact,
    JobData,
    ResearchDiscovery,
    UnifiedContext,
)

logger = structlog.get_logger(__name__)


class MergeClass(str, Enum):
    OVERWRITE = "overwrite"
    APPEND_UNIQUE = "append_unique"
    ACCUMULATE = "accumulate"


def _merge_class(kind: MergeClass) -> Callable[[Callable], Callable]:
    def tag(fn: Callable) -> Callable:
        fn.merge_class = kind
        return fn

    return tag


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, dict, tuple, set)):
        return len(value) == 0
    return False


# ==============================================================================
# Reducers
# ==============================================================================

@_merge_class(MergeClass.OVERWRITE)
def keep_latest(current: Any, update: Any) -> Any:
    """Latest write wins, unless it would blank out the field."""
    return current if is_empty(update) else update


@_merge_class(MergeClass.APPEND_UNIQUE)
def merge_dicts(current: Optional[dict], update: Optional[dict]) -> dict:
    """Union of two mappings; the update wins per key."""
    merged = dict(current or {})
    for key, value in (update or {}).items():
        if not is_empty(value) or key not in merged:
            merged[key] = value
    return merged


@_merge_class(MergeClass.ACCUMULATE)
def concat(current: Optional[list], update: Optional[list]) -> list:
    return list(current or []) + list(update or [])


@_merge_class(MergeClass.ACCUMULATE)
def count_merges(current: Optional[int], update: Any) -> int:
    """Each merge counts as one attempt; the payload is ignored."""
    return (current or 0) + 1


def _natural_key(item: Any, attr: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(attr)
    return getattr(item, attr, None)


def _overlay(existing: Any, incoming: Any) -> Any:
    """Apply the fields incoming explicitly sets on top of existing."""
    if isinstance(existing, BaseModel) and type(existing) is type(incoming):
        changes = {
            name: getattr(incoming, name)
            for name in incoming.model_fields_set
            if getattr(incoming, name) is not None
        }
        return existing.model_copy(update=changes)
    if isinstance(existing, Mapping) and isinstance(incoming, Mapping):
        return {**existing, **{k: v for k, v in incoming.items() if v is not None}}
    return incoming


def union_by(attr: str, sort: bool = False) -> Callable[[Optional[list], Optional[list]], list]:
    """Append-unique reducer keyed by ``attr``; first-seen order unless ``sort``."""

    @_merge_class(MergeClass.APPEND_UNIQUE)
    def reducer(current: Optional[list], update: Optional[list]) -> list:
        merged: Dict[Any, Any] = {}
        for item in list(current or []) + list(update or []):
            key = _natural_key(item, attr)
            merged[key] = _overlay(merged[key], item) if key in merged else item
        values = list(merged.values())
        if sort:
            values.sort(key=lambda item: _natural_key(item, attr))
        return values

    reducer.__name__ = f"union_by_{attr}"
    return reducer


union_by_url = union_by("url")
union_by_id = union_by("id")
union_by_round_number = union_by("round_number", sort=True)


# ==============================================================================
# State
# ==============================================================================

class GenerationState(BaseModel):
    """
    Evolving record of one curriculum request.

    Created once per request, updated by every stage in graph order, and
    finished either by persistence (curriculum_id set) or by the abort
    sentinel (aborted=True).
    """

    model_config = ConfigDict(extra="forbid")

    # Request
    request_id: Annotated[str, keep_latest] = Field(
        default_factory=lambda: uuid4().hex, description="Unique id for this curriculum request"
    )
    user_input: Annotated[str, keep_latest] = Field(default="", description="Job URL or '<role> at <company>'")
    input_type: Annotated[Optional[Literal["url", "text"]], keep_latest] = None
    user_profile: Annotated[Optional[Dict[str, Any]], keep_latest] = None
    cv_data: Annotated[Optional[Dict[str, Any]], keep_latest] = None
    force_refresh: Annotated[bool, keep_latest] = Field(default=False, description="Skip the discovery cache read")

    # Discovery
    company_name: Annotated[Optional[str], keep_latest] = None
    role_title: Annotated[Optional[str], keep_latest] = None
    discovered_sources: Annotated[list[DiscoveredSource], union_by_url] = Field(default_factory=list)

    # Research
    company_context: Annotated[Optional[CompanyContext], keep_latest] = None
    job_data: Annotated[Optional[JobData], keep_latest] = None
    research_discovery: Annotated[Optional[ResearchDiscovery], keep_latest] = None
    competitive_intelligence: Annotated[Optional[CompetitiveIntelligence], keep_latest] = None
    facts: Annotated[list[Fact], union_by_id] = Field(default_factory=list)
    unified_context: Annotated[Optional[UnifiedContext], keep_latest] = None

    # Generated content, keyed by round type
    personas: Annotated[dict[str, InterviewerPersona], merge_dicts] = Field(default_factory=dict)
    standard_question_sets: Annotated[dict[str, list[StandardQuestion]], merge_dicts] = Field(default_factory=dict)
    prep_guides: Annotated[dict[str, CandidatePrep], merge_dicts] = Field(default_factory=dict)
    reverse_questions: Annotated[dict[str, list[ReverseQuestion]], merge_dicts] = Field(default_factory=dict)
    fact_allocation: Annotated[dict[str, list[str]], merge_dicts] = Field(default_factory=dict)
    constraint_report: Annotated[Optional[ConstraintReport], keep_latest] = None
    structure: Annotated[Optional[CurriculumStructure], keep_latest] = None
    rounds: Annotated[list[GeneratedRound], union_by_round_number] = Field(default_factory=list)

    # Quality loop
    quality_score: Annotated[Optional[float], keep_latest] = None
    quality_evaluation: Annotated[Optional[QualityEvaluation], keep_latest] = None
    refinement_attempts: Annotated[int, count_merges] = 0
    refinement_phase: Annotated[Optional[RefinementPhase], keep_latest] = None

    # Outcome
    curriculum_id: Annotated[Optional[str], keep_latest] = None
    aborted: Annotated[bool, keep_latest] = False

    # Run metadata
    current_step: Annotated[str, keep_latest] = "initialized"
    progress: Annotated[int, keep_latest] = 0
    errors: Annotated[list[str], concat] = Field(default_factory=list)
    warnings: Annotated[list[str], concat] = Field(default_factory=list)
    stage_timings: Annotated[dict[str, float], merge_dicts] = Field(default_factory=dict)
    batch_timings: Annotated[dict[str, float], merge_dicts] = Field(default_factory=dict)
    started_at: Annotated[Optional[datetime], keep_latest] = None
    finished_at: Annotated[Optional[datetime], keep_latest] = None


# ==============================================================================
# Merge engine
# ==============================================================================

@lru_cache(maxsize=None)
def _field_rules() -> Dict[str, Callable]:
    annotations = GenerationState.__annotations__
    return {
        name: next(m for m in annotations[name].__metadata__ if callable(m))
        for name in GenerationState.model_fields
    }


@lru_cache(maxsize=None)
def _adapter(name: str) -> TypeAdapter:
    return TypeAdapter(get_args(GenerationState.__annotations__[name])[0])


def merge_class_of(field_name: str) -> MergeClass:
    return _field_rules()[field_name].merge_class


_MALFORMED = object()


def _coerce(name: str, value: Any) -> Any:
    try:
        return _adapter(name).validate_python(value)
    except ValidationError:
        return _MALFORMED


def merge_state(current: GenerationState, partial: Optional[Mapping[str, Any]]) -> GenerationState:
    """
    Merge a stage's partial update into the current state.

    Unknown fields are ignored. A value that does not fit its field's type is
    treated as an empty contribution. Never raises.
    """
    if not partial:
        return current

    rules = _field_rules()
    updates: Dict[str, Any] = {}
    for name, value in partial.items():
        reducer = rules.get(name)
        if reducer is None:
            continue
        if reducer is count_merges:
            updates[name] = reducer(getattr(current, name), value)
            continue
        coerced = _coerce(name, value)
        if coerced is _MALFORMED:
            logger.warning("Ignoring malformed state update", field=name, request_id=current.request_id)
            continue
        updates[name] = reducer(getattr(current, name), coerced)

    return current.model_copy(update=updates)


def create_initial_state(
    user_input: str,
    user_profile: Optional[Dict[str, Any]] = None,
    cv_data: Optional[Dict[str, Any]] = None,
    force_refresh: bool = False,
    request_id: Optional[str] = None,
) -> GenerationState:
    """Create the state a run starts from."""
    text = (user_input or "").strip()
    return GenerationState(
        request_id=request_id or uuid4().hex,
        user_input=text,
        input_type="url" if text.lower().startswith(("http://", "https://")) else "text",
        user_profile=user_profile,
        cv_data=cv_data,
        force_refresh=force_refresh,
    )
