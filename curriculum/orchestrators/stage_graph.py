"""
Stage graph and router.

Stages are identified by the closed StageId enum. Each stage declares its
static successor, the stages it may redirect to, the state fields it needs,
and whether an error from it ends the run early. The whole graph is checked
when it is compiled, so a bad successor or redirect target fails at startup.

A handler returns either a plain partial update (continue to the declared
successor) or a RoutingDecision:

    Continue(update)        same as returning the dict
    GoTo(stage, update)     jump to one of the stage's declared redirects

Every stage compiles to a LangGraph node that returns a Command, so routing
is resolved in one place (resolve_next) instead of in per-node edge functions.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple, Union

import structlog
from langgraph.graph import END, START, StateGraph
from langgraph.types import Command

from curriculum.errors import InvalidRedirect, InvalidStageGraph, MissingPrecondition
from curriculum.schemas.generation_state import GenerationState, is_empty

logger = structlog.get_logger(__name__)


class StageId(str, Enum):
    DISCOVER_SOURCES = "discover_sources"
    FETCH_SOURCES = "fetch_sources"
    VALIDATE_SOURCES = "validate_sources"
    MERGE_RESEARCH = "merge_research"
    FALLBACK_RESEARCH = "fallback_research"
    PARSE_JOB = "parse_job"
    RESEARCH_COMPANY = "research_company"
    ANALYZE_ROLE = "analyze_role"
    UNIFIED_CONTEXT = "unified_context"
    GENERATE_PERSONAS = "generate_personas"
    GENERATE_QUESTIONS = "generate_questions"
    GENERATE_PREP_GUIDES = "generate_prep_guides"
    DESIGN_STRUCTURE = "design_structure"
    GENERATE_ROUNDS = "generate_rounds"
    EVALUATE_QUALITY = "evaluate_quality"
    REFINE_ROUNDS = "refine_rounds"
    SAVE_CURRICULUM = "save_curriculum"


@dataclass(frozen=True)
class Continue:
    update: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GoTo:
    target: StageId
    update: Dict[str, Any] = field(default_factory=dict)


RoutingDecision = Union[Continue, GoTo]
StageResult = Union[Dict[str, Any], RoutingDecision, None]
StageHandler = Callable[[GenerationState], Awaitable[StageResult]]


@dataclass(frozen=True)
class Stage:
    name: StageId
    handler: StageHandler
    next: Optional[StageId] = None
    redirects: FrozenSet[StageId] = frozenset()
    requires: Tuple[str, ...] = ()
    terminal_capable: bool = False
    progress: Optional[int] = None


class StageGraph:
    """Declarative stage graph compiled onto a LangGraph StateGraph."""

    def __init__(self, entry: StageId, terminal: StageId):
        self.entry = entry
        self.terminal = terminal
        self._stages: Dict[StageId, Stage] = {}

    def add_stage(
        self,
        name: StageId,
        handler: StageHandler,
        *,
        next: Optional[StageId] = None,
        redirects: Iterable[StageId] = (),
        requires: Iterable[str] = (),
        terminal_capable: bool = False,
        progress: Optional[int] = None,
    ) -> "StageGraph":
        if not isinstance(name, StageId):
            raise InvalidStageGraph(f"Stage name must be a StageId, got {name!r}")
        if name in self._stages:
            raise InvalidStageGraph(f"Stage {name.value} registered twice")

        redirects = frozenset(redirects)
        for target in ([next] if next is not None else []) + list(redirects):
            if not isinstance(target, StageId):
                raise InvalidStageGraph(f"{name.value}: target {target!r} is not a StageId")

        requires = tuple(requires)
        unknown = [f for f in requires if f not in GenerationState.model_fields]
        if unknown:
            raise InvalidStageGraph(f"{name.value}: unknown required fields {unknown}")

        self._stages[name] = Stage(
            name=name,
            handler=handler,
            next=next,
            redirects=redirects,
            requires=requires,
            terminal_capable=terminal_capable,
            progress=progress,
        )
        return self

    @property
    def stages(self) -> Dict[StageId, Stage]:
        return dict(self._stages)

    def successors(self, name: StageId) -> Set[StageId]:
        stage = self._stages[name]
        targets = set(stage.redirects)
        if stage.next is not None:
            targets.add(stage.next)
        if stage.terminal_capable:
            targets.add(self.terminal)
        return targets

    def predecessors(self, name: StageId) -> Set[StageId]:
        return {other for other in self._stages if name in self.successors(other)}

    def validate(self) -> None:
        """Raise InvalidStageGraph if the graph cannot run."""
        if self.entry not in self._stages:
            raise InvalidStageGraph(f"Entry stage {self.entry.value} is not registered")
        if self.terminal not in self._stages:
            raise InvalidStageGraph(f"Terminal stage {self.terminal.value} is not registered")
        if self._stages[self.terminal].next is not None:
            raise InvalidStageGraph("The terminal stage cannot have a successor")

        for stage in self._stages.values():
            for target in self.successors(stage.name):
                if target not in self._stages:
                    raise InvalidStageGraph(f"{stage.name.value} routes to unregistered stage {target.value}")

        self._check_static_acyclic()

        reachable = self._reachable_from(self.entry)
        unreachable = [s.value for s in self._stages if s not in reachable]
        if unreachable:
            raise InvalidStageGraph(f"Unreachable stages: {unreachable}")

    def _check_static_acyclic(self) -> None:
        # Loops are only allowed through declared redirects
        for start in self._stages:
            seen: List[StageId] = []
            current: Optional[StageId] = start
            while current is not None:
                if current in seen:
                    cycle = " -> ".join(s.value for s in seen + [current])
                    raise InvalidStageGraph(f"Static successor cycle: {cycle}")
                seen.append(current)
                current = self._stages[current].next

    def _reachable_from(self, start: StageId) -> Set[StageId]:
        reachable: Set[StageId] = set()
        frontier = [start]
        while frontier:
            name = frontier.pop()
            if name in reachable:
                continue
            reachable.add(name)
            frontier.extend(self.successors(name))
        return reachable

    def resolve_next(self, name: StageId, decision: RoutingDecision) -> Optional[StageId]:
        """
        Pick the stage after ``name``; None means the run is over.

        Order: explicit redirect, error short-circuit to the terminal stage,
        static successor.
        """
        stage = self._stages[name]
        if isinstance(decision, GoTo):
            if decision.target not in stage.redirects:
                raise InvalidRedirect(f"{name.value} cannot redirect to {decision.target.value}")
            return decision.target
        if stage.terminal_capable and name != self.terminal and decision.update.get("errors"):
            return self.terminal
        return stage.next

    async def run_stage(self, name: StageId, state: GenerationState) -> Tuple[Dict[str, Any], Optional[StageId]]:
        """Run one stage and return its update plus the next stage."""
        stage = self._stages[name]
        started = time.perf_counter()

        missing = [f for f in stage.requires if is_empty(getattr(state, f))]
        if missing:
            error = MissingPrecondition(name.value, missing)
            logger.warning(
                "Stage precondition missing",
                stage=name.value,
                missing=missing,
                request_id=state.request_id,
            )
            decision: RoutingDecision = Continue({"errors": [str(error)]})
        else:
            try:
                decision = _as_decision(await stage.handler(state))
            except MissingPrecondition as e:
                logger.warning("Stage precondition missing", stage=name.value, error=str(e), request_id=state.request_id)
                decision = Continue({"errors": [str(e)]})

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        target = self.resolve_next(name, decision)

        update = dict(decision.update)
        update.setdefault("current_step", name.value)
        if stage.progress is not None:
            update.setdefault("progress", stage.progress)
        update["stage_timings"] = {name.value: duration_ms}

        logger.info(
            "Stage completed",
            stage=name.value,
            next_stage=target.value if target else "end",
            redirected=isinstance(decision, GoTo),
            errors=len(update.get("errors") or []),
            duration_ms=duration_ms,
            request_id=state.request_id,
        )
        return update, target

    def _as_node(self, name: StageId) -> Callable[[GenerationState], Awaitable[Command]]:
        async def node(state: GenerationState) -> Command:
            update, target = await self.run_stage(name, state)
            return Command(update=update, goto=target.value if target else END)

        node.__name__ = name.value
        return node

    def compile(self, checkpointer=None):
        """Validate the graph and compile it into a LangGraph runnable."""
        self.validate()

        builder = StateGraph(GenerationState)
        for name in self._stages:
            destinations = tuple(s.value for s in self.successors(name)) or (END,)
            builder.add_node(name.value, self._as_node(name), destinations=destinations)
        builder.add_edge(START, self.entry.value)

        return builder.compile(checkpointer=checkpointer)


def _as_decision(result: StageResult) -> RoutingDecision:
    if isinstance(result, (Continue, GoTo)):
        return result
    return Continue(dict(result or {}))
