"""
Fact ledger: tracks how often each competitive-intelligence fact is cited.

Reverse questions across all five rounds are generated in one call that also
proposes which facts each round may use. The allocation is advisory; what is
enforced is the reuse cap, checked here against the actual output. A fact
cited by more than ``cap`` distinct (round, question) pairs is a violation.
Violations are reported, never corrected.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

import structlog

from curriculum.schemas.content import ConstraintReport, ConstraintViolation, ReverseQuestion
from curriculum.schemas.research import CompetitiveIntelligence, Fact

logger = structlog.get_logger(__name__)

DEFAULT_REUSE_CAP = 2


def derive_facts(ci: CompetitiveIntelligence) -> List[Fact]:
    """Number the intelligence statements into citable facts."""
    facts: List[Fact] = []

    def add(prefix: str, texts: Iterable[str], source_type: str) -> None:
        for i, text in enumerate((t.strip() for t in texts if t and t.strip()), start=1):
            facts.append(Fact(id=f"{prefix}_{i}", text=text, source_type=source_type))

    add("strategic", ci.strategic_advantages, "strategic_advantage")
    add("development", ci.recent_developments, "recent_development")
    add("positioning", [ci.competitive_positioning], "competitive_comparison")
    add("trend", ci.market_trends, "growth_area")
    return facts


def _normalize_text(text: str) -> str:
    return " ".join(text.casefold().split())


class FactLedger:
    """Per-fact citation counts for one curriculum."""

    def __init__(self, facts: Sequence[Fact], cap: int = DEFAULT_REUSE_CAP):
        self.cap = cap
        self._facts: Dict[str, Fact] = {f.id: f for f in facts}
        self._by_text: Dict[str, str] = {_normalize_text(f.text): f.id for f in facts}
        self._citations: Dict[str, Set[Tuple[str, str]]] = defaultdict(set)
        self._unknown: Set[str] = set()

    def resolve(self, question: ReverseQuestion) -> Optional[str]:
        """Fact id a question cites: its explicit id, else an exact text match."""
        if question.ci_fact_id:
            return question.ci_fact_id
        if question.ci_fact_used:
            return self._by_text.get(_normalize_text(question.ci_fact_used))
        return None

    def record(self, round_id: str, question_id: str, fact_id: str) -> None:
        if fact_id not in self._facts:
            self._unknown.add(fact_id)
        self._citations[fact_id].add((round_id, question_id))

    def record_questions(self, questions_by_round: Mapping[str, Sequence[ReverseQuestion]]) -> None:
        for round_id, questions in questions_by_round.items():
            # Keyed by position: generated ids are not guaranteed unique within a round
            for index, question in enumerate(questions):
                fact_id = self.resolve(question)
                if fact_id:
                    self.record(round_id, f"{index}:{question.id}", fact_id)

    def count(self, fact_id: str) -> int:
        return len(self._citations.get(fact_id, ()))

    @property
    def usage(self) -> Dict[str, int]:
        return {fact_id: len(pairs) for fact_id, pairs in self._citations.items()}

    def validate(self) -> ConstraintReport:
        usage = self.usage
        violations = [
            ConstraintViolation(fact_id=fact_id, count=count)
            for fact_id, count in sorted(usage.items())
            if count > self.cap
        ]
        return ConstraintReport(
            constraint_satisfied=not violations,
            cap=self.cap,
            fact_usage=usage,
            violations=violations,
            unknown_citations=sorted(self._unknown),
        )

    def allocation_warnings(
        self,
        allocation: Mapping[str, Sequence[str]],
        questions_by_round: Mapping[str, Sequence[ReverseQuestion]],
    ) -> List[str]:
        """Citations that fall outside the round's proposed allocation."""
        warnings = []
        for round_id, questions in questions_by_round.items():
            allowed = set(allocation.get(round_id, ()))
            for question in questions:
                fact_id = self.resolve(question)
                if fact_id and allowed and fact_id not in allowed:
                    warnings.append(f"{round_id}/{question.id} cites {fact_id} outside its allocation")
        return warnings


def check_fact_reuse(
    facts: Sequence[Fact],
    questions_by_round: Mapping[str, Sequence[ReverseQuestion]],
    cap: int = DEFAULT_REUSE_CAP,
) -> ConstraintReport:
    """Count citations in generated reverse questions and check the reuse cap."""
    ledger = FactLedger(facts, cap=cap)
    ledger.record_questions(questions_by_round)
    report = ledger.validate()

    if not report.constraint_satisfied:
        logger.warning(
            "Fact reuse cap exceeded",
            cap=cap,
            violations=[v.model_dump() for v in report.violations],
        )
    return report
