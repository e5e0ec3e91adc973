"""
Refinement loop controller.

After rounds are generated the curriculum is scored. The controller decides
whether another generation pass is worth running:

    generating -> evaluating -> done
                      |   ^
                      v   |
                    refining

Evaluation moves to done once the score reaches the threshold or the
refinement budget is spent; there is no requirement that scores improve
between passes. With the default budget of 2 refinements the loop runs at
most 3 generation passes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


class RefinementPhase(str, Enum):
    GENERATING = "generating"
    EVALUATING = "evaluating"
    REFINING = "refining"
    DONE = "done"


@dataclass(frozen=True)
class RefinementLoopController:
    quality_threshold: float = 80.0
    max_refinements: int = 2
    base_temperature: float = 0.6
    temperature_step: float = 0.15

    @classmethod
    def from_settings(cls, settings, base_temperature: float = 0.6) -> "RefinementLoopController":
        return cls(
            quality_threshold=settings.quality_threshold,
            max_refinements=settings.max_refinement_attempts,
            base_temperature=base_temperature,
            temperature_step=settings.refinement_temperature_step,
        )

    @property
    def max_generation_passes(self) -> int:
        return self.max_refinements + 1

    def decide(self, quality_score: Optional[float], refinement_attempts: int) -> RefinementPhase:
        """Next phase after an evaluation. A missing score counts as 0."""
        score = quality_score if quality_score is not None else 0.0
        if score >= self.quality_threshold or refinement_attempts >= self.max_refinements:
            return RefinementPhase.DONE
        return RefinementPhase.REFINING

    def temperature_for(self, refinement_attempt: int) -> float:
        """Sampling temperature for a pass; pass 0 is the initial generation."""
        return round(min(1.0, self.base_temperature + self.temperature_step * refinement_attempt), 2)
