"""Exception hierarchy for curriculum generation."""

from typing import Dict, Iterable, List, Optional


class CurriculumError(Exception):
    """Base class for every error raised by the curriculum package."""


class GenerationError(CurriculumError):
    """A provider call failed or timed out."""

    def __init__(self, message: str, task_id: Optional[str] = None):
        super().__init__(message)
        self.task_id = task_id


class OutputValidationError(GenerationError):
    """A provider returned output that does not match the requested schema."""


class BatchGenerationError(GenerationError):
    """At least one call in a batch failed; raised only after every call settled."""

    def __init__(self, task_id: str, failures: Dict[int, BaseException], total: int):
        self.failures = failures
        self.total = total
        first = next(iter(failures.values()))
        super().__init__(
            f"{len(failures)}/{total} calls failed for task '{task_id}': {first}",
            task_id=task_id,
        )


class MissingPrecondition(CurriculumError):
    """A stage was reached without the upstream state it depends on."""

    def __init__(self, stage: str, missing: Iterable[str]):
        self.stage = stage
        self.missing: List[str] = list(missing)
        super().__init__(f"{stage}: missing required state {', '.join(self.missing)}")


class PersistenceError(CurriculumError):
    """The final save failed."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class InvalidStageGraph(CurriculumError):
    """The stage graph is malformed; raised while the graph is being built."""


class InvalidRedirect(CurriculumError):
    """A stage redirected to a target it did not declare."""


class CurriculumGenerationFailed(CurriculumError):
    """A run finished without producing a curriculum."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("Curriculum generation failed: " + ("; ".join(errors) or "no curriculum id"))
