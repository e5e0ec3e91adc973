"""Dependencies shared by every stage handler in a run."""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel

from curriculum.llm.batch import BatchDispatcher
from curriculum.orchestrators.refinement import RefinementLoopController
from libs.caching.discovery_cache import DiscoveryCache
from libs.common.settings import Settings
from libs.persistence.curriculum_repository import CurriculumRepository

T = TypeVar("T", bound=BaseModel)


class GenerationClient(Protocol):
    """What the stage handlers need from a provider client."""

    async def generate_structured(self, schema: Type[T], task_id: str, prompt: Any, options: Optional[Any] = None) -> T: ...

    async def generate_with_search(self, task_id: str, prompt: Any, options: Optional[Any] = None) -> Any: ...


@dataclass
class NodeContext:
    generator: GenerationClient
    cache: DiscoveryCache
    repository: CurriculumRepository
    settings: Settings
    refinement: RefinementLoopController
    dispatcher: BatchDispatcher = field(init=False)

    def __post_init__(self) -> None:
        self.dispatcher = BatchDispatcher(self.generator, max_concurrency=self.settings.batch_max_concurrency)

    @classmethod
    def build(
        cls,
        generator: GenerationClient,
        cache: DiscoveryCache,
        repository: CurriculumRepository,
        settings: Settings,
    ) -> "NodeContext":
        return cls(
            generator=generator,
            cache=cache,
            repository=repository,
            settings=settings,
            refinement=RefinementLoopController.from_settings(settings),
        )
