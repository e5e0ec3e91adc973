"""
Concurrency-bounded batch dispatcher for structured generation calls.

Every call is issued; the semaphore only caps how many are in flight at
once. Results come back in call order. If any call fails the whole batch
fails, but only after every call has settled, so no request is left running
behind the caller's fallback.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Type, TypeVar

import structlog
from pydantic import BaseModel

from curriculum.errors import BatchGenerationError

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=BaseModel)
R = TypeVar("R")

DEFAULT_MAX_CONCURRENCY = 5


class StructuredGenerator(Protocol):
    async def generate_structured(
        self,
        schema: Type[T],
        task_id: str,
        prompt: Any,
        options: Optional[Any] = None,
    ) -> T: ...


class BatchDispatcher:
    def __init__(self, generator: StructuredGenerator, max_concurrency: int = DEFAULT_MAX_CONCURRENCY):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.generator = generator
        self.max_concurrency = max_concurrency

    async def run_calls(
        self,
        task_id: str,
        calls: Sequence[Callable[[], Awaitable[R]]],
        timings: Optional[Dict[str, float]] = None,
    ) -> List[R]:
        """
        Await every call with at most max_concurrency in flight; results[i] answers calls[i].

        Raises:
            BatchGenerationError: if any call failed, once all calls have settled
        """
        if not calls:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def call_with_semaphore(call: Callable[[], Awaitable[R]]) -> R:
            async with semaphore:
                return await call()

        started = time.perf_counter()
        results = await asyncio.gather(
            *(call_with_semaphore(call) for call in calls),
            return_exceptions=True,
        )
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        if timings is not None:
            timings[task_id] = duration_ms

        failures = {i: r for i, r in enumerate(results) if isinstance(r, BaseException)}

        logger.info(
            "Batch generation settled",
            task_id=task_id,
            total=len(calls),
            failed=len(failures),
            max_concurrency=self.max_concurrency,
            duration_ms=duration_ms,
        )

        if failures:
            raise BatchGenerationError(task_id, failures, len(calls))
        return list(results)

    async def batch_generate(
        self,
        schema: Type[T],
        task_id: str,
        prompts: Sequence[Any],
        options: Optional[Any] = None,
        timings: Optional[Dict[str, float]] = None,
    ) -> List[T]:
        """
        Run one structured call per prompt; results[i] answers prompts[i].

        Args:
            schema: Output model for every call
            task_id: Task profile used for every call
            prompts: One prompt per output slot
            options: Generation options shared by every call
            timings: If given, receives the batch wall-clock time under task_id

        Raises:
            BatchGenerationError: if any call failed
        """
        calls = [
            (lambda prompt=prompt: self.generator.generate_structured(schema, task_id, prompt, options))
            for prompt in prompts
        ]
        return await self.run_calls(task_id, calls, timings=timings)
