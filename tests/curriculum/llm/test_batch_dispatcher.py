"""
Tests for the batch dispatcher.

Tests verify:
- results[i] answers prompts[i] under random latencies
- No more than max_concurrency calls are in flight
- A failure fails the batch only after every call has settled
- Batch wall-clock time is recorded per task
"""

import asyncio
import random

import pytest
from pydantic import BaseModel

from curriculum.errors import BatchGenerationError, GenerationError
from curriculum.llm.batch import BatchDispatcher


class Echo(BaseModel):
    value: str


class EchoGenerator:
    def __init__(self, fail_on=None, max_latency=0.02):
        self.fail_on = set(fail_on or ())
        self.max_latency = max_latency
        self.in_flight = 0
        self.max_in_flight = 0
        self.completed = []

    async def generate_structured(self, schema, task_id, prompt, options=None):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(random.uniform(0, self.max_latency))
            if prompt in self.fail_on:
                raise GenerationError(f"failed on {prompt}", task_id)
            return schema(value=f"answer:{prompt}")
        finally:
            self.in_flight -= 1
            self.completed.append(prompt)


class TestBatchDispatcher:
    @pytest.mark.asyncio
    async def test_results_are_positional(self):
        generator = EchoGenerator()
        dispatcher = BatchDispatcher(generator, max_concurrency=5)
        prompts = [f"p{i}" for i in range(20)]

        results = await dispatcher.batch_generate(Echo, "question_generation", prompts)

        assert [r.value for r in results] == [f"answer:{p}" for p in prompts]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        generator = EchoGenerator()
        dispatcher = BatchDispatcher(generator, max_concurrency=3)

        await dispatcher.batch_generate(Echo, "question_generation", [f"p{i}" for i in range(12)])

        assert 1 <= generator.max_in_flight <= 3

    @pytest.mark.asyncio
    async def test_failure_raised_after_all_calls_settle(self):
        generator = EchoGenerator(fail_on={"p0"})
        dispatcher = BatchDispatcher(generator, max_concurrency=2)
        prompts = [f"p{i}" for i in range(6)]

        with pytest.raises(BatchGenerationError) as exc_info:
            await dispatcher.batch_generate(Echo, "persona_generation", prompts)

        assert sorted(generator.completed) == sorted(prompts)
        assert list(exc_info.value.failures) == [0]
        assert exc_info.value.total == 6
        assert exc_info.value.task_id == "persona_generation"
        assert isinstance(exc_info.value, GenerationError)

    @pytest.mark.asyncio
    async def test_timings_recorded(self):
        dispatcher = BatchDispatcher(EchoGenerator(), max_concurrency=5)
        timings = {}

        await dispatcher.batch_generate(Echo, "round_generation", ["a", "b"], timings=timings)

        assert timings["round_generation"] >= 0

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        generator = EchoGenerator()
        assert await BatchDispatcher(generator).batch_generate(Echo, "x", []) == []
        assert generator.completed == []

    @pytest.mark.asyncio
    async def test_run_calls_accepts_arbitrary_coroutines(self):
        dispatcher = BatchDispatcher(EchoGenerator(), max_concurrency=2)

        async def double(n):
            await asyncio.sleep(random.uniform(0, 0.01))
            return n * 2

        results = await dispatcher.run_calls("company_research", [(lambda n=n: double(n)) for n in range(5)])

        assert results == [0, 2, 4, 6, 8]

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValueError):
            BatchDispatcher(EchoGenerator(), max_concurrency=0)
