"""
Structured generation client.

Wraps a LangChain chat model: every call is configured from a per-task
profile (temperature, token budget), parsed into a pydantic schema with
with_structured_output, retried on transient provider errors with tenacity,
and mapped onto the package's error taxonomy:

- provider failure or timeout  -> GenerationError
- output that fails the schema -> OutputValidationError
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar, Union

import structlog
from langchain_core.exceptions import OutputParserException
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from curriculum.errors import GenerationError, OutputValidationError
from curriculum.llm.batch import BatchDispatcher
from libs.common.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

Prompt = Union[str, Sequence[BaseMessage]]


@dataclass(frozen=True)
class TaskProfile:
    temperature: float
    max_tokens: Optional[int] = None


TASK_PROFILES: Dict[str, TaskProfile] = {
    "job_parsing": TaskProfile(temperature=0.1, max_tokens=2000),
    "company_research": TaskProfile(temperature=0.3, max_tokens=3000),
    "role_analysis": TaskProfile(temperature=0.3, max_tokens=3000),
    "unified_context": TaskProfile(temperature=0.5, max_tokens=2000),
    "persona_generation": TaskProfile(temperature=0.7, max_tokens=1500),
    "question_generation": TaskProfile(temperature=0.6, max_tokens=2000),
    "candidate_prep": TaskProfile(temperature=0.8, max_tokens=3000),
    "reverse_interview_questions": TaskProfile(temperature=0.6, max_tokens=6000),
    "round_generation": TaskProfile(temperature=0.6, max_tokens=3000),
    "quality_evaluation": TaskProfile(temperature=0.2, max_tokens=1000),
}

DEFAULT_PROFILE = TaskProfile(temperature=0.5)


def get_task_profile(task_id: str) -> TaskProfile:
    return TASK_PROFILES.get(task_id, DEFAULT_PROFILE)


@dataclass
class GenerationOptions:
    """Per-call overrides of the task profile."""

    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    system_prompt: Optional[str] = None


@dataclass
class SearchResult:
    content: str
    grounding_metadata: Dict[str, Any] = field(default_factory=dict)


class _TransientProviderError(Exception):
    """Internal marker for errors worth retrying."""


LLMFactory = Callable[[float, Optional[int]], BaseChatModel]


class StructuredGenerationClient:
    """
    Provider client handed to the orchestrator at construction time.

    Args:
        settings: Settings instance (defaults to get_settings())
        llm_factory: Builds a chat model for (temperature, max_tokens); tests
            inject fakes here
    """

    def __init__(self, settings: Optional[Settings] = None, llm_factory: Optional[LLMFactory] = None):
        self.settings = settings or get_settings()
        self._llm_factory = llm_factory or self._openai_llm
        self.dispatcher = BatchDispatcher(self, max_concurrency=self.settings.batch_max_concurrency)

    def _openai_llm(self, temperature: float, max_tokens: Optional[int]) -> BaseChatModel:
        return ChatOpenAI(
            model=self.settings.model_name,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=self.settings.openai_api_key,
            timeout=self.settings.llm_timeout_seconds,
            max_retries=0,  # retries are handled here with tenacity
        )

    def _llm_for(self, task_id: str, options: Optional[GenerationOptions]) -> BaseChatModel:
        profile = get_task_profile(task_id)
        temperature = options.temperature if options and options.temperature is not None else profile.temperature
        max_tokens = options.max_tokens if options and options.max_tokens is not None else profile.max_tokens
        return self._llm_factory(temperature, max_tokens)

    @staticmethod
    def _to_messages(prompt: Prompt, options: Optional[GenerationOptions]) -> List[BaseMessage]:
        messages: List[BaseMessage] = []
        if options and options.system_prompt:
            messages.append(SystemMessage(content=options.system_prompt))
        if isinstance(prompt, str):
            messages.append(HumanMessage(content=prompt))
        else:
            messages.extend(prompt)
        return messages

    async def _invoke(self, runnable: Any, messages: List[BaseMessage]) -> Any:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.settings.llm_max_retries + 1),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            retry=retry_if_exception_type(_TransientProviderError),
            reraise=True,
        ):
            with attempt:
                try:
                    return await asyncio.wait_for(
                        runnable.ainvoke(messages),
                        timeout=self.settings.llm_timeout_seconds,
                    )
                except (ValidationError, OutputParserException):
                    raise
                except asyncio.TimeoutError as e:
                    raise _TransientProviderError(f"timed out after {self.settings.llm_timeout_seconds}s") from e
                except Exception as e:
                    raise _TransientProviderError(f"{type(e).__name__}: {e}") from e

    async def generate_structured(
        self,
        schema: Type[T],
        task_id: str,
        prompt: Prompt,
        options: Optional[GenerationOptions] = None,
    ) -> T:
        """
        Generate an instance of ``schema``.

        Raises:
            OutputValidationError: output did not match the schema
            GenerationError: provider error or timeout
        """
        runnable = self._llm_for(task_id, options).with_structured_output(schema)
        messages = self._to_messages(prompt, options)

        try:
            result = await self._invoke(runnable, messages)
        except (ValidationError, OutputParserException) as e:
            logger.warning("Structured output rejected", task_id=task_id, schema=schema.__name__, error=str(e))
            raise OutputValidationError(f"{task_id}: output does not match {schema.__name__}: {e}", task_id) from e
        except _TransientProviderError as e:
            logger.error("Provider call failed", task_id=task_id, schema=schema.__name__, error=str(e))
            raise GenerationError(f"{task_id}: provider call failed: {e}", task_id) from e

        if isinstance(result, schema):
            return result
        try:
            return schema.model_validate(result)
        except ValidationError as e:
            raise OutputValidationError(f"{task_id}: output does not match {schema.__name__}: {e}", task_id) from e

    async def generate_with_search(
        self,
        task_id: str,
        prompt: Prompt,
        options: Optional[GenerationOptions] = None,
    ) -> SearchResult:
        """
        Free-text generation grounded with web search when enabled.

        Used as a first pass before a structured parse of the returned text.
        """
        llm = self._llm_for(task_id, options)
        if self.settings.enable_web_search:
            llm = llm.bind_tools([{"type": "web_search_preview"}])

        try:
            message = await self._invoke(llm, self._to_messages(prompt, options))
        except _TransientProviderError as e:
            logger.error("Search generation failed", task_id=task_id, error=str(e))
            raise GenerationError(f"{task_id}: search generation failed: {e}", task_id) from e

        content = getattr(message, "text", None)
        if callable(content):
            content = content()
        if not isinstance(content, str):
            content = str(getattr(message, "content", "") or "")

        metadata = dict(getattr(message, "response_metadata", None) or {})
        annotations = [
            block.get("annotations")
            for block in (message.content if isinstance(message.content, list) else [])
            if isinstance(block, dict) and block.get("annotations")
        ]
        if annotations:
            metadata["annotations"] = annotations

        return SearchResult(content=content, grounding_metadata=metadata)

    async def batch_structured(
        self,
        schema: Type[T],
        task_id: str,
        prompts: Sequence[Prompt],
        options: Optional[GenerationOptions] = None,
        timings: Optional[Dict[str, float]] = None,
    ) -> List[T]:
        """One structured call per prompt, at most batch_max_concurrency in flight."""
        return await self.dispatcher.batch_generate(schema, task_id, prompts, options, timings=timings)
