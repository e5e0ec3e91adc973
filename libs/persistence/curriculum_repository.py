"""Redis-backed storage for generated curricula."""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Protocol

import redis.asyncio as redis
import structlog
from pydantic import BaseModel, Field

from curriculum.errors import PersistenceError
from libs.caching.redis_client import get_redis_client

logger = structlog.get_logger(__name__)

KEY_PREFIX = "curriculum"


class StoredCurriculum(BaseModel):
    """A saved run: the final state plus bookkeeping."""

    id: str
    status: Literal["complete", "partial"]
    request_id: Optional[str] = None
    company_name: Optional[str] = None
    role_title: Optional[str] = None
    quality_score: Optional[float] = None
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    state: Dict[str, Any]


class CurriculumRepository(Protocol):
    async def save(self, state: BaseModel) -> str:
        """Persist the run and return the curriculum id; raises PersistenceError."""
        ...


class RedisCurriculumRepository:
    """
    Stores each curriculum as one JSON document under ``curriculum:{id}``.

    A run that stopped early is still stored, with status "partial", as long
    as the job was parsed.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis_client = redis_client

    async def connect(self, use_fake: Optional[bool] = None) -> None:
        if self.redis_client is None:
            self.redis_client = await get_redis_client(use_fake=use_fake)

    @staticmethod
    def make_key(curriculum_id: str) -> str:
        return f"{KEY_PREFIX}:{curriculum_id}"

    async def save(self, state: BaseModel) -> str:
        if self.redis_client is None:
            raise PersistenceError("Curriculum storage is not available")

        data = state.model_dump(mode="json")
        job = data.get("job_data")
        if not job:
            raise PersistenceError("Cannot save a curriculum without job data")

        complete = bool(data.get("rounds")) and bool(data.get("structure"))
        record = StoredCurriculum(
            id=uuid.uuid4().hex,
            status="complete" if complete else "partial",
            request_id=data.get("request_id"),
            company_name=job.get("company_name"),
            role_title=job.get("title"),
            quality_score=data.get("quality_score"),
            state=data,
        )

        try:
            await self.redis_client.set(self.make_key(record.id), record.model_dump_json())
        except redis.RedisError as e:
            logger.error("Failed to save curriculum", curriculum_id=record.id, error=str(e))
            raise PersistenceError(f"Redis write failed: {e}") from e

        logger.info(
            "Curriculum saved",
            curriculum_id=record.id,
            status=record.status,
            company=record.company_name,
            role=record.role_title,
        )
        return record.id

    async def load(self, curriculum_id: str) -> Optional[StoredCurriculum]:
        if self.redis_client is None:
            return None
        try:
            raw = await self.redis_client.get(self.make_key(curriculum_id))
        except redis.RedisError as e:
            logger.warning("Failed to load curriculum", curriculum_id=curriculum_id, error=str(e))
            return None
        if raw is None:
            return None
        return StoredCurriculum.model_validate(json.loads(raw))
