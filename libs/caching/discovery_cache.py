"""
Discovery research cache.

Company + role research (competitors, interview experiences, news) is costly
to produce and is shared by every candidate targeting the same company and
role family, so results are stored in Redis keyed by the normalized
(company, role family) pair.

Storage layout:
- discovery:{company}:{role_family}  hash with payload, timestamps and hit counters
- discovery:expiry                   sorted set of keys scored by expiry time

Expiry is checked on read rather than delegated to Redis key expiry: an
expired entry stays in place until cleanup_expired() removes it in bulk.
Hit counts are best-effort telemetry; concurrent readers may race.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import redis.asyncio as redis
import structlog
from pydantic import BaseModel, Field

from libs.caching.key_normalizer import cache_key_parts

logger = structlog.get_logger(__name__)

KEY_PREFIX = "discovery"
EXPIRY_INDEX_KEY = "discovery:expiry"
DEFAULT_TTL = timedelta(days=7)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheEntry(BaseModel):
    """A stored discovery result."""

    key: str
    company: str
    role_family: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    expires_at: datetime
    hit_count: int = 0
    last_hit_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


@dataclass
class CacheStats:
    """Cache statistics for monitoring."""

    total_requests: int = 0
    hits: int = 0
    misses: int = 0
    expired: int = 0

    @property
    def hit_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.hits / self.total_requests


class DiscoveryCache:
    """
    TTL-keyed cache of discovery research.

    Usage:
        cache = DiscoveryCache()
        await cache.connect()

        entry = await cache.get("Netflix", "Senior Tax Analyst II")
        if entry is None:
            payload = await discover(...)
            await cache.set("Netflix", "Senior Tax Analyst II", payload)
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        default_ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._redis_client = redis_client
        self.default_ttl = default_ttl
        self._clock = clock
        self._stats = CacheStats()

    async def connect(self, use_fake: Optional[bool] = None) -> None:
        """Attach the shared Redis client; leaves the cache disabled if Redis is down."""
        if self._redis_client is not None:
            return

        from libs.caching.redis_client import get_redis_client

        self._redis_client = await get_redis_client(use_fake=use_fake)
        if self._redis_client is None:
            logger.warning("Failed to connect to Redis, discovery cache disabled")

    @property
    def enabled(self) -> bool:
        return self._redis_client is not None

    @staticmethod
    def make_key(company: str, role: str) -> str:
        company_name, role_family = cache_key_parts(company, role)
        return f"{KEY_PREFIX}:{company_name}:{role_family}"

    async def get(self, company: str, role: str) -> Optional[CacheEntry]:
        """
        Return the live entry for (company, role) or None.

        An entry whose expires_at is not strictly in the future is a miss.
        A hit bumps hit_count before returning.
        """
        if self._redis_client is None:
            return None

        self._stats.total_requests += 1
        key = self.make_key(company, role)

        try:
            data = await self._redis_client.hgetall(key)
        except redis.RedisError as e:
            logger.error("Discovery cache read failed", key=key, error=str(e))
            self._stats.misses += 1
            return None

        entry = self._to_entry(key, data)
        if entry is None:
            self._stats.misses += 1
            logger.info("Discovery cache miss", key=key)
            return None

        now = self._clock()
        if entry.is_expired(now):
            self._stats.misses += 1
            self._stats.expired += 1
            logger.info("Discovery cache entry expired", key=key, expires_at=entry.expires_at.isoformat())
            return None

        self._stats.hits += 1
        hit_count = await self._record_hit(key, now)
        if hit_count is not None:
            entry = entry.model_copy(update={"hit_count": hit_count, "last_hit_at": now})

        logger.info("Discovery cache hit", key=key, hit_count=entry.hit_count)
        return entry

    async def set(
        self,
        company: str,
        role: str,
        payload: Dict[str, Any],
        ttl: Optional[timedelta] = None,
    ) -> bool:
        """
        Upsert the entry for (company, role).

        An existing hit_count is preserved; everything else is replaced.
        Returns False when the write could not be made.
        """
        if self._redis_client is None:
            return False

        company_name, role_family = cache_key_parts(company, role)
        key = f"{KEY_PREFIX}:{company_name}:{role_family}"
        now = self._clock()
        expires_at = now + (ttl or self.default_ttl)

        try:
            async with self._redis_client.pipeline(transaction=True) as pipe:
                pipe.hset(
                    key,
                    mapping={
                        "company": company_name,
                        "role_family": role_family,
                        "payload": json.dumps(payload, default=str),
                        "created_at": now.isoformat(),
                        "expires_at": expires_at.isoformat(),
                    },
                )
                pipe.hsetnx(key, "hit_count", 0)
                pipe.zadd(EXPIRY_INDEX_KEY, {key: expires_at.timestamp()})
                await pipe.execute()
        except (redis.RedisError, TypeError, ValueError) as e:
            logger.error("Discovery cache write failed", key=key, error=str(e))
            return False

        logger.info("Discovery cache stored", key=key, expires_at=expires_at.isoformat())
        return True

    async def increment_hit(self, company: str, role: str) -> None:
        """Bump the hit counter; failures are logged and swallowed."""
        if self._redis_client is None:
            return
        await self._record_hit(self.make_key(company, role), self._clock())

    async def cleanup_expired(self) -> int:
        """Delete every entry whose expiry has passed. Returns the number removed."""
        if self._redis_client is None:
            return 0

        cutoff = self._clock().timestamp()
        try:
            keys = await self._redis_client.zrangebyscore(EXPIRY_INDEX_KEY, "-inf", cutoff)
            if not keys:
                return 0
            async with self._redis_client.pipeline(transaction=True) as pipe:
                pipe.delete(*keys)
                pipe.zrem(EXPIRY_INDEX_KEY, *keys)
                deleted, _ = await pipe.execute()
        except redis.RedisError as e:
            logger.error("Discovery cache cleanup failed", error=str(e))
            return 0

        logger.info("Expired discovery cache entries removed", count=deleted)
        return deleted

    def get_stats(self) -> Dict[str, Any]:
        return {
            "total_requests": self._stats.total_requests,
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "expired": self._stats.expired,
            "hit_rate": self._stats.hit_rate,
        }

    async def _record_hit(self, key: str, now: datetime) -> Optional[int]:
        try:
            # Never create a stub hash for a key cleanup just removed
            if not await self._redis_client.exists(key):
                return None
            async with self._redis_client.pipeline(transaction=False) as pipe:
                pipe.hincrby(key, "hit_count", 1)
                pipe.hset(key, "last_hit_at", now.isoformat())
                hit_count, _ = await pipe.execute()
            return int(hit_count)
        except redis.RedisError as e:
            logger.warning("Failed to increment cache hit count", key=key, error=str(e))
            return None

    @staticmethod
    def _to_entry(key: str, data: Dict[str, str]) -> Optional[CacheEntry]:
        if not data or "payload" not in data or "expires_at" not in data:
            return None
        try:
            return CacheEntry(
                key=key,
                company=data.get("company", ""),
                role_family=data.get("role_family", ""),
                payload=json.loads(data["payload"]),
                created_at=data.get("created_at") or data["expires_at"],
                expires_at=data["expires_at"],
                hit_count=int(data.get("hit_count", 0)),
                last_hit_at=data.get("last_hit_at") or None,
            )
        except (ValueError, TypeError) as e:
            logger.warning("Discarding unreadable cache entry", key=key, error=str(e))
            return None


# Global cache instance
_global_cache: Optional[DiscoveryCache] = None


async def get_discovery_cache() -> DiscoveryCache:
    """Get or create the process-wide discovery cache."""
    global _global_cache

    if _global_cache is None:
        from libs.common.settings import get_settings

        settings = get_settings()
        _global_cache = DiscoveryCache(default_ttl=timedelta(days=settings.cache_ttl_days))
        await _global_cache.connect()

    return _global_cache
