"""
Shared async Redis connection for the discovery cache and curriculum storage.

One client per process. In the test environment it is a fakeredis
instance. When a real server cannot be reached the failure is remembered
and callers get None until reset_redis_client() is called, so every cache
and repository degrades instead of waiting on connect timeouts.
"""

from typing import Optional

import redis.asyncio as redis
import structlog

from libs.common.settings import get_settings

logger = structlog.get_logger(__name__)

MAX_CONNECTIONS = 20
SOCKET_TIMEOUT_SECONDS = 5

_client: Optional[redis.Redis] = None
_unreachable = False


def _redact(url: str) -> str:
    return url.split("@")[-1] if "@" in url else url.split("//")[-1]


def _fake_client() -> redis.Redis:
    from fakeredis import aioredis as fakeredis

    logger.info("Using fakeredis")
    return fakeredis.FakeRedis(decode_responses=True)


async def _open(url: str) -> Optional[redis.Redis]:
    client = redis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=MAX_CONNECTIONS,
        socket_timeout=SOCKET_TIMEOUT_SECONDS,
        socket_connect_timeout=SOCKET_TIMEOUT_SECONDS,
        retry_on_timeout=True,
    )
    try:
        await client.ping()
    except redis.RedisError as e:
        logger.error("Redis unreachable, caching and storage disabled", url=_redact(url), error=str(e))
        return None

    logger.info("Redis connected", url=_redact(url), max_connections=MAX_CONNECTIONS)
    return client


async def get_redis_client(use_fake: Optional[bool] = None) -> Optional[redis.Redis]:
    """
    Return the process-wide client, connecting on first use.

    Args:
        use_fake: Force fakeredis on or off; by default it is used when
            app_env is "test"

    Returns:
        The client, or None when Redis is unreachable
    """
    global _client, _unreachable

    settings = get_settings()
    if use_fake is None:
        use_fake = settings.is_test

    if use_fake:
        if _client is None:
            _client = _fake_client()
        return _client

    if _unreachable:
        return None

    if _client is not None:
        try:
            await _client.ping()
            return _client
        except redis.RedisError as e:
            logger.warning("Redis connection lost, reconnecting", error=str(e))
            _client = None

    _client = await _open(settings.redis_url)
    _unreachable = _client is None
    return _client


async def close_redis_client() -> None:
    global _client

    client, _client = _client, None
    if client is None:
        return
    try:
        await client.aclose()
    except redis.RedisError as e:
        logger.warning("Redis close failed", error=str(e))
    else:
        logger.info("Redis connection closed")


async def reset_redis_client() -> None:
    """Close the client and forget a previous connection failure."""
    global _unreachable

    await close_redis_client()
    _unreachable = False


async def health_check() -> bool:
    client = await get_redis_client()
    if client is None:
        return False
    try:
        return bool(await client.ping())
    except redis.RedisError as e:
        logger.error("Redis ping failed", error=str(e))
        return False
