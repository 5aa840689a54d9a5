"""
Sent-message cache — Best-effort mirror of delivered messages.

Key layout (Redis):
  message:<id>   hash { "messageId": <external id>, "sentAt": <RFC 3339> }
                 expires after 24 hours

The cache is never authoritative; the message store is. Callers treat any
cache error as non-fatal.
"""
from __future__ import annotations

import time
import structlog
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

logger = structlog.get_logger()

DEFAULT_TTL_SECONDS = 24 * 60 * 60


def cache_key(message_id: str) -> str:
    return f"message:{message_id}"


def cache_fields(external_id: str, sent_at: datetime) -> dict[str, str]:
    return {
        "messageId": external_id,
        "sentAt": sent_at.isoformat(timespec="seconds"),
    }


# ──────────────────────────────────────────────────────────────
#  Abstract Interface
# ──────────────────────────────────────────────────────────────

class BaseSentMessageCache(ABC):
    """Interface for sent-message cache backends."""

    async def connect(self) -> None:
        """Establish connection to the cache backend."""

    async def close(self) -> None:
        """Gracefully shut down."""

    @abstractmethod
    async def cache_sent_message(self, message_id: str, external_id: str, sent_at: datetime) -> None:
        """Record a sent message's external id and timestamp."""
        ...


# ──────────────────────────────────────────────────────────────
#  Redis Implementation
# ──────────────────────────────────────────────────────────────

class RedisSentMessageCache(BaseSentMessageCache):
    """Production cache: one Redis hash per sent message, with expiry."""

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        client: Any = None,
    ):
        self._redis_url = redis_url
        self._ttl = ttl_seconds
        self._redis = client

    async def connect(self) -> None:
        if self._redis is None:
            import redis.asyncio as aioredis
            self._redis = aioredis.from_url(
                self._redis_url,
                decode_responses=True,
                max_connections=10,
            )
        await self._redis.ping()
        logger.info("redis_cache_connected", url=self._redis_url)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def cache_sent_message(self, message_id: str, external_id: str, sent_at: datetime) -> None:
        if self._redis is None:
            raise RuntimeError("redis cache is not connected")
        key = cache_key(message_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hset(key, mapping=cache_fields(external_id, sent_at))
            pipe.expire(key, self._ttl)
            await pipe.execute()
        logger.debug("sent_message_cached", message_id=message_id, key=key)


# ──────────────────────────────────────────────────────────────
#  In-Memory Implementation (Development)
# ──────────────────────────────────────────────────────────────

class InMemorySentMessageCache(BaseSentMessageCache):
    """
    Development/test cache backed by a dict with monotonic expiry.
    Single-process only.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self._ttl = ttl_seconds
        self._entries: dict[str, tuple[float, dict[str, str]]] = {}

    async def cache_sent_message(self, message_id: str, external_id: str, sent_at: datetime) -> None:
        expires_at = time.monotonic() + self._ttl
        self._entries[cache_key(message_id)] = (expires_at, cache_fields(external_id, sent_at))

    def get(self, message_id: str) -> Optional[dict[str, str]]:
        entry = self._entries.get(cache_key(message_id))
        if entry is None:
            return None
        expires_at, fields = entry
        if time.monotonic() >= expires_at:
            del self._entries[cache_key(message_id)]
            return None
        return dict(fields)


# ──────────────────────────────────────────────────────────────
#  Factory
# ──────────────────────────────────────────────────────────────

def create_sent_cache(cache_config: dict[str, Any] = None) -> Optional[BaseSentMessageCache]:
    """Factory: Redis cache when a URL is configured, otherwise no cache."""
    config = cache_config or {}
    url = config.get("redis_url", "")
    ttl = int(config.get("ttl_seconds", DEFAULT_TTL_SECONDS))

    if not url:
        logger.info("sent_cache_disabled", reason="redis_url not set")
        return None
    if url == "memory":
        logger.info("sent_cache_created", backend="memory")
        return InMemorySentMessageCache(ttl_seconds=ttl)

    logger.info("sent_cache_created", backend="redis", url=url)
    return RedisSentMessageCache(redis_url=url, ttl_seconds=ttl)
