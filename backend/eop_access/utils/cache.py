"""Redis cache for resolved authorization contexts.

A cached entry is a whole AuthorizationContext serialized as JSON. It is
returned as-is or not at all; it is never merged with freshly fetched
rows. If Redis is unavailable the caller proceeds uncached.

Cache keys: ctx:{identity_id}
"""

import logging
from typing import Optional

import redis.asyncio as redis
from pydantic import ValidationError

from eop_access.config import settings
from eop_access.schemas.context import AuthorizationContext

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get or create Redis client connection."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
    return _redis_client


async def close_redis():
    """Close Redis connection (call on app shutdown)."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def context_key(identity_id: str) -> str:
    return f"ctx:{identity_id}"


class ContextCache:
    """TTL cache of resolved contexts, keyed by identity id."""

    def __init__(self, client: redis.Redis | None = None, ttl: int | None = None):
        self._client = client
        self.ttl = settings.context_cache_ttl_seconds if ttl is None else ttl

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    async def _redis(self) -> redis.Redis:
        if self._client is None:
            self._client = await get_redis()
        return self._client

    async def get(self, identity_id: str) -> AuthorizationContext | None:
        if not self.enabled:
            return None
        key = context_key(identity_id)
        try:
            client = await self._redis()
            raw = await client.get(key)
        except redis.RedisError as e:
            logger.warning(f"Redis error (falling back to uncached): {e}")
            return None

        if not raw:
            logger.debug(f"Cache MISS: {key}")
            return None

        try:
            ctx = AuthorizationContext.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Discarding unreadable cached context: {key}")
            await self.invalidate(identity_id)
            return None
        logger.debug(f"Cache HIT: {key}")
        return ctx

    async def set(self, ctx: AuthorizationContext) -> None:
        if not self.enabled:
            return
        try:
            client = await self._redis()
            await client.setex(context_key(ctx.identity_id), self.ttl, ctx.model_dump_json())
        except redis.RedisError as e:
            logger.warning(f"Failed to cache context: {e}")

    async def invalidate(self, identity_id: str) -> None:
        try:
            client = await self._redis()
            await client.delete(context_key(identity_id))
        except redis.RedisError as e:
            logger.warning(f"Failed to invalidate cached context: {e}")
