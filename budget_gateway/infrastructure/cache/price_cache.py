"""Best-effort key/value cache for upstream price data"""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from budget_gateway.config import Settings
from budget_gateway.domain.exceptions import CacheUnavailableError

logger = logging.getLogger(__name__)


class PriceCache(Protocol):
    """Cache capability consumed by PriceProvider"""

    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value while it is fresh, else None"""
        ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store value unconditionally, replacing any previous entry"""
        ...

    async def ping(self) -> bool:
        ...


class InMemoryPriceCache:
    """Process-local cache used when no Redis URL is configured"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float, int]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at, ttl = entry
        if self._clock() - stored_at >= ttl:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._entries[key] = (value, self._clock(), ttl_seconds)

    async def ping(self) -> bool:
        return True


class RedisPriceCache:
    """
    Redis-backed cache storing JSON values with SETEX expiry.

    Connection errors and timeouts surface as CacheUnavailableError;
    the connection itself is opened lazily on first use.
    """

    def __init__(self, url: str, timeout_seconds: float = 1.0):
        self.client = aioredis.Redis.from_url(
            url,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
            decode_responses=True,
        )

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.client.get(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis get failed: {e}") from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable cache entry", extra={"cache_key": key})
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            await self.client.set(key, json.dumps(value), ex=ttl_seconds)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis set failed: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError):
            return False


def build_price_cache(settings: Settings) -> PriceCache:
    """Redis when configured, otherwise an in-process cache"""
    if settings.redis_url:
        logger.info("Using Redis price cache")
        return RedisPriceCache(settings.redis_url, settings.redis_timeout_seconds)
    logger.info("REDIS_URL not set; using in-memory price cache")
    return InMemoryPriceCache()
