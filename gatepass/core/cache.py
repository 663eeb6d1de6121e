"""
Redis-backed cache with JSON serialization and a circuit breaker.

The cache is an optimization only: every operation degrades to a no-op (or
the supplied default) when caching is disabled or Redis is unreachable.
Seat counts are never read from it for reservation decisions.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from gatepass.core.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

T = TypeVar("T")


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    errors: int = 0

    def as_dict(self) -> Dict[str, Any]:
        lookups = self.hits + self.misses + self.errors
        return {
            "hits": self.hits,
            "misses": self.misses,
            "errors": self.errors,
            "hit_rate": round(100 * self.hits / lookups, 2) if lookups else 0.0,
        }


class CircuitBreaker:
    """Opens after ``threshold`` recent failures and retries after ``reset_after`` seconds"""

    def __init__(self, threshold: int = 5, reset_after: float = 60) -> None:
        self.threshold = threshold
        self.reset_after = reset_after
        self.failures = 0
        self.opened_at: Optional[float] = None

    @property
    def is_open(self) -> bool:
        if self.opened_at is None:
            return False
        if time.monotonic() - self.opened_at >= self.reset_after:
            # Half-open: let the next call probe Redis again
            self.failures = self.threshold - 1
            self.opened_at = None
            return False
        return True

    def record_failure(self) -> None:
        self.failures += 1
        if self.failures >= self.threshold and self.opened_at is None:
            self.opened_at = time.monotonic()
            logger.warning(f"Cache circuit breaker opened after {self.failures} failures")

    def record_success(self) -> None:
        self.failures = max(0, self.failures - 1)


class AdvancedCacheManager:
    """Redis cache manager with hit statistics and a circuit breaker"""

    def __init__(self) -> None:
        self.redis_client: Optional[Redis] = None
        self.stats = CacheStats()
        self.breaker = CircuitBreaker()

    @property
    def enabled(self) -> bool:
        return settings.scalability.CACHE_ENABLED and self.redis_client is not None

    def init(self, url: Optional[str] = None) -> None:
        """Create the Redis client. Connections are opened lazily on first use."""
        if not settings.scalability.CACHE_ENABLED or self.redis_client is not None:
            return
        conf = settings.redis
        self.redis_client = redis.Redis.from_url(
            url or conf.redis_url,
            max_connections=conf.REDIS_MAX_CONNECTIONS,
            retry_on_timeout=conf.REDIS_RETRY_ON_TIMEOUT,
            socket_timeout=conf.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=conf.REDIS_SOCKET_CONNECT_TIMEOUT,
            health_check_interval=conf.REDIS_HEALTH_CHECK_INTERVAL,
            decode_responses=True,
        )
        logger.info("Redis cache client initialized")

    async def close(self) -> None:
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("Redis cache client closed")

    def _key(self, key: str) -> str:
        return f"{settings.scalability.CACHE_KEY_PREFIX}{key}"

    async def _call(
        self, op: str, key: str, fn: Callable[[Redis], Awaitable[T]], fallback: T
    ) -> T:
        """Run one Redis operation, returning ``fallback`` when the cache is unusable"""
        if not self.enabled or self.breaker.is_open:
            return fallback
        try:
            result = await fn(self.redis_client)  # type: ignore[arg-type]
        except RedisError as e:
            logger.error(f"Cache {op} error for key {key}: {e}")
            self.stats.errors += 1
            self.breaker.record_failure()
            return fallback
        self.breaker.record_success()
        return result

    async def get(self, key: str, default: Any = None) -> Any:
        """Cached value, or ``default`` on a miss or any failure"""
        missing = object()
        raw = await self._call("get", key, lambda r: r.get(self._key(key)), missing)
        if raw is missing:
            return default
        if raw is None:
            self.stats.misses += 1
            return default
        self.stats.hits += 1
        return json.loads(raw)  # type: ignore[arg-type]

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        payload = json.dumps(value, default=str)
        expiry = ttl or settings.scalability.CACHE_TTL
        result = await self._call(
            "set", key, lambda r: r.set(self._key(key), payload, ex=expiry), False
        )
        return bool(result)

    async def delete(self, key: str) -> bool:
        result = await self._call("delete", key, lambda r: r.delete(self._key(key)), 0)
        return bool(result)

    async def increment(self, key: str, ttl: int) -> Optional[int]:
        """Increment a counter, setting its expiry when it is first created"""
        cache_key = self._key(key)

        async def incr(r: Redis) -> Optional[int]:
            async with r.pipeline() as pipe:
                pipe.incr(cache_key)
                pipe.expire(cache_key, ttl, nx=True)
                count, _ = await pipe.execute()
            return int(count)

        return await self._call("increment", key, incr, None)

    async def health_check(self) -> Dict[str, Any]:
        if not settings.scalability.CACHE_ENABLED:
            return {"status": "disabled"}
        if not self.redis_client:
            return {"status": "error", "message": "Redis client not initialized"}

        started = time.perf_counter()
        try:
            await self.redis_client.ping()
        except RedisError as e:
            logger.error(f"Cache health check failed: {e}")
            return {"status": "error", "message": "Redis unavailable"}

        return {
            "status": "healthy",
            "response_time_ms": round((time.perf_counter() - started) * 1000, 2),
            "stats": self.stats.as_dict(),
            "circuit_breaker": {
                "failures": self.breaker.failures,
                "is_open": self.breaker.is_open,
            },
        }


cache = AdvancedCacheManager()
