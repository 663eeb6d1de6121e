"""
Rate limiting middleware backed by the Redis cache.

Counters are atomic Redis increments. When the cache is disabled or
unreachable, requests are let through.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from gatepass.core.cache import cache
from gatepass.core.settings import get_settings
from gatepass.middleware.monitoring import client_ip

logger = logging.getLogger(__name__)
settings = get_settings()


class RateLimitStrategy(Enum):
    FIXED_WINDOW = "fixed_window"
    SLIDING_WINDOW = "sliding_window"


@dataclass(frozen=True)
class RateLimitConfig:
    requests: int  # allowed per window
    window: int  # seconds
    strategy: RateLimitStrategy = RateLimitStrategy.FIXED_WINDOW


@dataclass(frozen=True)
class RateLimitInfo:
    limit: int
    remaining: int
    reset: int
    retry_after: int = 0

    def headers(self) -> Dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }
        if self.retry_after > 0:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class RateLimiter:
    def __init__(self, config: RateLimitConfig):
        self.config = config

    async def is_allowed(
        self, identifier: str, now: Optional[float] = None
    ) -> Tuple[bool, RateLimitInfo]:
        """Count one request for ``identifier`` and report whether it fits the limit"""
        current_time = time.time() if now is None else now
        window = self.config.window
        window_start = int(current_time) - int(current_time) % window
        reset = window_start + window

        if self.config.strategy is RateLimitStrategy.SLIDING_WINDOW:
            used = await self._sliding_window_count(identifier, current_time, window_start)
        else:
            used = await self._fixed_window_count(identifier, window_start)

        if used is None:
            # Cache unavailable
            return True, RateLimitInfo(self.config.requests, self.config.requests, reset)

        remaining = self.config.requests - used
        allowed = remaining >= 0
        return allowed, RateLimitInfo(
            limit=self.config.requests,
            remaining=max(0, int(remaining)),
            reset=reset,
            retry_after=0 if allowed else max(1, reset - int(current_time)),
        )

    async def _fixed_window_count(self, identifier: str, window_start: int) -> Optional[float]:
        key = f"rate_limit:fixed:{identifier}:{window_start}"
        count = await cache.increment(key, self.config.window)
        return None if count is None else float(count)

    async def _sliding_window_count(
        self, identifier: str, current_time: float, window_start: int
    ) -> Optional[float]:
        """Current window count plus the previous window weighted by its overlap"""
        window = self.config.window
        count = await cache.increment(
            f"rate_limit:sliding:{identifier}:{window_start}", window * 2
        )
        if count is None:
            return None

        previous = int(
            await cache.get(f"rate_limit:sliding:{identifier}:{window_start - window}", 0) or 0
        )
        overlap = 1 - (current_time - window_start) / window
        return count + previous * overlap


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-client rate limiting. Each path uses the limit of the longest matching
    configured prefix, or the default limit when none matches.
    """

    def __init__(
        self,
        app: Callable,
        default_config: Optional[RateLimitConfig] = None,
        endpoint_configs: Optional[Mapping[str, RateLimitConfig]] = None,
    ):
        super().__init__(app)
        self.default_config = default_config or RateLimitConfig(
            requests=settings.scalability.RATE_LIMIT_REQUESTS,
            window=settings.scalability.RATE_LIMIT_WINDOW,
        )
        configs = RATE_LIMIT_CONFIGS if endpoint_configs is None else endpoint_configs
        self.endpoint_configs = dict(sorted(configs.items(), key=lambda kv: -len(kv[0])))
        self._limiters: Dict[RateLimitConfig, RateLimiter] = {}

    def _scope_for(self, path: str) -> Tuple[str, RateLimitConfig]:
        path = path.rstrip("/")
        for prefix, config in self.endpoint_configs.items():
            if path == prefix or path.startswith(prefix + "/"):
                return prefix, config
        return "default", self.default_config

    def _limiter(self, config: RateLimitConfig) -> RateLimiter:
        if config not in self._limiters:
            self._limiters[config] = RateLimiter(config)
        return self._limiters[config]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not settings.scalability.RATE_LIMIT_ENABLED:
            return await call_next(request)

        ip = client_ip(request)
        scope, config = self._scope_for(request.url.path)
        allowed, info = await self._limiter(config).is_allowed(f"{scope}:ip:{ip}")

        if not allowed:
            logger.warning(f"Rate limit exceeded for {ip} on {request.method} {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "detail": "Rate limit exceeded. Please try again later.",
                    "code": "rate_limited",
                },
                headers=info.headers(),
            )

        response = await call_next(request)
        response.headers.update(info.headers())
        return response


RATE_LIMIT_CONFIGS: Dict[str, RateLimitConfig] = {
    f"{settings.API_V1_PREFIX}/auth/login": RateLimitConfig(
        requests=5, window=300, strategy=RateLimitStrategy.SLIDING_WINDOW
    ),
    f"{settings.API_V1_PREFIX}/auth/register": RateLimitConfig(
        requests=3, window=300, strategy=RateLimitStrategy.SLIDING_WINDOW
    ),
    f"{settings.API_V1_PREFIX}/bookings": RateLimitConfig(
        requests=30, window=60, strategy=RateLimitStrategy.SLIDING_WINDOW
    ),
    # Gate scanners verify in bursts
    f"{settings.API_V1_PREFIX}/validate": RateLimitConfig(
        requests=120, window=60, strategy=RateLimitStrategy.FIXED_WINDOW
    ),
}
