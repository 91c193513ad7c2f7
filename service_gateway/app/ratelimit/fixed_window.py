"""
Fixed window rate limiter for Gateway service.
"""

import asyncio
from typing import Any, Dict, Optional

import redis.asyncio as redis
from fastapi import Request

from shared.logging import get_logger


class FixedWindowRateLimiter:
    """Per-client request budget over a fixed time window, stored in Redis."""

    def __init__(self, redis_url: str, max_requests: int = 100, window_seconds: int = 900):
        self.redis_url = redis_url
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.logger = get_logger("gateway.rate_limiter")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _make_key(self, client_id: str) -> str:
        """Generate rate limit key."""
        return f"rate_limit:{client_id}"

    def _allow_on_error(self, error: str) -> Dict[str, Any]:
        return {
            "allowed": True,
            "current_count": 0,
            "limit": self.max_requests,
            "remaining": self.max_requests,
            "reset_in_seconds": self.window_seconds,
            "error": error,
        }

    async def check_rate_limit(self, client_id: str) -> Dict[str, Any]:
        """Count one request for ``client_id`` and report whether it is allowed.

        Redis failures never block traffic; the request is allowed and the
        error is logged.
        """
        key = self._make_key(client_id)
        try:
            redis_client = await self._get_redis()
            pipeline_obj = redis_client.pipeline()
            if asyncio.iscoroutine(pipeline_obj):
                pipeline_obj = await pipeline_obj

            async with pipeline_obj as pipeline:
                pipeline.incr(key)
                pipeline.ttl(key)
                current_count, ttl = await pipeline.execute()

            current_count = int(current_count)
            if ttl is None or int(ttl) < 0:
                await redis_client.expire(key, self.window_seconds)
                ttl = self.window_seconds
            ttl = int(ttl)
        except Exception as e:
            self.logger.error("Rate limit check error", error=str(e))
            return self._allow_on_error(str(e))

        if current_count > self.max_requests:
            self.logger.warning(
                "Rate limit exceeded",
                client_id=client_id,
                current_count=current_count,
                limit=self.max_requests
            )
            return {
                "allowed": False,
                "current_count": current_count,
                "limit": self.max_requests,
                "remaining": 0,
                "reset_in_seconds": ttl,
                "retry_after": ttl,
            }

        return {
            "allowed": True,
            "current_count": current_count,
            "limit": self.max_requests,
            "remaining": max(0, self.max_requests - current_count),
            "reset_in_seconds": ttl,
        }


class RateLimitMiddleware:
    """Applies the limiter to inbound requests."""

    EXEMPT_PATHS = frozenset({"/health", "/metrics"})

    def __init__(self, rate_limiter: FixedWindowRateLimiter):
        self.rate_limiter = rate_limiter
        self.logger = get_logger("gateway.rate_limit_middleware")

    def is_exempt(self, request: Request) -> bool:
        return request.url.path in self.EXEMPT_PATHS or request.method == "OPTIONS"

    async def check_request(self, request: Request) -> Dict[str, Any]:
        """Check rate limit for request."""
        return await self.rate_limiter.check_rate_limit(self._get_client_id(request))

    def _get_client_id(self, request: Request) -> str:
        """Extract client ID from request."""
        forwarded_for = request.headers.get('X-Forwarded-For')
        if isinstance(forwarded_for, str) and forwarded_for:
            return forwarded_for.split(',')[0].strip()

        real_ip = request.headers.get('X-Real-IP')
        if isinstance(real_ip, str) and real_ip:
            return real_ip

        return request.client.host if request.client else 'unknown'

    @staticmethod
    def headers_for(result: Dict[str, Any]) -> Dict[str, str]:
        """Rate limiting metadata as standard headers."""
        headers = {}
        if result.get("limit") is not None:
            headers["X-RateLimit-Limit"] = str(result["limit"])
        if result.get("remaining") is not None:
            headers["X-RateLimit-Remaining"] = str(result["remaining"])
        if result.get("reset_in_seconds") is not None:
            headers["X-RateLimit-Reset"] = str(result["reset_in_seconds"])
        if result.get("retry_after") is not None:
            headers["Retry-After"] = str(result["retry_after"])
        return headers
