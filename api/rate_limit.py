"""
Per-endpoint rate limiting for the GraphQL API.
"""

import asyncio
import time
from collections import deque
from typing import Any, Deque, Dict, Optional

import structlog
from starlette.requests import HTTPConnection
from strawberry.permission import BasePermission
from strawberry.types import Info

logger = structlog.get_logger(__name__)

DEFAULT_CLIENT = "127.0.0.1"
TOO_MANY_REQUESTS = "Too Many Requests"


class RateLimiter:
    """Sliding window request counter keyed by endpoint and client."""

    def __init__(self, limit: int, window_seconds: float, clock=time.monotonic):
        """
        Initialize the rate limiter.

        Args:
            limit: Requests allowed per window
            window_seconds: Window length in seconds
            clock: Monotonic time source
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep: Optional[float] = None
        self._lock = asyncio.Lock()

    def _prune(self, key: str, now: float) -> Deque[float]:
        """Drop expired hits; keys with no hits left are forgotten."""
        hits = self._hits.get(key)
        if hits is None:
            return deque()

        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        if not hits:
            del self._hits[key]
        return hits

    def _sweep(self, now: float) -> None:
        """Forget every key whose newest hit has left the window. Runs at most once per window."""
        if self._last_sweep is not None and now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now

        expired = [key for key, hits in self._hits.items() if not hits or now - hits[-1] >= self.window_seconds]
        for key in expired:
            del self._hits[key]
        if expired:
            logger.debug("Expired rate limit keys removed", count=len(expired))

    async def hit(self, key: str) -> bool:
        """
        Record a request if the key is within its limit.

        Args:
            key: Tracker key, usually ``<endpoint>:<client>``

        Returns:
            True if within limit, False if exceeded
        """
        async with self._lock:
            now = self._clock()
            self._sweep(now)
            hits = self._prune(key, now)

            if len(hits) < self.limit:
                self._hits.setdefault(key, hits).append(now)
                return True

        logger.warning("Rate limit exceeded", key=key, limit=self.limit, window_seconds=self.window_seconds)
        return False

    def get_rate_limit_info(self, key: str) -> Dict[str, Any]:
        """
        Get rate limit information for a key.

        Returns:
            Dictionary with limit, remaining requests and seconds until reset
        """
        now = self._clock()
        hits = self._prune(key, now)
        reset_in = self.window_seconds - (now - hits[0]) if hits else 0

        return {
            "rate_limit": self.limit,
            "requests_used": len(hits),
            "requests_remaining": max(0, self.limit - len(hits)),
            "reset_in_seconds": max(0, int(reset_in)),
        }

    @property
    def tracked_keys(self) -> int:
        """Number of keys with hits inside the current window."""
        return len(self._hits)

    def reset(self) -> None:
        """Forget all tracked requests."""
        self._hits.clear()


def get_client_ip(request: Optional[HTTPConnection]) -> str:
    """Resolve the client address used to track requests."""
    if request is None:
        return DEFAULT_CLIENT

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    if request.client and request.client.host:
        return request.client.host
    return DEFAULT_CLIENT


def get_rate_limit_headers(limiter: RateLimiter, key: str) -> Dict[str, str]:
    """
    Get rate limit headers for a response.

    Args:
        limiter: Limiter tracking the endpoint
        key: Tracker key

    Returns:
        Dictionary with rate limit headers
    """
    rate_info = limiter.get_rate_limit_info(key)
    return {
        "X-RateLimit-Limit": str(rate_info["rate_limit"]),
        "X-RateLimit-Remaining": str(rate_info["requests_remaining"]),
        "X-RateLimit-Reset": str(rate_info["reset_in_seconds"]),
    }


class Throttle(BasePermission):
    """
    GraphQL field permission enforcing the limiter registered for the field.

    Limiters are looked up in ``info.context["rate_limiters"]`` by field name;
    fields without a registered limiter are not limited.
    """

    message = TOO_MANY_REQUESTS

    async def has_permission(self, source: Any, info: Info, **kwargs: Any) -> bool:
        limiters: Dict[str, RateLimiter] = info.context.get("rate_limiters") or {}
        limiter = limiters.get(info.field_name)
        if limiter is None:
            return True

        key = f"{info.field_name}:{get_client_ip(info.context.get('request'))}"
        allowed = await limiter.hit(key)

        response = info.context.get("response")
        if response is not None:
            response.headers.update(get_rate_limit_headers(limiter, key))

        return allowed
