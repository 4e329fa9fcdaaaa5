"""
Request throttling for the storefront API

A per-process sliding window keyed by client IP or admin bearer token. The
same RateLimiter backs the review vote cooldown.

Author: Vadiler
Date: 2025-11-03
"""
import hashlib
import time
from collections import deque
from typing import Deque, Dict, Optional, Tuple

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

# Requests per minute
RATE_LIMITS = {
    "authenticated": 1000,
    "unauthenticated": 300,
}

WINDOW_SECONDS = 60

# Gateway callbacks, the scheduler and health checks are never throttled
EXEMPT_PATHS = {
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/api/payment/webhook",
    "/api/payment/callback",
}

EXEMPT_PREFIXES = (
    "/api/cron/",
)


class RateLimiter:
    """
    Sliding window counter

    Each key holds the timestamps of its accepted hits, oldest first. Keys
    that go quiet are swept every `sweep_interval` seconds.
    """

    def __init__(self, sweep_interval: float = 60.0, max_keys: int = 10000):
        self._hits: Dict[str, Deque[float]] = {}
        self._sweep_interval = sweep_interval
        self._max_keys = max_keys
        self._last_sweep = time.monotonic()

    def is_allowed(self, identifier: str, max_requests: int,
                   window_seconds: int = WINDOW_SECONDS) -> Tuple[bool, int, int]:
        """
        Record a hit for `identifier` if it fits in the window.

        Returns:
            (allowed, remaining, retry_after_seconds)
        """
        now = time.monotonic()
        self._maybe_sweep(now, window_seconds)

        hits = self._hits.setdefault(identifier, deque())
        horizon = now - window_seconds
        while hits and hits[0] <= horizon:
            hits.popleft()

        if len(hits) >= max_requests:
            retry_after = int(hits[0] + window_seconds - now) + 1
            return False, 0, retry_after

        hits.append(now)
        return True, max_requests - len(hits), 0

    def reset(self) -> None:
        self._hits.clear()

    def _maybe_sweep(self, now: float, window_seconds: int) -> None:
        if now - self._last_sweep < self._sweep_interval and len(self._hits) <= self._max_keys:
            return
        horizon = now - window_seconds
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= horizon]:
            del self._hits[key]
        self._last_sweep = now


rate_limiter = RateLimiter()


def get_client_ip(request: Request) -> str:
    """First x-forwarded-for hop, then x-real-ip, then the socket peer"""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


def is_exempt(path: str) -> bool:
    return path in EXEMPT_PATHS or path.startswith(EXEMPT_PREFIXES)


def limit_key(request: Request) -> Tuple[str, int]:
    """
    Bucket and per-minute limit for a request

    Admin tools send a bearer token and get the higher limit, keyed by a
    hash of the token. Shoppers are keyed by client IP.
    """
    authorization: Optional[str] = request.headers.get("Authorization")
    if authorization and authorization.startswith("Bearer "):
        digest = hashlib.sha256(authorization.encode()).hexdigest()[:16]
        return f"token:{digest}", RATE_LIMITS["authenticated"]
    return f"ip:{get_client_ip(request)}", RATE_LIMITS["unauthenticated"]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies `rate_limiter` to every non-exempt request.

    Responses carry X-RateLimit-Limit and X-RateLimit-Remaining; a 429 also
    carries Retry-After.
    """

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or is_exempt(request.url.path):
            return await call_next(request)

        key, limit = limit_key(request)
        allowed, remaining, retry_after = rate_limiter.is_allowed(key, limit, WINDOW_SECONDS)

        if not allowed:
            # Returned rather than raised so the CORS middleware still decorates it
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Çok fazla istek. Lütfen biraz sonra tekrar deneyin."},
                headers={
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                    "Retry-After": str(retry_after),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
