"""
Stock middleware for the chain application: security headers, CORS, body
parsing, rate limiting and the JSON error handler.
"""

import json
import logging
import math
import re
import time
from typing import Any, Callable, Dict, Iterable, Optional
from urllib.parse import parse_qsl

from cachetools import TTLCache

from ..core.exceptions import BodyParseError, CorsRejectedError, RateLimitExceededError
from ..core.request_translator import SyntheticRequest
from ..core.response_adapter import ResponseAdapter

logger = logging.getLogger("bridge.middleware")

# Default response headers set on every request.
SECURITY_HEADERS: Dict[str, str] = {
    "Content-Security-Policy": (
        "default-src 'self';base-uri 'self';font-src 'self' https: data:;"
        "form-action 'self';frame-ancestors 'self';img-src 'self' data:;"
        "object-src 'none';script-src 'self';script-src-attr 'none';"
        "style-src 'self' https: 'unsafe-inline';upgrade-insecure-requests"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}

CORS_ALLOW_METHODS = "GET,HEAD,PUT,PATCH,POST,DELETE"


def security_headers(overrides: Optional[Dict[str, str]] = None):
    headers = {**SECURITY_HEADERS, **(overrides or {})}

    async def security_headers_middleware(request, response, call_next):
        for key, value in headers.items():
            response.set(key, value)
        await call_next()

    return security_headers_middleware


def cors(allowed_origins: Iterable[str]):
    """
    Reflect allowed origins; requests without an Origin header pass through.

    Preflight (OPTIONS) requests are answered with 204.
    """
    patterns = [re.compile(p) for p in allowed_origins]

    async def cors_middleware(request: SyntheticRequest, response: ResponseAdapter, call_next):
        origin = request.get("origin")
        if origin:
            if not any(p.search(origin) for p in patterns):
                logger.warning("Rejected CORS origin", extra={"origin": origin})
                await call_next(CorsRejectedError(origin))
                return
            response.set("Access-Control-Allow-Origin", origin)
            response.set("Vary", "Origin")

        if request.method == "OPTIONS":
            response.set("Access-Control-Allow-Methods", CORS_ALLOW_METHODS)
            requested = request.get("access-control-request-headers")
            if requested:
                response.set("Access-Control-Allow-Headers", requested)
            response.set("Content-Length", "0")
            response.status(204).end()
            return

        await call_next()

    return cors_middleware


def _media_type(request: SyntheticRequest) -> str:
    return (request.get("content-type") or "").split(";", 1)[0].strip().lower()


def _raw_text(body: Any) -> Optional[str]:
    if isinstance(body, bytes):
        return body.decode("utf-8")
    if isinstance(body, str):
        return body
    return None


def json_body():
    """Parse ``application/json`` bodies into ``request.state.body``."""

    async def json_body_middleware(request: SyntheticRequest, response, call_next):
        if _media_type(request) == "application/json":
            try:
                text = _raw_text(request.body)
                if text is None:
                    # Already parsed by the platform.
                    request.state.body = request.body
                else:
                    request.state.body = json.loads(text) if text.strip() else {}
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                await call_next(BodyParseError(f"Invalid JSON body: {e}"))
                return
        elif not hasattr(request.state, "body"):
            request.state.body = {}
        await call_next()

    return json_body_middleware


def urlencoded_body():
    """Parse ``application/x-www-form-urlencoded`` bodies into ``request.state.body``."""

    async def urlencoded_body_middleware(request: SyntheticRequest, response, call_next):
        if _media_type(request) == "application/x-www-form-urlencoded":
            try:
                text = _raw_text(request.body) or ""
            except UnicodeDecodeError as e:
                await call_next(BodyParseError(f"Invalid form body: {e}"))
                return
            request.state.body = dict(parse_qsl(text, keep_blank_values=True))
        await call_next()

    return urlencoded_body_middleware


class RateLimiter:
    """
    Fixed-window request budget per client IP.

    Windows live in a cachetools TTLCache, so a window disappears once its
    TTL elapses and the least recently used clients are evicted first. This
    middleware is designed for a single-threaded event loop.
    """

    def __init__(
        self,
        window_seconds: float = 60.0,
        max_requests: int = 100,
        max_clients: int = 10000,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._timer = timer
        # value: [hit_count, window_reset_at]
        self._windows: TTLCache = TTLCache(maxsize=max_clients, ttl=window_seconds, timer=timer)

    def hit(self, key: str):
        """Count one request for ``key``; returns (count, seconds_until_reset)."""
        now = self._timer()
        window = self._windows.get(key)
        if window is None:
            window = [0, now + self.window_seconds]
            self._windows[key] = window
        window[0] += 1
        return window[0], max(0, math.ceil(window[1] - now))

    async def __call__(self, request: SyntheticRequest, response: ResponseAdapter, call_next):
        count, reset = self.hit(request.ip)
        response.set("X-RateLimit-Limit", self.max_requests)
        response.set("X-RateLimit-Remaining", max(0, self.max_requests - count))
        response.set("X-RateLimit-Reset", reset)

        if count > self.max_requests:
            logger.warning("Rate limit exceeded", extra={"client_ip": request.ip, "count": count})
            response.set("Retry-After", reset)
            await call_next(RateLimitExceededError(reset))
            return
        await call_next()


def error_handler():
    """Render chain errors as ``{"error": message}`` with the error's status code."""

    async def error_handler_middleware(
        err, request: SyntheticRequest, response: ResponseAdapter, call_next
    ):
        status_code = getattr(err, "status_code", 500)
        if status_code >= 500:
            logger.error(
                f"Unhandled chain error: {err}",
                exc_info=err,
                extra={"path": request.path, "method": request.method},
            )
        response.status(status_code).json({"error": str(err)})

    return error_handler_middleware


def serve_file(file_path: str):
    """Route handler that sends a fixed file."""

    async def serve_file_handler(request, response: ResponseAdapter, call_next):
        response.send_file(file_path)

    return serve_file_handler
