"""
Custom exception classes.

Represent errors raised while bridging a platform invocation into the
middleware chain.
"""

import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class BridgeError(Exception):
    """Base exception class for the bridge."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


class InvocationTimeoutError(BridgeError):
    """Raised when the chain neither finishes nor responds within the ceiling."""

    status_code = status.HTTP_504_GATEWAY_TIMEOUT

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__("Request timed out")


class ChainExecutionError(BridgeError):
    """Wraps an error reported by the middleware chain."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(str(cause))


class CorsRejectedError(BridgeError):
    """Raised when a request origin is not in the allow list."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, origin: str):
        self.origin = origin
        super().__init__("Not allowed by CORS")


class BodyParseError(BridgeError):
    """Raised when a request body cannot be parsed."""

    status_code = status.HTTP_400_BAD_REQUEST


class RateLimitExceededError(BridgeError):
    """Raised when a client exceeds its request budget."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__("Too many requests, please try again later.")


# ===========================================
# Exception Handlers (local development server)
# ===========================================


async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler for unhandled exceptions.
    """
    logger.error(
        f"Global exception handler caught: {exc}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc)},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handler for HTTPException.
    """
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
