"""
Middleware-chain application package.
"""

from .application import Application
from .middleware import (
    RateLimiter,
    cors,
    error_handler,
    json_body,
    security_headers,
    serve_file,
    urlencoded_body,
)

__all__ = [
    "Application",
    "RateLimiter",
    "cors",
    "error_handler",
    "json_body",
    "security_headers",
    "serve_file",
    "urlencoded_body",
]
