"""
Application assembly.

Builds the middleware-chain application once per process. The order of the
stack matters: security headers and CORS run first, the index page is served
before the rate limiter, and the error handler is mounted last.
"""

import importlib
import logging
from functools import lru_cache
from pathlib import Path
from typing import Callable, Iterable, Optional

from .chain import (
    Application,
    RateLimiter,
    cors,
    error_handler,
    json_body,
    security_headers,
    serve_file,
    urlencoded_body,
)
from .config import BridgeConfig, config

logger = logging.getLogger("bridge.app")

RouteRegistrar = Callable[[Application], None]


def load_registrar(target: str) -> RouteRegistrar:
    """Resolve a ``package.module:callable`` string."""
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Invalid route module target (expected 'module:callable'): {target!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


def create_application(
    settings: BridgeConfig,
    registrars: Optional[Iterable[RouteRegistrar]] = None,
) -> Application:
    """
    Assemble the application from settings.

    Args:
        settings: bridge configuration
        registrars: route registration callables; defaults to ROUTE_MODULES
    """
    app = Application()

    app.use(security_headers())
    app.use(cors(settings.CORS_ALLOWED_ORIGINS))
    app.use(json_body())
    app.use(urlencoded_body())

    # Testing page, served ahead of the rate limiter.
    app.get("/", serve_file(str(Path(settings.STATIC_ROOT) / "index.html")))

    app.use(
        RateLimiter(
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
            max_clients=settings.RATE_LIMIT_MAX_CLIENTS,
        )
    )

    if registrars is None:
        registrars = [load_registrar(target) for target in settings.ROUTE_MODULES]
    for register in registrars:
        register(app)

    app.use_error(error_handler())

    logger.debug("Application routes registered", extra={"routes": app.routes()})
    return app


@lru_cache(maxsize=1)
def get_application() -> Application:
    """The process-wide application, built on first use."""
    return create_application(config)
