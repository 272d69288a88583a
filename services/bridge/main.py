"""
Local development server.

Emulates the platform's HTTP trigger: every request is converted into the
platform request shape and passed to the same handler the host runtime
calls in production.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .app import get_application
from .config import config
from .core.exceptions import global_exception_handler, http_exception_handler
from .core.logging_config import setup_logging
from .core.trigger import build_platform_request, channel_for, result_to_response
from .handler import FunctionHandler

setup_logging()
logger = logging.getLogger("bridge.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    app.state.function_handler = FunctionHandler(
        get_application(),
        timeout=config.INVOKE_TIMEOUT,
        convention=config.OUTBOUND_CONVENTION,
    )
    logger.info(
        "Bridge server initialized",
        extra={"convention": config.OUTBOUND_CONVENTION.value, "timeout": config.INVOKE_TIMEOUT},
    )
    yield
    logger.info("Bridge server shutting down.")


app = FastAPI(title="Function Compute Bridge", version="1.0.0", lifespan=lifespan)


@app.middleware("http")
async def access_log_middleware(request: Request, call_next):
    """Structured access logging."""
    start_time = time.perf_counter()
    response = await call_next(request)
    logger.info(
        f"{request.method} {request.url.path} {response.status_code}",
        extra={
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "latency_ms": round((time.perf_counter() - start_time) * 1000, 2),
            "client_ip": request.client.host if request.client else None,
        },
    )
    return response


app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)


@app.api_route(
    "/{path:path}", methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
)
async def trigger_handler(request: Request, path: str) -> Response:
    """Catch-all route: invoke the function handler like the HTTP trigger does."""
    function_handler: FunctionHandler = request.app.state.function_handler
    body = await request.body()
    platform_request = build_platform_request(request, body)
    context = {"requestId": request.headers.get("x-fc-request-id")}

    channel = channel_for(function_handler.convention)
    result = await function_handler(platform_request, channel, context)
    if channel is not None:
        return channel.to_response()
    return result_to_response(result)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.BIND_HOST, port=config.PORT)
