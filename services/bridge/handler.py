"""
Platform entrypoint.

The host runtime calls ``handler(request, response, context)`` once per
invocation. Each call translates the platform request, runs the
middleware-chain application against a fresh ResponseAdapter, and commits
the result through the configured outbound convention. No exception escapes
to the host: failures become HTTP-shaped error responses.
"""

import asyncio
import logging
import time
from functools import lru_cache
from typing import Any, Dict, Optional

from services.common.core.request_context import bind_request_id, clear_request_id

from .app import get_application
from .config import OutboundConvention, config
from .core.commit import Committer, ResponseChannel
from .core.coordinator import DEFAULT_TIMEOUT, ChainApplication, CompletionCoordinator
from .core.logging_config import setup_logging
from .core.request_translator import translate_request
from .core.response_adapter import ResponseAdapter
from .models.envelope import InboundEnvelope

logger = logging.getLogger("bridge.handler")


class FunctionHandler:
    """
    Bridges one platform invocation into a middleware-chain application.

    The application is shared and read-only; every invocation builds its own
    request, response adapter and committer.
    """

    def __init__(
        self,
        application: ChainApplication,
        timeout: float = DEFAULT_TIMEOUT,
        convention: OutboundConvention = OutboundConvention.RESULT,
    ):
        self.application = application
        self.timeout = timeout
        self.convention = OutboundConvention(convention)

    async def __call__(
        self,
        request: Any,
        response: Optional[ResponseChannel] = None,
        context: Any = None,
    ) -> Optional[Dict[str, Any]]:
        start_time = time.perf_counter()
        committer = Committer(self.convention, response)
        bind_request_id(context)
        try:
            envelope = InboundEnvelope.from_platform(request)
            logger.info(
                f"Request received: {envelope.method} {envelope.url}",
                extra={
                    "method": envelope.method,
                    "path": envelope.path,
                    "client_ip": envelope.client_ip,
                    "user_agent": envelope.headers.get("user-agent"),
                },
            )

            synthetic_request = translate_request(envelope)
            adapter = ResponseAdapter()
            coordinator = CompletionCoordinator(self.application, timeout=self.timeout)
            record = await coordinator.run(synthetic_request, adapter)

            result = committer.commit(record)
            logger.info(
                f"{envelope.method} {envelope.path} {record.status_code}",
                extra={
                    "status": record.status_code,
                    "latency_ms": round((time.perf_counter() - start_time) * 1000, 2),
                },
            )
            return result
        except Exception as e:
            logger.error(f"Critical error in handler: {e}", exc_info=True)
            return committer.commit_error(e)
        finally:
            clear_request_id()


@lru_cache(maxsize=1)
def get_function_handler() -> FunctionHandler:
    """The process-wide handler, built on the first invocation."""
    setup_logging()
    return FunctionHandler(
        get_application(),
        timeout=config.INVOKE_TIMEOUT,
        convention=config.OUTBOUND_CONVENTION,
    )


async def handler(
    request: Any, response: Optional[ResponseChannel] = None, context: Any = None
) -> Optional[Dict[str, Any]]:
    """Async entrypoint registered with the host runtime."""
    try:
        function_handler = get_function_handler()
    except Exception as e:
        logger.error(f"Failed to initialize application: {e}", exc_info=True)
        return Committer(config.OUTBOUND_CONVENTION, response).commit_error(e)
    return await function_handler(request, response, context)


def sync_handler(
    request: Any, response: Optional[ResponseChannel] = None, context: Any = None
) -> Optional[Dict[str, Any]]:
    """Entrypoint for hosts that call plain functions."""
    return asyncio.run(handler(request, response, context))
