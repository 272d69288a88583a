"""
Completion & timeout coordination.

Runs the middleware chain for one invocation and resolves exactly once, on
whichever comes first:

  - a terminal write on the ResponseAdapter
  - the chain's completion callback (with or without an error)
  - the invocation timeout
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from .exceptions import ChainExecutionError, InvocationTimeoutError
from .request_translator import SyntheticRequest
from .response_adapter import JSON_CONTENT_TYPE, ResponseAdapter, ResponseRecord

logger = logging.getLogger("bridge.coordinator")

DEFAULT_TIMEOUT = 10.0

DoneCallback = Callable[..., None]
ChainApplication = Callable[
    [SyntheticRequest, ResponseAdapter, DoneCallback], Union[None, Awaitable[Any]]
]

# Resolution outcomes.
TERMINAL = "terminal"
COMPLETED = "completed"
FAILED = "failed"
TIMED_OUT = "timed_out"


def force_error(record: ResponseRecord, status_code: int, message: str) -> None:
    """Overwrite the record with a structured JSON error."""
    record.status_code = status_code
    record.set_header("Content-Type", JSON_CONTENT_TYPE)
    record.body = json.dumps({"error": message})


class CompletionLatch:
    """
    First-wins latch over an asyncio.Future.

    The first trigger sets the outcome; later triggers are ignored.
    """

    def __init__(self):
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()
        self.error: Optional[BaseException] = None

    @property
    def resolved(self) -> bool:
        return self._future.done()

    def resolve(self, outcome: str, error: Optional[BaseException] = None) -> bool:
        if self._future.done():
            return False
        self.error = error
        self._future.set_result(outcome)
        return True

    def close(self) -> None:
        """Release the latch once nobody waits on it."""
        if not self._future.done():
            self._future.cancel()

    async def wait(self, timeout: float) -> str:
        try:
            return await asyncio.wait_for(asyncio.shield(self._future), timeout)
        except asyncio.TimeoutError:
            self.resolve(TIMED_OUT)
            return self._future.result()


class CompletionCoordinator:
    """
    Invokes a chain application with (request, response, done) and unifies
    its completion signals into a single resolution.
    """

    def __init__(self, application: ChainApplication, timeout: float = DEFAULT_TIMEOUT):
        self.application = application
        self.timeout = timeout

    async def run(self, request: SyntheticRequest, response: ResponseAdapter) -> ResponseRecord:
        latch = CompletionLatch()

        def done(err: Optional[BaseException] = None) -> None:
            if err is not None:
                latch.resolve(FAILED, err)
            else:
                latch.resolve(COMPLETED)

        response.on_terminal(lambda: latch.resolve(TERMINAL))

        task: Optional[asyncio.Future] = None
        try:
            outcome = self.application(request, response, done)
            if inspect.isawaitable(outcome):
                task = asyncio.ensure_future(outcome)
                task.add_done_callback(lambda t: self._on_chain_finished(t, latch))
        except Exception as e:
            done(e)

        try:
            result = await latch.wait(self.timeout)
        finally:
            if task is not None and not task.done():
                await self._cancel(task)
            latch.close()

        return self._finalize(result, latch, response.record)

    @staticmethod
    async def _cancel(task: asyncio.Future) -> None:
        """Stop a chain still running after resolution so it cannot leak."""
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.debug("Chain raised while being cancelled", exc_info=True)

    @staticmethod
    def _on_chain_finished(task: asyncio.Future, latch: CompletionLatch) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            latch.resolve(FAILED, error)

    def _finalize(self, outcome: str, latch: CompletionLatch, record: ResponseRecord) -> ResponseRecord:
        if outcome == TIMED_OUT:
            error = InvocationTimeoutError(self.timeout)
            logger.warning(
                f"Chain invocation timed out after {self.timeout}s",
                extra={"timeout": self.timeout},
            )
            force_error(record, error.status_code, str(error))
        elif outcome == FAILED:
            error = ChainExecutionError(latch.error)
            logger.error(
                f"Middleware chain error: {error}",
                exc_info=latch.error,
                extra={"error_type": type(latch.error).__name__},
            )
            force_error(record, error.status_code, str(error))
        elif outcome == COMPLETED and not record.terminal:
            logger.info("Chain completed without sending a response")
        return record
