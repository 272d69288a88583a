"""
Middleware-chain application.

An ordered stack of middleware and routes invoked as
``app(request, response, done)``. Each layer receives ``next``; awaiting
``next()`` continues down the stack and ``next(err)`` switches to the error
handlers. When the stack is exhausted ``done`` (the completion callback) is
called, with the pending error if there is one.
"""

import inspect
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Pattern, Union

from ..core.request_translator import SyntheticRequest
from ..core.response_adapter import ResponseAdapter

logger = logging.getLogger("bridge.chain")

NextFunction = Callable[..., Awaitable[None]]
Middleware = Callable[[SyntheticRequest, ResponseAdapter, NextFunction], Optional[Awaitable[Any]]]
ErrorMiddleware = Callable[
    [BaseException, SyntheticRequest, ResponseAdapter, NextFunction], Optional[Awaitable[Any]]
]

_PARAM_RE = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def _compile_route(path: str) -> Pattern[str]:
    """Compile ``/items/:id`` style paths into a full-match regex."""
    pattern = _PARAM_RE.sub(r"(?P<\1>[^/]+)", re.escape(path).replace(r"\:", ":"))
    return re.compile(f"^{pattern}/?$")


@dataclass
class Layer:
    handler: Callable[..., Any]
    path: Optional[str] = None
    method: Optional[str] = None
    handles_errors: bool = False
    pattern: Optional[Pattern[str]] = field(default=None, repr=False)

    @property
    def is_route(self) -> bool:
        return self.pattern is not None

    def match(self, request: SyntheticRequest) -> Optional[Dict[str, str]]:
        """Return path params when the layer applies to ``request``, else None."""
        if self.method is not None:
            allowed = {self.method, "HEAD"} if self.method == "GET" else {self.method}
            if request.method not in allowed:
                return None
        if self.pattern is not None:
            found = self.pattern.match(request.path)
            return found.groupdict() if found else None
        if self.path is None or self.path == "/":
            return {}
        prefix = self.path.rstrip("/")
        if request.path == prefix or request.path.startswith(prefix + "/"):
            return {}
        return None


class Application:
    """
    Composable middleware stack.

    Built once per process and read-only afterwards; ``__call__`` keeps all
    per-invocation state in locals.
    """

    def __init__(self):
        self._stack: List[Layer] = []

    def use(self, path_or_handler: Union[str, Middleware], handler: Optional[Middleware] = None):
        """Mount middleware for every path, or for a path prefix."""
        if isinstance(path_or_handler, str):
            if handler is None:
                raise TypeError("use(path, handler) requires a handler")
            self._stack.append(Layer(handler=handler, path=path_or_handler))
        else:
            self._stack.append(Layer(handler=path_or_handler))
        return self

    def use_error(self, handler: ErrorMiddleware):
        """Mount an error handler called as ``handler(err, request, response, next)``."""
        self._stack.append(Layer(handler=handler, handles_errors=True))
        return self

    def route(self, method: str, path: str, handler: Middleware):
        self._stack.append(
            Layer(handler=handler, path=path, method=method.upper(), pattern=_compile_route(path))
        )
        return self

    def get(self, path: str, handler: Middleware):
        return self.route("GET", path, handler)

    def post(self, path: str, handler: Middleware):
        return self.route("POST", path, handler)

    def put(self, path: str, handler: Middleware):
        return self.route("PUT", path, handler)

    def delete(self, path: str, handler: Middleware):
        return self.route("DELETE", path, handler)

    def routes(self) -> List[Dict[str, str]]:
        """Registered routes, for diagnostics."""
        return [
            {"path": layer.path, "methods": layer.method}
            for layer in self._stack
            if layer.is_route
        ]

    async def __call__(
        self,
        request: SyntheticRequest,
        response: ResponseAdapter,
        done: Callable[..., None],
    ) -> None:
        stack = list(self._stack)
        index = 0

        async def next_(err: Optional[BaseException] = None) -> None:
            nonlocal index
            while index < len(stack):
                layer = stack[index]
                index += 1
                if layer.handles_errors != (err is not None):
                    continue
                params = layer.match(request)
                if params is None:
                    continue
                if layer.is_route:
                    request.params = params
                try:
                    if err is not None:
                        outcome = layer.handler(err, request, response, next_)
                    else:
                        outcome = layer.handler(request, response, next_)
                    if inspect.isawaitable(outcome):
                        await outcome
                except Exception as exc:
                    logger.debug(
                        "Layer raised, switching to error handlers",
                        extra={"layer": getattr(layer.handler, "__name__", repr(layer.handler))},
                    )
                    await next_(exc)
                return

            if err is not None:
                done(err)
            else:
                done()

        await next_()
