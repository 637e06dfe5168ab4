"""
Handler chain - continuation-passing middleware execution.

Every stage has the signature ``async handler(request, response, next)``.
``await next()`` runs the rest of the chain and returns when it is done, so a
stage can act both before and after its downstream. ``await next(error)``
forwards an error to the next error-capable stage, i.e. an object exposing
``handle_error(error, request, response, next)``; regular stages are skipped
while an error is travelling. An error that no later stage takes is raised
back to the stage that called ``next`` and bubbles up from there.
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence, Tuple, runtime_checkable

from .request import Request
from .response import Response


Next = Callable[..., Awaitable[None]]
Handler = Callable[[Request, Response, Next], Any]
ErrorFunction = Callable[[BaseException, Request, Response, Next], Any]


@runtime_checkable
class ErrorHandler(Protocol):
    """A stage that can take a forwarded error."""

    def handle_error(self, error: BaseException, request: Request, response: Response, next: Next) -> Any:
        ...


class _ErrorOnly:
    """Wraps a four-argument function as an error-only stage."""

    __slots__ = ("func", "__name__")

    def __init__(self, func: ErrorFunction):
        self.func = func
        self.__name__ = getattr(func, "__name__", "error_handler")

    def handle_error(self, error, request, response, next):
        return self.func(error, request, response, next)

    def __repr__(self) -> str:
        return f"<error_handler {self.__name__}>"


def error_handler(func: ErrorFunction) -> ErrorHandler:
    """
    Mark ``func(error, request, response, next)`` as an error-only stage.

    Example:
        @error_handler
        async def log_errors(error, request, response, next):
            logger.error(...)
            await next(error)
    """
    return _ErrorOnly(func)


def _accepts_requests(handler: Any) -> bool:
    return callable(handler) and not isinstance(handler, _ErrorOnly)


def _accepts_errors(handler: Any) -> bool:
    return callable(getattr(handler, "handle_error", None))


async def _call(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class HandlerChain:
    """
    An ordered, immutable list of stages executed for one request.
    """

    __slots__ = ("handlers",)

    def __init__(self, handlers: Sequence[Any]):
        self.handlers: Tuple[Any, ...] = tuple(handlers)

    async def run(self, request: Request, response: Response) -> None:
        await self._step(0, request, response, None)

    async def _step(
        self,
        index: int,
        request: Request,
        response: Response,
        error: Optional[BaseException],
    ) -> None:
        handlers = self.handlers
        while index < len(handlers):
            handler = handlers[index]
            if error is None and _accepts_requests(handler):
                break
            if error is not None and _accepts_errors(handler):
                break
            index += 1
        else:
            if error is not None:
                raise error
            return

        continuation = Continuation(self, index + 1, request, response)
        if error is None:
            await _call(handler(request, response, continuation))
        else:
            await _call(handler.handle_error(error, request, response, continuation))


class Continuation:
    """The ``next`` callable handed to a stage. May be called once."""

    __slots__ = ("_chain", "_index", "_request", "_response", "called")

    def __init__(self, chain: HandlerChain, index: int, request: Request, response: Response):
        self._chain = chain
        self._index = index
        self._request = request
        self._response = response
        self.called = False

    async def __call__(self, error: Optional[BaseException] = None) -> None:
        if self.called:
            raise RuntimeError("next() called multiple times")
        self.called = True
        await self._chain._step(self._index, self._request, self._response, error)
