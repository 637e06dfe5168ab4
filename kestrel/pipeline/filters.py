"""
Exception-filter stage.

Catches errors raised downstream (dispatch) and errors forwarded from
upstream stages via ``next(error)``. Filters run in attachment order (class
filters first); the chain stops as soon as one of them has written the
response. When none writes, the error continues towards the server's
default error path.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence, Tuple, runtime_checkable

from ..faults import HttpException
from ..http import Request, Response
from .base import maybe_await, resolve_component


logger = logging.getLogger("kestrel.pipeline.filters")


@runtime_checkable
class ExceptionFilter(Protocol):
    """Exception filter interface."""

    def catch(self, exception: BaseException, request: Request, response: Response, next) -> Any:
        ...


class ExceptionFilterStage:
    """Chain handler applying a fixed list of exception filters."""

    __slots__ = ("filters",)

    def __init__(self, filters: Sequence[Any]):
        self.filters: Tuple[Any, ...] = tuple(filters)

    async def __call__(self, request: Request, response: Response, next) -> None:
        try:
            await next()
        except Exception as e:
            if not await self.apply(e, request, response):
                raise

    async def handle_error(self, error: BaseException, request: Request, response: Response, next) -> None:
        if not await self.apply(error, request, response):
            await next(error)

    async def apply(self, error: BaseException, request: Request, response: Response) -> bool:
        """
        Run filters until one writes the response.

        A filter that calls the ``next`` it receives passes the error on:
        the remaining filters are skipped and the error keeps travelling.

        Returns:
            True if the response has been sent
        """
        if response.headers_sent:
            return True

        passed_on = False

        async def pass_on(error: BaseException | None = None) -> None:
            nonlocal passed_on
            passed_on = True

        for item in self.filters:
            exception_filter = await resolve_component(request, item)
            await maybe_await(exception_filter.catch(error, request, response, pass_on))
            if passed_on:
                return response.headers_sent
            if response.headers_sent:
                logger.debug(
                    f"{type(exception_filter).__name__} handled {type(error).__name__} "
                    f"on {request.method} {request.path}"
                )
                return True
        return False

    def __repr__(self) -> str:
        names = ", ".join(getattr(f, "__name__", type(f).__name__) for f in self.filters)
        return f"ExceptionFilterStage([{names}])"


class HttpExceptionFilter:
    """
    Baseline filter.

    ``HttpException`` becomes ``{"statusCode": status, "message": message}``
    with its status; anything else a generic 500.
    """

    def catch(self, exception: BaseException, request: Request, response: Response, next) -> None:
        if isinstance(exception, HttpException):
            response.status(exception.status).json({
                "statusCode": exception.status,
                "message": exception.message,
            })
            return

        logger.error(
            f"Unhandled error on {request.method} {request.path}: {exception}",
            exc_info=exception,
        )
        response.status(500).json({
            "statusCode": 500,
            "message": "Internal server error",
        })
