"""
Guard stage - authorization gate in front of the route handler.

Guards run in attachment order (class guards first). The first guard that
answers False ends the request with ``403 {"message": "Forbidden"}``; a guard
that raises forwards its error to the exception-filter stage.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Protocol, Sequence, Tuple, Union, runtime_checkable

from ..http import Request, Response
from .base import maybe_await, resolve_component


logger = logging.getLogger("kestrel.pipeline.guards")


@runtime_checkable
class CanActivate(Protocol):
    """Guard interface."""

    def can_activate(self, request: Request, response: Response) -> Union[bool, Awaitable[bool]]:
        ...


class GuardStage:
    """Chain handler evaluating a fixed list of guards."""

    __slots__ = ("guards",)

    def __init__(self, guards: Sequence[Any]):
        self.guards: Tuple[Any, ...] = tuple(guards)

    async def __call__(self, request: Request, response: Response, next) -> None:
        try:
            allowed = await self.evaluate(request, response)
        except Exception as e:
            await next(e)
            return

        if not allowed:
            if not response.headers_sent:
                response.status(403).json({"message": "Forbidden"})
            return

        await next()

    async def evaluate(self, request: Request, response: Response) -> bool:
        for item in self.guards:
            guard = await resolve_component(request, item)
            if not await maybe_await(guard.can_activate(request, response)):
                logger.info(
                    f"Guard {type(guard).__name__} denied {request.method} {request.path}"
                )
                return False
        return True

    def __repr__(self) -> str:
        names = ", ".join(getattr(g, "__name__", type(g).__name__) for g in self.guards)
        return f"GuardStage([{names}])"
