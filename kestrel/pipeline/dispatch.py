"""
Terminal dispatch handler - invokes the bound controller method.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Sequence, Tuple

from ..faults import ConfigurationError, ValidationFault
from ..http import Request, Response
from ..metadata import ParamDescriptor, ParamKind, RouteDescriptor
from ..pipes import run_pipes
from .base import maybe_await


logger = logging.getLogger("kestrel.pipeline.dispatch")


class RouteDispatcher:
    """
    Last handler of a route chain.

    Resolves the controller from the request container, extracts the
    handler arguments in ascending parameter index, runs per-parameter
    pipes, calls the handler, passes the result through the route pipes and
    sends it unless the handler already wrote the response.

    A ``ValidationFault`` is answered here with ``400 {"errors": [...]}``;
    every other error is forwarded with ``next(error)``.
    """

    __slots__ = ("controller", "route", "params", "pipes")

    def __init__(
        self,
        controller: type,
        route: RouteDescriptor,
        params: Sequence[ParamDescriptor] = (),
        pipes: Sequence[Callable[[Any], Any]] = (),
    ):
        self.controller = controller
        self.route = route
        self.params: Tuple[ParamDescriptor, ...] = tuple(sorted(params, key=lambda p: p.index))
        self.pipes = tuple(pipes)

    async def __call__(self, request: Request, response: Response, next) -> None:
        try:
            instance = await self.resolve_controller(request)
            args = await self.extract_arguments(request, response, next)
            result = await maybe_await(self.route.handler(instance, *args))
            result = await run_pipes(result, self.pipes)
            if not response.headers_sent:
                response.send(result)
        except ValidationFault as e:
            logger.debug(f"Validation failed on {request.method} {request.path}: {e.errors}")
            if not response.headers_sent:
                response.status(400).json({"errors": e.errors})
        except Exception as e:
            await next(e)

    async def resolve_controller(self, request: Request) -> Any:
        if request.container is None:
            raise ConfigurationError(
                f"Cannot resolve {self.controller.__qualname__}: request has no container",
                code="MISSING_REQUEST_SCOPE",
            )
        return await request.container.resolve(self.controller)

    async def extract_arguments(self, request: Request, response: Response, next) -> List[Any]:
        args = []
        for param in self.params:
            value = await self.extract(param, request, response, next)
            if param.pipes:
                value = await run_pipes(value, param.pipes)
            args.append(value)
        return args

    @staticmethod
    async def extract(param: ParamDescriptor, request: Request, response: Response, next) -> Any:
        kind = param.kind
        if kind is ParamKind.PATH:
            if param.key is None:
                return dict(request.params)
            return request.params.get(param.key)
        if kind is ParamKind.BODY:
            body = request.body
            if param.key is None:
                return body
            return body.get(param.key) if isinstance(body, dict) else None
        if kind is ParamKind.QUERY:
            if param.key is None:
                return dict(request.query)
            return request.query.get(param.key)
        if kind is ParamKind.CUSTOM and param.factory is not None:
            return await maybe_await(param.factory(request, response, next, param.key))
        return None

    def __repr__(self) -> str:
        return f"RouteDispatcher({self.controller.__name__}.{self.route.handler_name})"
