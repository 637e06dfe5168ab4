"""
Route Binder - turns controller metadata into registered server routes.

Every route gets a handler list in a fixed order:

1. class middleware
2. method middleware
3. class interceptors
4. method interceptors
5. guard stage (class guards, then method guards)
6. exception-filter stage (class filters, then method filters)
7. terminal dispatch

The binder captures the concrete handler function at bind time; nothing is
looked up by name per request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

from .http import HttpServer, normalize_path
from .metadata import MetadataKind, MetadataRegistry, RouteDescriptor
from .pipeline import ExceptionFilterStage, GuardStage, RouteDispatcher, as_handler


logger = logging.getLogger("kestrel.binder")


@dataclass(frozen=True)
class BoundRoute:
    """A route as registered on the server."""

    verb: str
    path: str
    controller: type
    handler_name: str
    handlers: Tuple[Any, ...]
    guards: Tuple[Any, ...] = ()
    filters: Tuple[Any, ...] = ()

    @property
    def handler(self) -> Any:
        return self.handlers[-1]

    def __str__(self) -> str:
        return f"{self.verb.upper()} {self.path} -> {self.controller.__name__}.{self.handler_name}"


def join_path(prefix: str, path: str) -> str:
    return normalize_path(f"{prefix or ''}/{path or ''}")


class RouteBinder:
    """
    Reads controller metadata and registers its routes on a server.

    Example:
        binder = RouteBinder(registry, server)
        routes = binder.bind(UserController)
    """

    def __init__(self, registry: MetadataRegistry, server: HttpServer):
        self.registry = registry
        self.server = server

    def routes_of(self, controller: type) -> List[RouteDescriptor]:
        """
        Route descriptors of the controller's own methods, in definition order.

        A method is a route only when both a verb and a path are recorded;
        an empty path counts.
        """
        routes = []
        for name, member in vars(controller).items():
            if name == "__init__":
                continue
            func = getattr(member, "__func__", member)
            if not callable(func):
                continue
            verb = self.registry.read(controller, name, MetadataKind.ROUTE_VERB)
            path = self.registry.read(controller, name, MetadataKind.ROUTE_PATH)
            if not verb or path is None:
                continue
            routes.append(RouteDescriptor(verb=verb, path=path, handler_name=name, handler=func))
        return routes

    def bind(self, controller: type) -> List[BoundRoute]:
        """Register every route of ``controller`` and return them."""
        registry = self.registry
        prefix = registry.read(controller, None, MetadataKind.PREFIX, "")

        bound = []
        for route in self.routes_of(controller):
            name = route.handler_name
            middleware = registry.read_all(controller, name, MetadataKind.MIDDLEWARE)
            interceptors = registry.read_all(controller, name, MetadataKind.INTERCEPTORS)
            guards = registry.read_all(controller, name, MetadataKind.GUARDS)
            filters = registry.read_all(controller, name, MetadataKind.FILTERS)
            pipes = registry.read_all(controller, name, MetadataKind.PIPES)
            params = registry.read(controller, name, MetadataKind.PARAMS)

            handlers = self.compose(
                middleware,
                interceptors,
                guards,
                filters,
                RouteDispatcher(controller, route, params, pipes),
            )
            path = join_path(prefix, route.path)
            entry = BoundRoute(
                verb=route.verb,
                path=path,
                controller=controller,
                handler_name=name,
                handlers=handlers,
                guards=tuple(guards),
                filters=tuple(filters),
            )
            self.server.add_route(route.verb, path, handlers, endpoint=entry)
            bound.append(entry)
            logger.debug(f"Bound {entry}")

        logger.info(f"Mapped {controller.__name__} ({len(bound)} routes)")
        return bound

    @staticmethod
    def compose(
        middleware: Sequence[Any],
        interceptors: Sequence[Any],
        guards: Sequence[Any],
        filters: Sequence[Any],
        dispatcher: RouteDispatcher,
    ) -> Tuple[Any, ...]:
        return (
            *(as_handler(m) for m in middleware),
            *(as_handler(i) for i in interceptors),
            GuardStage(guards),
            ExceptionFilterStage(filters),
            dispatcher,
        )
