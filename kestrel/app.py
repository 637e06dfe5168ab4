"""
Kestrel application - wires registry, container, resolver, binder and server.

Example:
    registry = MetadataRegistry()
    d = Decorators(registry)
    ...
    app = Kestrel(registry)
    app.register_module(AppModule)
    app.listen(3000)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from .binder import BoundRoute, RouteBinder
from .config import ConfigService
from .di import Container, ProviderDescriptor
from .http import HttpServer, json_body_parser
from .metadata import MetadataRegistry
from .modules import ModuleResolver
from .pipeline import request_scope


class Kestrel:
    """
    ASGI application built from decorated modules.

    Global middleware installed at construction, in order:
    JSON body parsing, then the request scope that gives each request its
    own child container. Middleware added with ``use()`` runs after them.
    """

    def __init__(
        self,
        registry: MetadataRegistry,
        *,
        config: Optional[ConfigService] = None,
        container: Optional[Container] = None,
        server: Optional[HttpServer] = None,
    ):
        self.registry = registry
        self.config = config if config is not None else ConfigService.load()
        self.container = container if container is not None else Container()
        self.server = server if server is not None else HttpServer()
        self.binder = RouteBinder(registry, self.server)
        self.resolver = ModuleResolver(registry, self.container, self.binder)
        self._routes: List[BoundRoute] = []
        self.logger = logging.getLogger("kestrel.app")

        if not self.container.has(ConfigService):
            self.container.register(ProviderDescriptor(ConfigService, use_value=self.config))

        self.server.use(json_body_parser(limit=self.config.body_limit))
        self.server.use(request_scope(self.container))
        # Runs last: shutdown hooks execute in reverse registration order
        self.server.on_shutdown(self.container.shutdown)

    def register_module(self, module: Any) -> List[BoundRoute]:
        """
        Register a module graph and bind its controllers' routes.

        Raises:
            ConfigurationError: Invalid module, provider, or an import cycle
        """
        routes = self.resolver.register_module(module)
        self._routes.extend(routes)
        self.logger.info(f"Registered {getattr(module, '__qualname__', module)}: {len(routes)} routes")
        return routes

    def use(self, middleware: Any) -> "Kestrel":
        """Append global middleware ``async (request, response, next)``."""
        self.server.use(middleware)
        return self

    @property
    def routes(self) -> List[BoundRoute]:
        return list(self._routes)

    def on_startup(self, hook: Callable[[], Any]) -> Callable[[], Any]:
        return self.server.on_startup(hook)

    def on_shutdown(self, hook: Callable[[], Any]) -> Callable[[], Any]:
        return self.server.on_shutdown(hook)

    async def __call__(self, scope: dict, receive: Callable, send: Callable):
        await self.server(scope, receive, send)

    def listen(
        self,
        port: Optional[int] = None,
        host: Optional[str] = None,
        *,
        log_level: Optional[str] = None,
    ) -> None:
        """Serve with uvicorn; unset arguments come from configuration."""
        self.server.listen(
            port if port is not None else self.config.port,
            host if host is not None else self.config.host,
            log_level=log_level or self.config.log_level,
        )

    def __repr__(self) -> str:
        return f"<Kestrel routes={len(self._routes)} container={self.container!r}>"
