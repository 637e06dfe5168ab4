"""
HTTP server - ASGI application hosting the route table and global middleware.

For every request the server builds one handler chain:

    global middleware -> matched route handlers -> not-found handler

and runs it. Anything that escapes the chain goes through the default error
path. The response is transmitted after the chain returns, then its
``on_finish`` callbacks run exactly once, even if transmission fails or
the request task is cancelled.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, List, Sequence

from .middleware import HandlerChain
from .request import Request
from .response import Response
from .routing import Route, Router


Hook = Callable[[], Any]


async def not_found(request: Request, response: Response, next) -> None:
    """Terminal handler: no route answered the request."""
    if not response.headers_sent:
        response.status(404).json({"message": f"Cannot {request.method} {request.path}"})


class HttpServer:
    """
    ASGI application with Express-like registration.

    Example:
        server = HttpServer()
        server.use(json_body_parser())
        server.add_route("GET", "/ping", [ping])
    """

    def __init__(self):
        self.router = Router()
        self.middleware: List[Any] = []
        self._startup_hooks: List[Hook] = []
        self._shutdown_hooks: List[Hook] = []
        self.logger = logging.getLogger("kestrel.http.server")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def use(self, handler: Any) -> "HttpServer":
        """Append a global middleware, run for every request in order."""
        self.middleware.append(handler)
        return self

    def add_route(
        self,
        method: str,
        path: str,
        handlers: Sequence[Any],
        *,
        endpoint: Any = None,
    ) -> Route:
        route = self.router.add(method, path, handlers, endpoint=endpoint)
        self.logger.debug(f"Route registered: {route.method} {route.path} ({len(route.handlers)} handlers)")
        return route

    def on_startup(self, hook: Hook) -> Hook:
        self._startup_hooks.append(hook)
        return hook

    def on_shutdown(self, hook: Hook) -> Hook:
        self._shutdown_hooks.append(hook)
        return hook

    # ------------------------------------------------------------------
    # ASGI entry point
    # ------------------------------------------------------------------

    async def __call__(self, scope: dict, receive: Callable, send: Callable):
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        else:
            self.logger.warning(f"Unsupported ASGI scope type: {scope_type}")

    async def handle_http(self, scope: dict, receive: Callable, send: Callable):
        request = Request(scope, receive)
        response = Response()

        handlers: List[Any] = list(self.middleware)
        match = self.router.match(request.method, request.path)
        if match is not None:
            request.route = match.route
            request.params = dict(match.params)
            handlers.extend(match.route.handlers)
        handlers.append(not_found)

        # finish() also runs when the request task is cancelled mid-chain
        try:
            try:
                await HandlerChain(handlers).run(request, response)
            except Exception as e:
                self.handle_error(e, request, response)
            await response.send_asgi(send)
        finally:
            await response.finish()

    def handle_error(self, error: BaseException, request: Request, response: Response) -> None:
        """
        Default error path.

        The status comes from the error's ``status`` attribute when it is a
        4xx/5xx code, otherwise 500. Server errors never expose their message.
        """
        if response.headers_sent:
            self.logger.error(
                f"Error after response was sent on {request.method} {request.path}: {error}",
                exc_info=error,
            )
            return

        status = getattr(error, "status", None)
        if not isinstance(status, int) or not 400 <= status <= 599:
            status = 500

        message = None
        if hasattr(error, "status"):
            message = getattr(error, "message", None) or str(error) or None
        if status >= 500:
            self.logger.error(
                f"Unhandled error on {request.method} {request.path}: {error}",
                exc_info=error,
            )
        else:
            self.logger.info(f"{request.method} {request.path} -> {status}: {message}")

        response.headers.clear()
        response.status(status).json({
            "statusCode": status,
            "message": message or "Internal Server Error",
        })

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable):
        """Handle ASGI lifespan events."""
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                try:
                    await self.startup()
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:
                    self.logger.error(f"Startup error: {e}", exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    raise

            elif message["type"] == "lifespan.shutdown":
                try:
                    await self.shutdown()
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    self.logger.error(f"Shutdown error: {e}", exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                break

    async def startup(self) -> None:
        for hook in self._startup_hooks:
            await _maybe_await(hook())
        self.logger.debug("Server startup complete")

    async def shutdown(self) -> None:
        """Run shutdown hooks in reverse registration order."""
        for hook in reversed(self._shutdown_hooks):
            await _maybe_await(hook())
        self.logger.debug("Server shutdown complete")

    # ------------------------------------------------------------------
    # Serving
    # ------------------------------------------------------------------

    def listen(self, port: int = 3000, host: str = "127.0.0.1", *, log_level: str = "info") -> None:
        """Serve this application with uvicorn until interrupted."""
        import uvicorn

        logging.basicConfig(
            level=getattr(logging, log_level.upper()),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        )
        self.logger.info(f"Starting uvicorn server on {host}:{port}")
        uvicorn.run(self, host=host, port=port, log_level=log_level.lower())


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result
