"""
Users Module - Guards and interceptors
"""

import logging
import time

from kestrel import Request, Response

from .registry import d


logger = logging.getLogger("examples.users")


@d.injectable()
class AuthGuard:
    """Lets through requests carrying a Bearer token."""

    def can_activate(self, request: Request, response: Response) -> bool:
        header = request.header("authorization")
        return bool(header) and header.startswith("Bearer ")


async def timing_interceptor(request: Request, response: Response, next) -> None:
    started = time.perf_counter()
    await next()
    elapsed = (time.perf_counter() - started) * 1000
    response.headers.setdefault("x-response-time", f"{elapsed:.2f}ms")
    logger.debug(f"{request.method} {request.path} -> {response.status_code} in {elapsed:.2f}ms")
