"""
Request-scope middleware.

Opens a child container for every request and releases it once the
response has been sent.
"""

from __future__ import annotations

import logging

from ..di import Container


logger = logging.getLogger("kestrel.pipeline.scope")


def request_scope(container: Container):
    """
    Middleware binding ``request.container`` to a fresh child scope.

    Disposal is registered as a response finish callback, so it runs once on
    every exit path: normal responses, filtered errors and the default error
    path alike.
    """

    async def open_request_scope(request, response, next) -> None:
        child = container.create_child_scope()
        request.container = child

        async def release() -> None:
            await container.dispose_child_scope(child)
            logger.debug(f"Released request scope for {request.method} {request.path}")

        response.on_finish(release)
        await next()

    return open_request_scope
