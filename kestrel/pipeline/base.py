"""
Shared helpers for pipeline stages.
"""

from __future__ import annotations

import inspect
from typing import Any

from ..faults import ConfigurationError
from ..http import Request


async def maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


async def resolve_component(request: Request, component: Any) -> Any:
    """
    Turn an attached guard, filter or interceptor into an instance.

    Classes are resolved from the request container so they get their
    dependencies and honour their scope; anything else is used as-is.

    Raises:
        ConfigurationError: A class was attached but the request has no
            container (the request-scope middleware is not installed)
        ResolutionError: The class is not registered as a provider
    """
    if not isinstance(component, type):
        return component
    container = request.container
    if container is None:
        raise ConfigurationError(
            f"Cannot resolve {component.__qualname__}: request has no container",
            code="MISSING_REQUEST_SCOPE",
        )
    return await container.resolve(component)


def as_handler(component: Any) -> Any:
    """
    Adapt an attached middleware or interceptor to a chain handler.

    Plain callables are handlers already. A class is resolved per request
    and its instance is called as ``instance(request, response, next)``.
    """
    if not isinstance(component, type):
        return component

    async def resolved_handler(request, response, next):
        instance = await resolve_component(request, component)
        await maybe_await(instance(request, response, next))

    resolved_handler.__name__ = component.__name__
    resolved_handler.__qualname__ = component.__qualname__
    return resolved_handler
