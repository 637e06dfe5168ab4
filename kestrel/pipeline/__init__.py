"""
Kestrel Request Pipeline

Stages composed per route by the route binder, in this order:

    middleware -> interceptors -> GuardStage -> ExceptionFilterStage -> RouteDispatcher

plus ``request_scope``, installed once as global middleware, which gives
every request its own child container.
"""

from .base import as_handler, maybe_await, resolve_component
from .dispatch import RouteDispatcher
from .filters import ExceptionFilter, ExceptionFilterStage, HttpExceptionFilter
from .guards import CanActivate, GuardStage
from .scope import request_scope

__all__ = [
    "request_scope",
    "GuardStage",
    "CanActivate",
    "ExceptionFilterStage",
    "ExceptionFilter",
    "HttpExceptionFilter",
    "RouteDispatcher",
    "as_handler",
    "resolve_component",
    "maybe_await",
]
