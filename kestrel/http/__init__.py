"""
Kestrel HTTP layer

Minimal ASGI server collaborator: request/response objects, path routing,
continuation-style handler chains and JSON body parsing.
"""

from .body import DEFAULT_BODY_LIMIT, json_body_parser
from .middleware import Continuation, ErrorHandler, HandlerChain, error_handler
from .request import Request
from .response import Response
from .routing import Route, RouteMatch, Router, compile_path, normalize_path
from .server import HttpServer, not_found

__all__ = [
    "HttpServer",
    "Request",
    "Response",
    "Router",
    "Route",
    "RouteMatch",
    "compile_path",
    "normalize_path",
    "HandlerChain",
    "Continuation",
    "ErrorHandler",
    "error_handler",
    "json_body_parser",
    "DEFAULT_BODY_LIMIT",
    "not_found",
]
