"""
Kestrel - declarative routing and dependency injection for ASGI.

Controllers, providers and modules are plain classes annotated through a
``Decorators`` object bound to an explicit ``MetadataRegistry``. A
``Kestrel`` application reads that metadata, registers providers in an
async DI container and binds every route to a fixed request pipeline:

    middleware -> interceptors -> guards -> exception filters -> dispatch

Each request runs inside its own child container, released once the
response has been sent.
"""

__version__ = "0.1.0"

from .app import Kestrel
from .binder import BoundRoute, RouteBinder
from .config import ConfigService
from .decorators import (
    Body,
    Decorators,
    Param,
    ParamMarker,
    Query,
    create_param_decorator,
)
from .di import Container, Inject, ProviderDescriptor, Scope
from .faults import (
    BadRequestException,
    ConfigurationError,
    Fault,
    FaultDomain,
    ForbiddenException,
    HttpException,
    InvalidModuleError,
    InvalidProviderError,
    ModuleCycleError,
    NotFoundException,
    UnauthorizedException,
    ValidationFault,
)
from .http import HttpServer, Request, Response, error_handler, json_body_parser
from .metadata import MetadataKind, MetadataRegistry, ParamKind
from .modules import ModuleResolver
from .pipeline import (
    CanActivate,
    ExceptionFilter,
    ExceptionFilterStage,
    GuardStage,
    HttpExceptionFilter,
    RouteDispatcher,
    request_scope,
)
from .pipes import ParseIntPipe, SchemaPipe, run_pipes

__all__ = [
    "__version__",
    # Application
    "Kestrel",
    "ConfigService",
    # Declarations
    "MetadataRegistry",
    "MetadataKind",
    "ParamKind",
    "Decorators",
    "ParamMarker",
    "Param",
    "Body",
    "Query",
    "Inject",
    "create_param_decorator",
    # DI
    "Container",
    "ProviderDescriptor",
    "Scope",
    # Wiring
    "ModuleResolver",
    "RouteBinder",
    "BoundRoute",
    # Pipeline
    "request_scope",
    "GuardStage",
    "CanActivate",
    "ExceptionFilterStage",
    "ExceptionFilter",
    "HttpExceptionFilter",
    "RouteDispatcher",
    # Pipes
    "SchemaPipe",
    "ParseIntPipe",
    "run_pipes",
    # HTTP
    "HttpServer",
    "Request",
    "Response",
    "error_handler",
    "json_body_parser",
    # Faults
    "Fault",
    "FaultDomain",
    "ConfigurationError",
    "InvalidModuleError",
    "InvalidProviderError",
    "ModuleCycleError",
    "ValidationFault",
    "HttpException",
    "BadRequestException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
]
