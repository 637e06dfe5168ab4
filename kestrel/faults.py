"""
Kestrel Faults - Structured error taxonomy.

Every error the framework raises on purpose is a ``Fault``: an exception
carrying a stable machine-readable code, a human-readable message and the
domain it belongs to.

Taxonomy:
- Configuration faults (CONFIG): bad modules, bad providers, import cycles.
  Raised at registration time and meant to abort startup.
- Validation faults (FLOW): structured failures produced by pipes. The
  dispatch handler answers them with 400 and the error list.
- HTTP exceptions (FLOW): application errors carrying an explicit status,
  converted to responses by exception filters.
"""

from __future__ import annotations

from typing import Any, Optional


class FaultDomain:
    """
    Fault domain (taxonomy).

    Identifies the functional area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


# Standard Domains
FaultDomain.CONFIG = FaultDomain("config", "Configuration errors")
FaultDomain.DI = FaultDomain("di", "Dependency injection errors")
FaultDomain.ROUTING = FaultDomain("routing", "Route matching errors")
FaultDomain.FLOW = FaultDomain("flow", "Handler execution errors")
FaultDomain.SECURITY = FaultDomain("security", "Security and auth")
FaultDomain.IO = FaultDomain("io", "I/O operations")


class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    Attributes:
        code: Stable machine-readable identifier (e.g., "INVALID_MODULE")
        message: Human-readable summary
        domain: Fault domain
        public: Whether the message is safe to expose to a client
        metadata: Additional context data

    Subclasses may declare ``code``, ``message`` and ``domain`` as class
    attributes instead of passing them to the constructor.
    """

    code: Optional[str] = None
    message: Optional[str] = None
    domain: Optional[FaultDomain] = None

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        public: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.code = code if code is not None else type(self).code
        self.message = message if message is not None else type(self).message
        self.domain = domain if domain is not None else type(self).domain

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)
        self.public = public
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, domain={self.domain.name})"


# ============================================================================
# Configuration faults
# ============================================================================

class ConfigurationError(Fault):
    """Invalid application wiring detected at registration time."""

    domain = FaultDomain.CONFIG

    def __init__(self, message: str, *, code: str = "CONFIGURATION_ERROR", **metadata):
        super().__init__(code=code, message=message, metadata=metadata)


class InvalidModuleError(ConfigurationError):
    """A class passed as a module carries no module metadata."""

    def __init__(self, module: Any):
        name = getattr(module, "__qualname__", repr(module))
        super().__init__(f"Invalid module: {name}", code="INVALID_MODULE", module=name)
        self.module = module


class InvalidProviderError(ConfigurationError):
    """A provider entry has none (or more than one) of the supported shapes."""

    def __init__(self, provider: Any, reason: str = "Invalid provider configuration"):
        super().__init__(f"{reason}: {provider!r}", code="INVALID_PROVIDER")
        self.provider = provider


class ModuleCycleError(ConfigurationError):
    """Module imports form a cycle."""

    def __init__(self, cycle: list[str]):
        super().__init__(
            "Module import cycle: " + " -> ".join(cycle),
            code="MODULE_CYCLE",
            cycle=cycle,
        )
        self.cycle = cycle


# ============================================================================
# Request-time faults
# ============================================================================

class ValidationFault(Fault):
    """
    Structured validation failure raised by a pipe.

    Answered directly with ``400 {"errors": [...]}``; never reaches the
    exception-filter chain.
    """

    domain = FaultDomain.FLOW

    def __init__(self, errors: list[Any], message: str = "Validation failed"):
        super().__init__(code="VALIDATION_FAILED", message=message, public=True)
        self.errors = list(errors)


class HttpException(Fault):
    """
    Application error carrying an explicit HTTP status.

    Example:
        raise HttpException(404, "not found")
    """

    domain = FaultDomain.FLOW

    def __init__(self, status: int, message: str, *, code: Optional[str] = None, **metadata):
        super().__init__(
            code=code or f"HTTP_{status}",
            message=message,
            public=True,
            metadata=metadata,
        )
        self.status = status


class BadRequestException(HttpException):
    def __init__(self, message: str = "Bad Request", **metadata):
        super().__init__(400, message, **metadata)


class UnauthorizedException(HttpException):
    def __init__(self, message: str = "Unauthorized", **metadata):
        super().__init__(401, message, **metadata)


class ForbiddenException(HttpException):
    def __init__(self, message: str = "Forbidden", **metadata):
        super().__init__(403, message, **metadata)


class NotFoundException(HttpException):
    def __init__(self, message: str = "Not Found", **metadata):
        super().__init__(404, message, **metadata)


class PayloadTooLargeException(HttpException):
    def __init__(self, message: str = "Payload Too Large", **metadata):
        super().__init__(413, message, **metadata)


class ResponseAlreadySentError(Fault):
    """A second write was attempted on a response that was already sent."""

    code = "RESPONSE_ALREADY_SENT"
    message = "Cannot write a response that has already been sent"
    domain = FaultDomain.IO
