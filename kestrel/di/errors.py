"""
DI-specific error types with diagnostics.

All of them indicate a programming or configuration defect; none is meant
to be recovered from at request time.
"""

from typing import Any, List, Optional, Sequence

from ..faults import Fault, FaultDomain


def token_name(token: Any) -> str:
    """Readable name for a token (class, string or other hashable)."""
    qualname = getattr(token, "__qualname__", None)
    if isinstance(qualname, str):
        return qualname
    return repr(token)


class DIError(Fault):
    """Base exception for DI errors."""

    domain = FaultDomain.DI

    def __init__(self, message: str, *, code: str = "DI_ERROR", **metadata):
        super().__init__(code=code, message=message, metadata=metadata)


class ResolutionError(DIError):
    """No provider is bound for the requested token."""

    def __init__(
        self,
        token: Any,
        requested_by: Sequence[Any] = (),
        candidates: Optional[List[str]] = None,
    ):
        self.token = token
        self.requested_by = list(requested_by)
        self.candidates = candidates or []

        msg = f"No provider found for token={token_name(token)}"
        if self.requested_by:
            chain = " -> ".join(token_name(t) for t in self.requested_by)
            msg += f"\nRequested by: {chain}"
        if self.candidates:
            msg += "\n\nSimilar tokens:"
            for candidate in self.candidates:
                msg += f"\n  - {candidate}"
        msg += "\n\nSuggested fixes:"
        msg += f"\n  - Add {token_name(token)} to a module's providers"
        msg += "\n  - Import the module that provides it"

        super().__init__(msg, code="PROVIDER_NOT_FOUND", token=token_name(token))


class DependencyCycleError(DIError):
    """Circular dependency detected while resolving."""

    def __init__(self, cycle: Sequence[Any]):
        self.cycle = list(cycle)
        msg = "Detected dependency cycle:"
        for i, token in enumerate(self.cycle):
            arrow = " -> " if i < len(self.cycle) - 1 else ""
            msg += f"\n  {token_name(token)}{arrow}"
        super().__init__(msg, code="DEPENDENCY_CYCLE")


class ScopeViolationError(DIError):
    """A request-scoped provider was resolved outside of a request scope."""

    def __init__(self, token: Any, requested_by: Sequence[Any] = ()):
        self.token = token
        self.requested_by = list(requested_by)
        msg = (
            f"Scope violation: request-scoped provider '{token_name(token)}' "
            f"resolved from the root container."
        )
        if self.requested_by:
            chain = " -> ".join(token_name(t) for t in self.requested_by)
            msg += f"\nRequested by: {chain}"
        msg += (
            "\n\nSuggested fixes:"
            "\n  - Resolve it through the request container (request.container)"
            "\n  - Do not inject request-scoped providers into singletons"
        )
        super().__init__(msg, code="SCOPE_VIOLATION", token=token_name(token))


class DuplicateBindingError(DIError):
    """A token is already bound to a different provider."""

    def __init__(self, token: Any):
        self.token = token
        super().__init__(
            f"Provider for {token_name(token)} already registered",
            code="DUPLICATE_BINDING",
            token=token_name(token),
        )
