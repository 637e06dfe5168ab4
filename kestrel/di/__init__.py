"""
Kestrel Dependency Injection

Async-first container with three lifetimes:
- singleton: one instance per root container
- transient: new instance every resolve
- request: one instance per request child scope, released when the
  response has been sent
"""

from .core import Container
from .errors import (
    DIError,
    DependencyCycleError,
    DuplicateBindingError,
    ResolutionError,
    ScopeViolationError,
)
from .providers import (
    ClassProvider,
    FactoryProvider,
    Inject,
    ProviderDescriptor,
    ValueProvider,
    inspect_injections,
)
from .scopes import Scope

__all__ = [
    "Container",
    "Scope",
    "ProviderDescriptor",
    "ClassProvider",
    "FactoryProvider",
    "ValueProvider",
    "Inject",
    "inspect_injections",
    "DIError",
    "ResolutionError",
    "DependencyCycleError",
    "DuplicateBindingError",
    "ScopeViolationError",
]
