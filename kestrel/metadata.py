"""
Metadata Registry

Associates declarative facts (route info, parameter bindings, attachment
lists, injection tokens, scope) with class and method identities.

The registry is a plain key-value store with no behavior of its own.
Decorators write into it at import time; the module resolver and route
binder read from it at registration time. Applications create one registry
and pass it explicitly to ``Decorators`` and ``Kestrel``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Tuple


class MetadataKind(str, Enum):
    """Built-in metadata kinds."""

    MODULE = "module"
    PREFIX = "prefix"
    SCOPE = "scope"
    INJECTIONS = "injections"
    ROUTE_VERB = "route_verb"
    ROUTE_PATH = "route_path"
    PARAMS = "params"
    GUARDS = "guards"
    FILTERS = "filters"
    INTERCEPTORS = "interceptors"
    MIDDLEWARE = "middleware"
    PIPES = "pipes"


# Kinds whose values accumulate across repeated attachment
LIST_KINDS = frozenset((
    MetadataKind.INJECTIONS,
    MetadataKind.PARAMS,
    MetadataKind.GUARDS,
    MetadataKind.FILTERS,
    MetadataKind.INTERCEPTORS,
    MetadataKind.MIDDLEWARE,
    MetadataKind.PIPES,
))


class ParamKind(str, Enum):
    """Where a handler argument is extracted from."""

    PATH = "param"
    BODY = "body"
    QUERY = "query"
    CUSTOM = "custom"


# ============================================================================
# Descriptors
# ============================================================================

@dataclass(frozen=True)
class ParamDescriptor:
    """
    Extraction rule for one handler parameter.

    Attributes:
        index: Position among the handler parameters (``self`` excluded)
        kind: Extraction kind
        key: Path/query key, body field, or data passed to a custom factory
        factory: Custom extractor ``(request, response, next, key) -> value``
        pipes: Pipes applied to the extracted value before the handler runs
    """

    index: int
    kind: ParamKind
    key: Optional[str] = None
    factory: Optional[Callable[..., Any]] = None
    pipes: Tuple[Callable[..., Any], ...] = ()


@dataclass(frozen=True)
class InjectionDescriptor:
    """Binds a constructor parameter to the token resolved for it."""

    index: int
    token: Any
    name: Optional[str] = None
    optional: bool = False


@dataclass(frozen=True)
class RouteDescriptor:
    """
    A verb + path bound to a concrete handler callable.

    The handler is the plain function found on the controller class; it is
    called with the resolved controller instance as its first argument.
    """

    verb: str
    path: str
    handler_name: str
    handler: Callable[..., Any]


@dataclass(frozen=True)
class ModuleDescriptor:
    """Controllers, providers and imported modules declared by a module."""

    controllers: Tuple[Any, ...] = ()
    providers: Tuple[Any, ...] = ()
    imports: Tuple[Any, ...] = ()
    name: str = field(default="", compare=False)


# ============================================================================
# Registry
# ============================================================================

class MetadataRegistry:
    """
    Store of metadata keyed by ``(subject, method_key, kind)``.

    A method can be addressed as ``(cls, "method_name")`` or by its function
    object (``(func, None)``); both forms reach the same slot as long as the
    function is defined directly on the class. Reads never raise: list kinds
    default to an empty list, everything else to ``default``.

    Example:
        registry = MetadataRegistry()
        registry.attach(UserController, None, MetadataKind.PREFIX, "/users")
        registry.attach(UserController, "list", MetadataKind.GUARDS, [AuthGuard])
        registry.read(UserController, "list", MetadataKind.GUARDS)  # [AuthGuard]
    """

    __slots__ = ("_store",)

    def __init__(self):
        self._store: Dict[Hashable, Dict[Hashable, Any]] = {}

    @staticmethod
    def _target(subject: Any, method_key: Optional[str]) -> Hashable:
        if method_key is None:
            return subject
        member = vars(subject).get(method_key) if hasattr(subject, "__dict__") else None
        if member is not None:
            return getattr(member, "__func__", member)
        return (subject, method_key)

    def attach(
        self,
        subject: Any,
        method_key: Optional[str],
        kind: Hashable,
        value: Any,
    ) -> None:
        """
        Store ``value``; list kinds extend the existing list with ``value``.
        """
        slot = self._store.setdefault(self._target(subject, method_key), {})
        if kind in LIST_KINDS:
            items = slot.setdefault(kind, [])
            if isinstance(value, (list, tuple)):
                items.extend(value)
            else:
                items.append(value)
        else:
            slot[kind] = value

    def append(self, subject: Any, method_key: Optional[str], kind: Hashable, item: Any) -> None:
        """Append a single item to a list-valued kind."""
        slot = self._store.setdefault(self._target(subject, method_key), {})
        slot.setdefault(kind, []).append(item)

    def read(
        self,
        subject: Any,
        method_key: Optional[str],
        kind: Hashable,
        default: Any = None,
    ) -> Any:
        slot = self._store.get(self._target(subject, method_key))
        if kind in LIST_KINDS:
            if slot is None or kind not in slot:
                return [] if default is None else default
            return list(slot[kind])
        if slot is None:
            return default
        return slot.get(kind, default)

    def has(self, subject: Any, method_key: Optional[str], kind: Hashable) -> bool:
        slot = self._store.get(self._target(subject, method_key))
        return slot is not None and kind in slot

    def read_all(self, subject: Any, method_key: str, kind: Hashable) -> List[Any]:
        """Class-level list followed by method-level list."""
        return self.read(subject, None, kind) + self.read(subject, method_key, kind)

    def read_nearest(self, subject: Any, method_key: Optional[str], kind: Hashable, default: Any = None) -> Any:
        """Method-level value if set, else the class-level one."""
        if method_key is not None and self.has(subject, method_key, kind):
            return self.read(subject, method_key, kind)
        return self.read(subject, None, kind, default)

    def subjects(self, kind: Hashable) -> Iterable[Hashable]:
        """Every identity that carries ``kind``."""
        return [target for target, slot in self._store.items() if kind in slot]

    def __len__(self) -> int:
        return len(self._store)
