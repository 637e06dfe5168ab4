"""
Declaration surface - decorators and parameter markers.

Decorators only write facts into a ``MetadataRegistry``; nothing is wired
until the application registers a module. They are methods of a
``Decorators`` object bound to one registry, so applications (and tests)
never share metadata by accident.

Example:
    registry = MetadataRegistry()
    d = Decorators(registry)

    @d.controller("/users")
    @d.use_guards(AuthGuard)
    class UserController:
        def __init__(self, users: UserService):
            self.users = users

        @d.get("/:id")
        async def get_user(self, user_id: Annotated[int, Param("id", ParseIntPipe())]):
            return await self.users.find(user_id)

    @d.module(controllers=[UserController], providers=[UserService, AuthGuard])
    class UserModule:
        pass

Handler parameters are bound with markers inside ``typing.Annotated``
(``Param``, ``Body``, ``Query`` or a marker made by
``create_param_decorator``), or explicitly with ``use_param``.
"""

from __future__ import annotations

import inspect
from typing import Annotated, Any, Callable, Dict, Hashable, List, Optional, Sequence, TypeVar, get_args, get_origin, get_type_hints

from .di.providers import Inject
from .di.scopes import Scope
from .faults import ConfigurationError
from .metadata import (
    InjectionDescriptor,
    MetadataKind,
    MetadataRegistry,
    ModuleDescriptor,
    ParamDescriptor,
    ParamKind,
)


T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])


# ============================================================================
# Parameter markers
# ============================================================================

class ParamMarker:
    """
    Extraction rule attached to a handler parameter via ``Annotated``.

    Turned into a ``ParamDescriptor`` once the parameter index is known.
    """

    __slots__ = ("kind", "key", "pipes", "factory")

    def __init__(
        self,
        kind: ParamKind,
        key: Optional[str] = None,
        pipes: Sequence[Callable[[Any], Any]] = (),
        factory: Optional[Callable[..., Any]] = None,
    ):
        self.kind = kind
        self.key = key
        self.pipes = tuple(pipes)
        self.factory = factory

    def at(self, index: int) -> ParamDescriptor:
        return ParamDescriptor(
            index=index,
            kind=self.kind,
            key=self.key,
            factory=self.factory,
            pipes=self.pipes,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value}, key={self.key!r})"


def Param(key: Optional[str] = None, *pipes: Callable[[Any], Any]) -> ParamMarker:
    """Path parameter ``key`` (all path parameters when omitted)."""
    return ParamMarker(ParamKind.PATH, key, pipes)


def Body(*pipes: Callable[[Any], Any], key: Optional[str] = None) -> ParamMarker:
    """Parsed request body, or one top-level field of it."""
    return ParamMarker(ParamKind.BODY, key, pipes)


def Query(key: Optional[str] = None, *pipes: Callable[[Any], Any]) -> ParamMarker:
    """Query-string value ``key`` (the whole query mapping when omitted)."""
    return ParamMarker(ParamKind.QUERY, key, pipes)


def create_param_decorator(factory: Callable[..., Any]) -> Callable[..., ParamMarker]:
    """
    Build a custom marker from ``factory(request, response, next, data)``.

    Example:
        CurrentUser = create_param_decorator(lambda req, res, next, data: req.state["user"])

        @d.get("/me")
        async def me(self, user: Annotated[dict, CurrentUser()]):
            ...
    """

    def marker(data: Any = None, *pipes: Callable[[Any], Any]) -> ParamMarker:
        return ParamMarker(ParamKind.CUSTOM, data, pipes, factory)

    marker.__name__ = getattr(factory, "__name__", "custom_param")
    return marker


def handler_params(func: Callable[..., Any]) -> List[ParamDescriptor]:
    """
    Collect ``ParamDescriptor`` entries from ``Annotated`` markers.

    Indexes count handler parameters with ``self`` excluded.
    """
    hints = _annotations(func)
    descriptors: List[ParamDescriptor] = []
    index = 0
    for name, param in inspect.signature(func).parameters.items():
        if name in ("self", "cls"):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        annotation = hints.get(name)
        if get_origin(annotation) is Annotated:
            for extra in get_args(annotation)[1:]:
                if isinstance(extra, ParamMarker):
                    descriptors.append(extra.at(index))
                    break
        index += 1
    return descriptors


def _annotations(func: Callable[..., Any]) -> Dict[str, Any]:
    """
    Resolved annotations of a handler.

    Raises:
        ConfigurationError: An annotation names a type that cannot be
            resolved from the handler's module, so its marker would be lost
    """
    try:
        return get_type_hints(func, include_extras=True)
    except Exception as e:
        owner = getattr(func, "__qualname__", repr(func))
        unresolved = [
            name for name, annotation in getattr(func, "__annotations__", {}).items()
            if name != "return" and not _resolvable(func, name, annotation)
        ]
        raise ConfigurationError(
            f"Cannot resolve annotations of handler {owner} "
            f"(parameters: {', '.join(unresolved) or '?'}): {e}",
            code="UNRESOLVED_ANNOTATION",
            handler=owner,
            parameters=unresolved,
        ) from e


def _resolvable(func: Callable[..., Any], name: str, annotation: Any) -> bool:
    def single():
        pass

    single.__annotations__ = {name: annotation}
    try:
        get_type_hints(single, globalns=getattr(func, "__globals__", None), include_extras=True)
    except Exception:
        return False
    return True


# ============================================================================
# Decorators
# ============================================================================

def _unwrap(target: Any) -> Any:
    return getattr(target, "__func__", target)


class Decorators:
    """Decorator factory bound to one ``MetadataRegistry``."""

    def __init__(self, registry: MetadataRegistry):
        self.registry = registry

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    def module(
        self,
        *,
        controllers: Sequence[type] = (),
        providers: Sequence[Any] = (),
        imports: Sequence[Any] = (),
    ) -> Callable[[type], type]:
        """Declare a module: its controllers, providers and imported modules."""

        def decorator(cls: type) -> type:
            descriptor = ModuleDescriptor(
                controllers=tuple(controllers),
                providers=tuple(providers),
                imports=tuple(imports),
                name=cls.__qualname__,
            )
            self.registry.attach(cls, None, MetadataKind.MODULE, descriptor)
            return cls

        return decorator

    def controller(self, prefix: str = "") -> Callable[[type], type]:
        """Declare a controller; every route path is prefixed with ``prefix``."""

        def decorator(cls: type) -> type:
            self.registry.attach(cls, None, MetadataKind.PREFIX, prefix)
            return cls

        return decorator

    def injectable(self, scope: Scope | str | None = None) -> Callable[[type], type]:
        """Mark a class as a provider with the given lifetime (singleton by default)."""

        def decorator(cls: type) -> type:
            self.registry.attach(cls, None, MetadataKind.SCOPE, Scope.coerce(scope))
            return cls

        return decorator

    def inject(self, index: int, token: Any, *, optional: bool = False) -> Callable[[type], type]:
        """
        Override the token for constructor parameter ``index`` (``self``
        excluded). Parameters without an override use their annotation.
        """

        def decorator(cls: type) -> type:
            self.registry.append(
                cls, None, MetadataKind.INJECTIONS,
                InjectionDescriptor(index=index, token=token, optional=optional),
            )
            return cls

        return decorator

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def create_method_decorator(self, verb: str) -> Callable[..., Callable[[F], F]]:
        """Build a route decorator for an HTTP verb (``get``, ``post``...)."""
        verb = verb.lower()

        def route(path: str = "") -> Callable[[F], F]:
            def decorator(func: F) -> F:
                target = _unwrap(func)
                if not self.registry.has(target, None, MetadataKind.ROUTE_VERB):
                    self.registry.attach(target, None, MetadataKind.PARAMS, handler_params(target))
                self.registry.attach(target, None, MetadataKind.ROUTE_VERB, verb)
                self.registry.attach(target, None, MetadataKind.ROUTE_PATH, path)
                return func

            return decorator

        route.__name__ = verb
        return route

    def get(self, path: str = "") -> Callable[[F], F]:
        return self.create_method_decorator("get")(path)

    def post(self, path: str = "") -> Callable[[F], F]:
        return self.create_method_decorator("post")(path)

    def put(self, path: str = "") -> Callable[[F], F]:
        return self.create_method_decorator("put")(path)

    def delete(self, path: str = "") -> Callable[[F], F]:
        return self.create_method_decorator("delete")(path)

    def patch(self, path: str = "") -> Callable[[F], F]:
        return self.create_method_decorator("patch")(path)

    def use_param(self, index: int, marker: ParamMarker) -> Callable[[F], F]:
        """Bind handler parameter ``index`` without ``Annotated``."""

        def decorator(func: F) -> F:
            self.registry.append(_unwrap(func), None, MetadataKind.PARAMS, marker.at(index))
            return func

        return decorator

    # ------------------------------------------------------------------
    # Attachments (class or method)
    # ------------------------------------------------------------------

    def _attach_list(self, kind: MetadataKind, items: Sequence[Any]) -> Callable[[T], T]:
        def decorator(target: T) -> T:
            self.registry.attach(_unwrap(target), None, kind, list(items))
            return target

        return decorator

    def use_guards(self, *guards: Any) -> Callable[[T], T]:
        return self._attach_list(MetadataKind.GUARDS, guards)

    def use_filters(self, *filters: Any) -> Callable[[T], T]:
        return self._attach_list(MetadataKind.FILTERS, filters)

    def use_interceptors(self, *interceptors: Any) -> Callable[[T], T]:
        return self._attach_list(MetadataKind.INTERCEPTORS, interceptors)

    def use_middleware(self, *middleware: Any) -> Callable[[T], T]:
        return self._attach_list(MetadataKind.MIDDLEWARE, middleware)

    def use_pipes(self, *pipes: Callable[[Any], Any]) -> Callable[[T], T]:
        """Pipes applied to the handler's return value."""
        return self._attach_list(MetadataKind.PIPES, pipes)

    def set_metadata(self, key: Hashable, value: Any) -> Callable[[T], T]:
        """
        Attach a custom fact, read back with ``registry.read_nearest``.

        Example:
            Roles = lambda *roles: d.set_metadata("roles", roles)
        """

        def decorator(target: T) -> T:
            self.registry.attach(_unwrap(target), None, key, value)
            return target

        return decorator


__all__ = [
    "Decorators",
    "ParamMarker",
    "Param",
    "Body",
    "Query",
    "Inject",
    "create_param_decorator",
    "handler_params",
]
