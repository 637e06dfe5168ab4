"""
Provider descriptors and the instantiation strategies behind them.

A ``ProviderDescriptor`` is the immutable registration record: a token plus
exactly one of ``use_class``, ``use_factory`` or ``use_value``. The container
turns it into a ``ClassProvider``, ``FactoryProvider`` or ``ValueProvider``
that knows how to produce instances.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, fields
from typing import (
    Annotated,
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    get_args,
    get_origin,
    get_type_hints,
)

from ..faults import InvalidProviderError
from ..metadata import InjectionDescriptor
from .errors import DIError
from .scopes import Scope


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<unset>"


UNSET: Any = _Unset()


@dataclass(frozen=True)
class Inject:
    """
    Injection marker used inside ``typing.Annotated``.

    Usage:
        def __init__(self, repo: Annotated[UserRepo, Inject("users.repo")]):
            ...

    Attributes:
        token: Explicit token (the annotated type is used when None)
        optional: Leave the parameter's default in place when unresolvable
    """

    token: Any = None
    optional: bool = False


def inspect_injections(
    target: Callable[..., Any],
    overrides: Sequence[InjectionDescriptor] = (),
) -> List[InjectionDescriptor]:
    """
    Derive injection descriptors from a constructor or factory signature.

    Tokens come from ``overrides`` (matched by parameter index),
    ``Annotated[T, Inject(token)]`` markers or the plain annotation.
    Parameters with a default are optional; a parameter with none of these
    and no default is an error.
    """
    by_index = {o.index: o for o in overrides}
    func = target.__init__ if isinstance(target, type) else target
    if func is object.__init__:
        return []

    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return []

    try:
        hints = get_type_hints(func, include_extras=True)
    except Exception:
        # Unresolvable forward references: fall back to raw annotations
        hints = dict(getattr(func, "__annotations__", {}))

    injections: List[InjectionDescriptor] = []
    index = 0
    for name, param in sig.parameters.items():
        if name in ("self", "cls"):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        has_default = param.default is not inspect.Parameter.empty
        override = by_index.get(index)
        if override is not None:
            injections.append(InjectionDescriptor(
                index=index,
                token=override.token,
                name=name,
                optional=override.optional or has_default,
            ))
            index += 1
            continue

        annotation = hints.get(name, param.annotation)
        token: Any = None
        optional = has_default

        if get_origin(annotation) is Annotated:
            base, *extras = get_args(annotation)
            token = base
            for extra in extras:
                if isinstance(extra, Inject):
                    if extra.token is not None:
                        token = extra.token
                    optional = optional or extra.optional
        elif annotation is not inspect.Parameter.empty and not isinstance(annotation, str):
            token = annotation

        if token is None:
            if has_default:
                index += 1
                continue
            owner = getattr(target, "__qualname__", repr(target))
            raise DIError(
                f"Missing type annotation for parameter '{name}' of {owner}",
                code="MISSING_ANNOTATION",
            )

        injections.append(InjectionDescriptor(index=index, token=token, name=name, optional=optional))
        index += 1

    return injections


def _parameter_names(target: Callable[..., Any]) -> List[str]:
    func = target.__init__ if isinstance(target, type) else target
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return []
    return [
        name for name, p in sig.parameters.items()
        if name not in ("self", "cls")
        and p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    ]


@dataclass(frozen=True)
class ProviderDescriptor:
    """
    Registration record for one token.

    Example:
        ProviderDescriptor(UserRepo, use_class=SqlUserRepo, scope=Scope.REQUEST)
        ProviderDescriptor("db.url", use_value="postgres://localhost/db")
        ProviderDescriptor(Pool, use_factory=make_pool, inject=(ConfigService,))

    ``inject`` lists the tokens (or ``InjectionDescriptor`` entries) passed to
    the class constructor or factory. When it is None they are derived from
    the signature.
    """

    provide: Any
    use_class: Optional[type] = None
    use_factory: Optional[Callable[..., Any]] = None
    use_value: Any = UNSET
    scope: Optional[Scope] = None
    inject: Optional[Tuple[Any, ...]] = None

    def __post_init__(self):
        strategies = sum((
            self.use_class is not None,
            self.use_factory is not None,
            self.use_value is not UNSET,
        ))
        if strategies != 1:
            raise InvalidProviderError(self, "Provider needs exactly one of use_class, use_factory, use_value")
        if self.use_class is not None and not isinstance(self.use_class, type):
            raise InvalidProviderError(self, "use_class must be a class")
        if self.use_factory is not None and not callable(self.use_factory):
            raise InvalidProviderError(self, "use_factory must be callable")
        if self.scope is not None:
            object.__setattr__(self, "scope", Scope.coerce(self.scope))
        if self.inject is not None:
            object.__setattr__(self, "inject", tuple(self.inject))

    @property
    def strategy(self) -> str:
        if self.use_class is not None:
            return "class"
        if self.use_factory is not None:
            return "factory"
        return "value"

    @classmethod
    def of(cls, provider: Any) -> "ProviderDescriptor":
        """
        Normalize a provider entry.

        Accepts a descriptor, a bare class, or a mapping with the descriptor's
        field names (``{"provide": X, "use_value": 1}``).
        """
        if isinstance(provider, ProviderDescriptor):
            return provider
        if isinstance(provider, type):
            return cls(provide=provider, use_class=provider)
        if isinstance(provider, dict):
            known = {f.name for f in fields(cls)}
            unknown = set(provider) - known
            if "provide" not in provider or unknown:
                raise InvalidProviderError(provider)
            return cls(**provider)
        raise InvalidProviderError(provider)


# ============================================================================
# Instantiation strategies
# ============================================================================

class ClassProvider:
    """
    Instantiates a class by resolving its constructor dependencies.

    Supports an ``async_init()`` coroutine hook run after construction.
    """

    __slots__ = ("token", "scope", "cls", "_injections", "_param_names", "_has_async_init")

    def __init__(
        self,
        token: Any,
        cls: type,
        scope: Scope = Scope.SINGLETON,
        inject: Optional[Sequence[Any]] = None,
    ):
        self.token = token
        self.cls = cls
        self.scope = scope
        self._param_names = _parameter_names(cls)
        self._injections = _normalize_injections(cls, inject, self._param_names)
        self._has_async_init = inspect.iscoroutinefunction(getattr(cls, "async_init", None))

    @property
    def injections(self) -> List[InjectionDescriptor]:
        return list(self._injections)

    async def instantiate(self, container: Any, stack: Tuple[Any, ...]) -> Any:
        kwargs = await _resolve_arguments(container, self._injections, stack)
        instance = self.cls(**kwargs)
        if self._has_async_init:
            await instance.async_init()
        return instance


class FactoryProvider:
    """
    Calls a factory function to produce instances.

    Supports both sync and async factories.
    """

    __slots__ = ("token", "scope", "factory", "_injections", "_is_async")

    def __init__(
        self,
        token: Any,
        factory: Callable[..., Any],
        scope: Scope = Scope.SINGLETON,
        inject: Optional[Sequence[Any]] = None,
    ):
        self.token = token
        self.factory = factory
        self.scope = scope
        self._injections = _normalize_injections(factory, inject, _parameter_names(factory))
        self._is_async = inspect.iscoroutinefunction(factory)

    @property
    def injections(self) -> List[InjectionDescriptor]:
        return list(self._injections)

    async def instantiate(self, container: Any, stack: Tuple[Any, ...]) -> Any:
        kwargs = await _resolve_arguments(container, self._injections, stack)
        result = self.factory(**kwargs)
        if self._is_async or inspect.isawaitable(result):
            result = await result
        return result


class ValueProvider:
    """Returns a pre-built value."""

    __slots__ = ("token", "scope", "value")

    def __init__(self, token: Any, value: Any):
        self.token = token
        self.value = value
        self.scope = Scope.SINGLETON

    async def instantiate(self, container: Any, stack: Tuple[Any, ...]) -> Any:
        return self.value


def build_provider(descriptor: ProviderDescriptor) -> Any:
    """Turn a descriptor into its instantiation strategy."""
    scope = descriptor.scope or Scope.SINGLETON
    if descriptor.use_class is not None:
        return ClassProvider(descriptor.provide, descriptor.use_class, scope, descriptor.inject)
    if descriptor.use_factory is not None:
        return FactoryProvider(descriptor.provide, descriptor.use_factory, scope, descriptor.inject)
    return ValueProvider(descriptor.provide, descriptor.use_value)


def _normalize_injections(
    target: Callable[..., Any],
    inject: Optional[Sequence[Any]],
    param_names: List[str],
) -> List[InjectionDescriptor]:
    if inject is None:
        injections = inspect_injections(target)
    else:
        injections = [
            item if isinstance(item, InjectionDescriptor) else InjectionDescriptor(index=i, token=item)
            for i, item in enumerate(inject)
        ]

    named = []
    for injection in sorted(injections, key=lambda inj: inj.index):
        name = injection.name
        if name is None:
            if injection.index >= len(param_names):
                owner = getattr(target, "__qualname__", repr(target))
                raise DIError(
                    f"Injection index {injection.index} out of range for {owner}",
                    code="INVALID_INJECTION",
                )
            name = param_names[injection.index]
        named.append(InjectionDescriptor(
            index=injection.index,
            token=injection.token,
            name=name,
            optional=injection.optional,
        ))
    return named


async def _resolve_arguments(
    container: Any,
    injections: Sequence[InjectionDescriptor],
    stack: Tuple[Any, ...],
) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {}
    for injection in injections:
        if injection.optional and not container.has(injection.token):
            continue
        kwargs[injection.name] = await container._resolve(injection.token, stack)
    return kwargs
