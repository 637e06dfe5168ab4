"""
DI Container - manages provider bindings, instance caches and scopes.

The root container holds every binding and the singleton cache. A request
child container shares the root bindings by reference and owns a private
cache for request-scoped instances, released by ``dispose()``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Coroutine, Dict, List, Optional, Tuple, TypeVar

from .errors import (
    DependencyCycleError,
    DuplicateBindingError,
    ResolutionError,
    ScopeViolationError,
    token_name,
)
from .providers import ProviderDescriptor, build_provider
from .scopes import Scope


T = TypeVar("T")

logger = logging.getLogger("kestrel.di")

# Instance hooks run at disposal, first match wins
_DISPOSE_HOOKS = ("__aexit__", "shutdown", "dispose", "close")


class Container:
    """
    DI Container.

    Example:
        container = Container()
        container.register(ProviderDescriptor(UserService, use_class=UserService))
        service = await container.resolve(UserService)

        child = container.create_child_scope()
        ctx = await child.resolve(RequestContext)   # request-scoped
        await container.dispose_child_scope(child)
    """

    __slots__ = (
        "_descriptors",
        "_providers",
        "_cache",
        "_parent",
        "_finalizers",
        "_locks",
        "_verified",
        "_disposed",
    )

    def __init__(self, parent: Optional["Container"] = None):
        if parent is not None:
            self._descriptors = parent._descriptors
            self._providers = parent._providers
            self._verified = parent._verified
        else:
            self._descriptors: Dict[Any, ProviderDescriptor] = {}
            self._providers: Dict[Any, Any] = {}
            self._verified: set = set()
        self._cache: Dict[Any, Any] = {}
        self._parent = parent
        self._finalizers: List[Callable[[], Coroutine[Any, Any, Any]]] = []
        self._locks: Dict[Any, asyncio.Lock] = {}
        self._disposed = False

    @property
    def is_root(self) -> bool:
        return self._parent is None

    @property
    def root(self) -> "Container":
        container = self
        while container._parent is not None:
            container = container._parent
        return container

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, provider: Any) -> ProviderDescriptor:
        """
        Bind a token to its production strategy.

        Args:
            provider: ``ProviderDescriptor``, bare class, or descriptor mapping

        Raises:
            DuplicateBindingError: The token is bound to a different descriptor
            InvalidProviderError: The provider shape is not supported
        """
        descriptor = ProviderDescriptor.of(provider)
        token = descriptor.provide

        existing = self._descriptors.get(token)
        if existing is not None:
            if existing == descriptor:
                return existing
            raise DuplicateBindingError(token)

        self._providers[token] = build_provider(descriptor)
        self._descriptors[token] = descriptor
        self._verified.clear()
        logger.debug(
            f"Registered {token_name(token)} "
            f"({descriptor.strategy}, scope={(descriptor.scope or Scope.SINGLETON).value})"
        )
        return descriptor

    def has(self, token: Any) -> bool:
        """Check if a provider is bound for the token."""
        return token in self._providers

    def descriptor(self, token: Any) -> Optional[ProviderDescriptor]:
        return self._descriptors.get(token)

    @property
    def tokens(self) -> List[Any]:
        return list(self._descriptors)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(self, token: Any) -> Any:
        """
        Resolve a token to an instance according to its scope.

        Raises:
            ResolutionError: No provider is bound for the token
            ScopeViolationError: Request-scoped token resolved from the root
            DependencyCycleError: The token depends on itself
        """
        self._check_graph(token)
        return await self._resolve(token, ())

    def _check_graph(self, token: Any) -> None:
        """
        Walk the bound dependency graph below ``token`` and reject cycles.

        Runs before any instance lock is taken, so two tasks entering a
        cycle from opposite ends fail instead of waiting on each other.
        """
        if token in self._verified:
            return

        def visit(current: Any, path: Tuple[Any, ...]) -> None:
            if current in path:
                raise DependencyCycleError([*path, current])
            if current in self._verified:
                return
            provider = self._providers.get(current)
            if provider is None:
                return
            for injection in getattr(provider, "injections", ()):
                visit(injection.token, (*path, current))
            self._verified.add(current)

        visit(token, ())

    async def _resolve(self, token: Any, stack: Tuple[Any, ...]) -> Any:
        if token in stack:
            raise DependencyCycleError([*stack, token])

        if token in self._cache:
            return self._cache[token]

        provider = self._providers.get(token)
        if provider is None:
            raise ResolutionError(token, requested_by=stack, candidates=self._similar(token))

        scope = provider.scope
        if scope is Scope.SINGLETON:
            root = self.root
            if root is not self:
                return await root._resolve(token, stack)
            return await self._resolve_cached(token, provider, stack)

        if scope is Scope.REQUEST:
            if self._parent is None:
                raise ScopeViolationError(token, requested_by=stack)
            return await self._resolve_cached(token, provider, stack)

        return await provider.instantiate(self, (*stack, token))

    async def _resolve_cached(self, token: Any, provider: Any, stack: Tuple[Any, ...]) -> Any:
        lock = self._locks.get(token)
        if lock is None:
            lock = self._locks[token] = asyncio.Lock()

        async with lock:
            if token in self._cache:
                return self._cache[token]
            instance = await provider.instantiate(self, (*stack, token))
            self._cache[token] = instance
            self._register_finalizer(instance)
            return instance

    def _similar(self, token: Any) -> List[str]:
        wanted = token_name(token).lower()
        return [
            token_name(t) for t in self._providers
            if wanted and (wanted in token_name(t).lower() or token_name(t).lower() in wanted)
        ]

    # ------------------------------------------------------------------
    # Scopes
    # ------------------------------------------------------------------

    def create_child_scope(self) -> "Container":
        """Create a request child container sharing this container's bindings."""
        return Container(parent=self.root)

    async def dispose_child_scope(self, child: "Container") -> None:
        """Release every request-scoped instance created in ``child``."""
        await child.dispose()

    async def dispose(self) -> None:
        """
        Run instance finalizers in LIFO order and clear the cache.

        Idempotent. Finalizer failures are logged and swallowed.
        """
        if self._disposed:
            return
        self._disposed = True

        finalizers, self._finalizers = self._finalizers, []
        for finalizer in reversed(finalizers):
            try:
                result = finalizer()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Error during finalizer: {e}", exc_info=True)

        self._cache.clear()
        self._locks.clear()

    async def shutdown(self) -> None:
        """Dispose singleton instances held by the root container."""
        await self.root.dispose()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _register_finalizer(self, instance: Any) -> None:
        for hook in _DISPOSE_HOOKS:
            method = getattr(instance, hook, None)
            if method is None or not callable(method):
                continue
            if hook == "__aexit__":
                self._finalizers.append(lambda m=method: m(None, None, None))
            else:
                self._finalizers.append(method)
            return

    def __repr__(self) -> str:
        kind = "root" if self._parent is None else "request"
        return f"<Container {kind} bindings={len(self._providers)} cached={len(self._cache)}>"
