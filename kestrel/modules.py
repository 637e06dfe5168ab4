"""
Module Resolver - registers a module graph into the container and router.

Order per module: imported modules first (depth first, declaration order),
then providers, then controllers. Providers already bound are left alone
(first registration wins). Each module is processed once, so a module
imported from two places does not bind its controllers twice.
"""

from __future__ import annotations

import logging
from typing import Any, List, Set, Tuple

from .binder import BoundRoute, RouteBinder
from .di import Container, ProviderDescriptor, inspect_injections
from .di.errors import token_name
from .faults import InvalidModuleError, ModuleCycleError
from .metadata import MetadataKind, MetadataRegistry, ModuleDescriptor


logger = logging.getLogger("kestrel.modules")


def _module_name(module: Any) -> str:
    if isinstance(module, ModuleDescriptor):
        return module.name or "<module>"
    return getattr(module, "__qualname__", repr(module))


class ModuleResolver:
    """
    Walks module metadata and wires providers and controllers.

    Example:
        resolver = ModuleResolver(registry, container, binder)
        routes = resolver.register_module(AppModule)
    """

    def __init__(self, registry: MetadataRegistry, container: Container, binder: RouteBinder):
        self.registry = registry
        self.container = container
        self.binder = binder
        self._registered: Set[Any] = set()

    def register_module(self, module: Any) -> List[BoundRoute]:
        """
        Register ``module`` and everything it imports.

        Args:
            module: Class decorated with ``module(...)`` or a ``ModuleDescriptor``

        Returns:
            Routes bound while registering this graph

        Raises:
            InvalidModuleError: A class carries no module metadata
            ModuleCycleError: Imports form a cycle
            InvalidProviderError: A provider entry has an unsupported shape
        """
        return self._register(module, ())

    def _register(self, module: Any, path: Tuple[Any, ...]) -> List[BoundRoute]:
        if module in path:
            start = path.index(module)
            raise ModuleCycleError([_module_name(m) for m in (*path[start:], module)])
        if module in self._registered:
            logger.debug(f"Module {_module_name(module)} already registered")
            return []

        descriptor = self.descriptor_of(module)
        path = (*path, module)

        routes: List[BoundRoute] = []
        for imported in descriptor.imports:
            routes.extend(self._register(imported, path))

        for provider in descriptor.providers:
            self.register_provider(provider)

        for controller in descriptor.controllers:
            if not self.container.has(controller):
                self.container.register(self.provider_for(controller))
            routes.extend(self.binder.bind(controller))

        self._registered.add(module)
        logger.info(
            f"Registered module {_module_name(module)} "
            f"({len(descriptor.providers)} providers, {len(descriptor.controllers)} controllers)"
        )
        return routes

    def descriptor_of(self, module: Any) -> ModuleDescriptor:
        if isinstance(module, ModuleDescriptor):
            return module
        descriptor = self.registry.read(module, None, MetadataKind.MODULE)
        if not isinstance(descriptor, ModuleDescriptor):
            raise InvalidModuleError(module)
        return descriptor

    def register_provider(self, provider: Any) -> None:
        descriptor = self.provider_for(provider)
        if self.container.has(descriptor.provide):
            logger.debug(f"Provider for {token_name(descriptor.provide)} already bound, skipping")
            return
        self.container.register(descriptor)

    def provider_for(self, provider: Any) -> ProviderDescriptor:
        """
        Normalize a provider entry, applying recorded class metadata.

        A bare class picks up its ``injectable`` scope and ``inject``
        overrides; so does the ``use_class`` of a descriptor that does not
        set them itself.
        """
        descriptor = ProviderDescriptor.of(provider)
        cls = descriptor.use_class
        if cls is None:
            return descriptor

        scope = descriptor.scope
        if scope is None:
            scope = self.registry.read(cls, None, MetadataKind.SCOPE)

        inject = descriptor.inject
        if inject is None:
            overrides = self.registry.read(cls, None, MetadataKind.INJECTIONS)
            if overrides:
                inject = tuple(inspect_injections(cls, overrides))

        if scope == descriptor.scope and inject == descriptor.inject:
            return descriptor
        return ProviderDescriptor(
            provide=descriptor.provide,
            use_class=cls,
            scope=scope,
            inject=inject,
        )
