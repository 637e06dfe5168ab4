"""
Module resolver: import graph walking, provider registration, controllers.
"""

import pytest

from kestrel import Scope
from kestrel.binder import RouteBinder
from kestrel.di import Container, ProviderDescriptor
from kestrel.faults import InvalidModuleError, InvalidProviderError, ModuleCycleError
from kestrel.metadata import MetadataKind, ModuleDescriptor
from kestrel.modules import ModuleResolver


@pytest.fixture
def resolver(registry, container, server) -> ModuleResolver:
    return ModuleResolver(registry, container, RouteBinder(registry, server))


class CountingContainer(Container):
    """Container recording every register() call."""

    def __init__(self):
        super().__init__()
        self.registered = []

    def register(self, provider):
        self.registered.append(provider)
        return super().register(provider)


class TestImportGraph:

    @pytest.mark.asyncio
    async def test_chain_of_imports(self, registry, d, server):
        class ServiceA: pass
        class ServiceB: pass
        class ServiceC: pass

        @d.module(providers=[ServiceC])
        class ModuleC: pass

        @d.module(providers=[ServiceB], imports=[ModuleC])
        class ModuleB: pass

        @d.module(providers=[ServiceA], imports=[ModuleB])
        class ModuleA: pass

        container = CountingContainer()
        resolver = ModuleResolver(registry, container, RouteBinder(registry, server))
        resolver.register_module(ModuleA)

        for service in (ServiceA, ServiceB, ServiceC):
            assert isinstance(await container.resolve(service), service)
        tokens = [ProviderDescriptor.of(p).provide for p in container.registered]
        assert tokens == [ServiceC, ServiceB, ServiceA]

    def test_diamond_import_processed_once(self, registry, d, resolver):
        class Shared: pass

        @d.controller("/shared")
        class SharedController:
            @d.get("/")
            def index(self):
                return "ok"

        @d.module(controllers=[SharedController], providers=[Shared])
        class SharedModule: pass

        @d.module(imports=[SharedModule])
        class Left: pass

        @d.module(imports=[SharedModule])
        class Right: pass

        @d.module(imports=[Left, Right])
        class Root: pass

        routes = resolver.register_module(Root)
        assert len(routes) == 1
        assert len(resolver.binder.server.router) == 1

    def test_cycle_is_reported(self, registry, d, resolver):
        @d.module()
        class First: pass

        @d.module(imports=[First])
        class Second: pass

        # Close the loop after both classes exist
        registry.attach(First, None, MetadataKind.MODULE, ModuleDescriptor(imports=(Second,), name="First"))

        with pytest.raises(ModuleCycleError) as exc_info:
            resolver.register_module(First)
        assert exc_info.value.cycle[0] == exc_info.value.cycle[-1]

    def test_module_without_metadata(self, resolver):
        class NotAModule:
            pass

        with pytest.raises(InvalidModuleError):
            resolver.register_module(NotAModule)

    def test_descriptor_accepted_as_module(self, resolver, container):
        class Service: pass

        resolver.register_module(ModuleDescriptor(providers=(Service,)))
        assert container.has(Service)


class TestProviders:

    def test_first_registration_wins(self, d, resolver, container):
        @d.module(providers=[{"provide": "answer", "use_value": 1}])
        class First: pass

        @d.module(providers=[{"provide": "answer", "use_value": 2}])
        class Second: pass

        resolver.register_module(First)
        resolver.register_module(Second)
        assert container.descriptor("answer").use_value == 1

    def test_invalid_provider(self, d, resolver):
        @d.module(providers=[42])
        class Broken: pass

        with pytest.raises(InvalidProviderError):
            resolver.register_module(Broken)

    def test_injectable_scope_applied(self, d, resolver, container):
        @d.injectable(Scope.REQUEST)
        class PerRequest: pass

        @d.module(providers=[PerRequest])
        class AppModule: pass

        resolver.register_module(AppModule)
        assert container.descriptor(PerRequest).scope is Scope.REQUEST

    @pytest.mark.asyncio
    async def test_inject_override_applied(self, d, resolver, container):
        @d.inject(0, "db.url")
        class Repo:
            def __init__(self, url):
                self.url = url

        @d.module(providers=[{"provide": "db.url", "use_value": "sqlite://"}, Repo])
        class AppModule: pass

        resolver.register_module(AppModule)
        assert (await container.resolve(Repo)).url == "sqlite://"

    def test_explicit_descriptor_scope_kept(self, d, resolver, container):
        @d.injectable(Scope.REQUEST)
        class Service: pass

        @d.module(providers=[ProviderDescriptor(Service, use_class=Service, scope=Scope.TRANSIENT)])
        class AppModule: pass

        resolver.register_module(AppModule)
        assert container.descriptor(Service).scope is Scope.TRANSIENT


class TestControllers:

    def test_controller_registered_and_bound(self, d, resolver, container):
        @d.controller("/items")
        class Items:
            @d.get("/")
            def index(self):
                return []

            @d.post("/")
            def create(self):
                return {}

        @d.module(controllers=[Items])
        class AppModule: pass

        routes = resolver.register_module(AppModule)
        assert container.has(Items)
        assert [(r.verb, r.path) for r in routes] == [("get", "/items"), ("post", "/items")]

    def test_controller_already_provided_is_not_rebound(self, d, resolver, container):
        @d.controller("/items")
        class Items:
            @d.get("/")
            def index(self):
                return []

        @d.module(controllers=[Items], providers=[ProviderDescriptor(Items, use_class=Items, scope="transient")])
        class AppModule: pass

        resolver.register_module(AppModule)
        assert container.descriptor(Items).scope is Scope.TRANSIENT
