"""
Shared test fixtures for the Kestrel test suite.

ASGI helpers live in ``helpers.py``.
"""

import pytest

from kestrel import ConfigService, Decorators, MetadataRegistry
from kestrel.di import Container
from kestrel.http import HttpServer, Response


@pytest.fixture
def registry() -> MetadataRegistry:
    return MetadataRegistry()


@pytest.fixture
def d(registry) -> Decorators:
    return Decorators(registry)


@pytest.fixture
def container() -> Container:
    return Container()


@pytest.fixture
def server() -> HttpServer:
    return HttpServer()


@pytest.fixture
def config() -> ConfigService:
    return ConfigService.load(None, environ={})


@pytest.fixture
def response() -> Response:
    return Response()
