"""
Request pipeline: request scope, guards, exception filters and dispatch,
exercised through real servers.
"""

import asyncio
from typing import Annotated

import pytest

from kestrel import (
    Body,
    Param,
    ParseIntPipe,
    Query,
    Scope,
    create_param_decorator,
)
from kestrel.binder import RouteBinder
from kestrel.di import ProviderDescriptor
from kestrel.faults import ForbiddenException, HttpException, ValidationFault
from kestrel.http import json_body_parser
from kestrel.pipeline import HttpExceptionFilter, request_scope

from helpers import SentMessages, client_for, make_receive, make_scope


@pytest.fixture
def app(registry, container, server):
    """Server with body parsing and request scope, plus a bind helper."""
    server.use(json_body_parser())
    server.use(request_scope(container))
    binder = RouteBinder(registry, server)

    def bind(*controllers, providers=()):
        for provider in providers:
            container.register(provider)
        for controller in controllers:
            if not container.has(controller):
                container.register(controller)
            binder.bind(controller)
        return server

    return bind


# ============================================================================
# Guards
# ============================================================================

class AllowGuard:
    def __init__(self):
        self.calls = 0

    def can_activate(self, request, response):
        self.calls += 1
        return True


class DenyGuard:
    def can_activate(self, request, response):
        return False


class AsyncHeaderGuard:
    async def can_activate(self, request, response):
        return request.header("x-token") == "secret"


class ExplodingGuard:
    def can_activate(self, request, response):
        raise ForbiddenException("No entry")


class TestGuards:

    @pytest.mark.asyncio
    async def test_denial_is_403_and_handler_not_called(self, d, app):
        calls = []

        @d.controller("/guarded")
        @d.use_guards(DenyGuard())
        class Guarded:
            @d.get("/")
            def index(self):
                calls.append("handler")
                return "never"

        server = app(Guarded)
        async with client_for(server) as client:
            resp = await client.get("/guarded")

        assert resp.status_code == 403
        assert resp.json() == {"message": "Forbidden"}
        assert calls == []

    @pytest.mark.asyncio
    async def test_each_guard_called_once(self, d, app):
        first, second = AllowGuard(), AllowGuard()

        @d.controller("/open")
        @d.use_guards(first)
        class Open:
            @d.get("/")
            @d.use_guards(second)
            def index(self):
                return {"ok": True}

        server = app(Open)
        async with client_for(server) as client:
            resp = await client.get("/open")

        assert resp.status_code == 200
        assert resp.json() == {"ok": True}
        assert (first.calls, second.calls) == (1, 1)

    @pytest.mark.asyncio
    async def test_denial_stops_later_guards(self, d, app):
        later = AllowGuard()

        @d.controller("/stop")
        @d.use_guards(DenyGuard(), later)
        class Stop:
            @d.get("/")
            def index(self):
                return "never"

        server = app(Stop)
        async with client_for(server) as client:
            await client.get("/stop")
        assert later.calls == 0

    @pytest.mark.asyncio
    async def test_class_guard_resolved_from_container(self, d, app):
        @d.controller("/async")
        @d.use_guards(AsyncHeaderGuard)
        class Secret:
            @d.get("/")
            async def index(self):
                return "in"

        server = app(Secret, providers=[AsyncHeaderGuard])
        async with client_for(server) as client:
            denied = await client.get("/async")
            allowed = await client.get("/async", headers={"x-token": "secret"})

        assert denied.status_code == 403
        assert allowed.status_code == 200
        assert allowed.text == "in"

    @pytest.mark.asyncio
    async def test_guard_error_reaches_filters(self, d, app):
        @d.controller("/boom")
        @d.use_guards(ExplodingGuard())
        @d.use_filters(HttpExceptionFilter())
        class Boom:
            @d.get("/")
            def index(self):
                return "never"

        server = app(Boom)
        async with client_for(server) as client:
            resp = await client.get("/boom")

        assert resp.status_code == 403
        assert resp.json() == {"statusCode": 403, "message": "No entry"}


# ============================================================================
# Exception filters
# ============================================================================

class RecordingFilter:
    def __init__(self, name, log, write=False, pass_on=False):
        self.name = name
        self.log = log
        self.write = write
        self.pass_on = pass_on

    async def catch(self, exception, request, response, next):
        self.log.append(self.name)
        if self.pass_on:
            await next(exception)
            return
        if self.write:
            response.status(418).json({"filter": self.name, "error": str(exception)})


class TestExceptionFilters:

    @pytest.mark.asyncio
    async def test_http_exception_filter(self, d, app):
        @d.controller("/items")
        @d.use_filters(HttpExceptionFilter)
        class Items:
            @d.get("/:id")
            def show(self, item_id: Annotated[str, Param("id")]):
                raise HttpException(404, f"Item {item_id} not found")

        server = app(Items, providers=[HttpExceptionFilter])
        async with client_for(server) as client:
            resp = await client.get("/items/7")

        assert resp.status_code == 404
        assert resp.json() == {"statusCode": 404, "message": "Item 7 not found"}

    @pytest.mark.asyncio
    async def test_http_exception_filter_hides_unexpected_errors(self, d, app):
        @d.controller("/crash")
        @d.use_filters(HttpExceptionFilter())
        class Crash:
            @d.get("/")
            def index(self):
                raise KeyError("internal detail")

        server = app(Crash)
        async with client_for(server) as client:
            resp = await client.get("/crash")

        assert resp.status_code == 500
        assert resp.json() == {"statusCode": 500, "message": "Internal server error"}

    @pytest.mark.asyncio
    async def test_first_writer_wins(self, d, app):
        log = []

        @d.controller("/f")
        @d.use_filters(RecordingFilter("silent", log), RecordingFilter("first", log, write=True))
        class Filtered:
            @d.get("/")
            @d.use_filters(RecordingFilter("second", log, write=True))
            def index(self):
                raise ValueError("bad")

        server = app(Filtered)
        async with client_for(server) as client:
            resp = await client.get("/f")

        assert resp.status_code == 418
        assert resp.json() == {"filter": "first", "error": "bad"}
        assert log == ["silent", "first"]

    @pytest.mark.asyncio
    async def test_pass_on_skips_remaining_filters(self, d, app):
        log = []

        @d.controller("/p")
        @d.use_filters(RecordingFilter("passer", log, pass_on=True), RecordingFilter("writer", log, write=True))
        class Passing:
            @d.get("/")
            def index(self):
                raise ValueError("bad")

        server = app(Passing)
        async with client_for(server) as client:
            resp = await client.get("/p")

        assert log == ["passer"]
        assert resp.status_code == 500
        assert resp.json() == {"statusCode": 500, "message": "Internal Server Error"}

    @pytest.mark.asyncio
    async def test_no_filter_writes_falls_through_to_default(self, d, app):
        @d.controller("/none")
        @d.use_filters(RecordingFilter("silent", []))
        class Unfiltered:
            @d.get("/")
            def index(self):
                raise HttpException(409, "conflict")

        server = app(Unfiltered)
        async with client_for(server) as client:
            resp = await client.get("/none")

        assert resp.status_code == 409
        assert resp.json() == {"statusCode": 409, "message": "conflict"}

    @pytest.mark.asyncio
    async def test_no_filters_unexpected_error(self, d, app):
        @d.controller("/bare")
        class Bare:
            @d.get("/")
            def index(self):
                raise RuntimeError("secret")

        server = app(Bare)
        async with client_for(server) as client:
            resp = await client.get("/bare")

        assert resp.status_code == 500
        assert resp.json() == {"statusCode": 500, "message": "Internal Server Error"}


# ============================================================================
# Dispatch
# ============================================================================

def header_value(request, response, next, name):
    return request.header(name)


Header = create_param_decorator(header_value)


class TestDispatch:

    @pytest.mark.asyncio
    async def test_return_value_sent_verbatim(self, d, app):
        @d.controller("/v")
        class Values:
            @d.get("/dict")
            def as_dict(self):
                return {"a": [1, 2], "b": None}

            @d.get("/text")
            async def as_text(self):
                return "plain"

        server = app(Values)
        async with client_for(server) as client:
            data = await client.get("/v/dict")
            text = await client.get("/v/text")

        assert data.status_code == 200
        assert data.json() == {"a": [1, 2], "b": None}
        assert text.text == "plain"

    @pytest.mark.asyncio
    async def test_handler_writing_response_is_not_overwritten(self, d, app):
        from kestrel.http import Response

        def raw_response(request, response, next, data):
            return response

        Res = create_param_decorator(raw_response)

        @d.controller("/raw")
        class Raw:
            @d.post("/")
            def create(self, res: Annotated[Response, Res()]):
                res.status(201).json({"created": True})
                return {"ignored": True}

        server = app(Raw)
        async with client_for(server) as client:
            resp = await client.post("/raw")

        assert resp.status_code == 201
        assert resp.json() == {"created": True}

    @pytest.mark.asyncio
    async def test_arguments_follow_parameter_order(self, d, app):
        @d.controller("/args")
        class Args:
            @d.post("/:id")
            @d.use_param(2, Param("id"))
            @d.use_param(0, Query("q"))
            @d.use_param(1, Body(key="name"))
            def collect(self, q, name, item_id):
                return {"q": q, "name": name, "id": item_id}

        server = app(Args)
        async with client_for(server) as client:
            resp = await client.post("/args/5?q=find", json={"name": "Ada"})

        assert resp.json() == {"q": "find", "name": "Ada", "id": "5"}

    @pytest.mark.asyncio
    async def test_whole_sources(self, d, app):
        @d.controller("/whole")
        class Whole:
            @d.post("/:a/:b")
            def collect(
                self,
                params: Annotated[dict, Param()],
                query: Annotated[dict, Query()],
                body: Annotated[dict, Body()],
            ):
                return {"params": params, "query": query, "body": body}

        server = app(Whole)
        async with client_for(server) as client:
            resp = await client.post("/whole/1/2?x=y", json={"k": "v"})

        assert resp.json() == {
            "params": {"a": "1", "b": "2"},
            "query": {"x": "y"},
            "body": {"k": "v"},
        }

    @pytest.mark.asyncio
    async def test_custom_param_decorator(self, d, app):
        @d.controller("/who")
        class Who:
            @d.get("/")
            def me(self, agent: Annotated[str, Header("x-agent")]):
                return {"agent": agent}

        server = app(Who)
        async with client_for(server) as client:
            resp = await client.get("/who", headers={"x-agent": "probe"})

        assert resp.json() == {"agent": "probe"}

    @pytest.mark.asyncio
    async def test_parameter_pipe_rejection_is_400(self, d, app):
        calls = []

        @d.controller("/n")
        class Numbers:
            @d.get("/:id")
            def show(self, number: Annotated[int, Param("id", ParseIntPipe())]):
                calls.append(number)
                return {"double": number * 2}

        server = app(Numbers)
        async with client_for(server) as client:
            ok = await client.get("/n/21")
            bad = await client.get("/n/abc")

        assert ok.json() == {"double": 42}
        assert bad.status_code == 400
        assert bad.json()["errors"][0]["msg"] == "Value must be an integer"
        assert calls == [21]

    @pytest.mark.asyncio
    async def test_validation_fault_skips_filters(self, d, app):
        log = []

        @d.controller("/vf")
        @d.use_filters(RecordingFilter("writer", log, write=True))
        class Strict:
            @d.get("/")
            def index(self):
                raise ValidationFault([{"loc": ["x"], "msg": "bad"}])

        server = app(Strict)
        async with client_for(server) as client:
            resp = await client.get("/vf")

        assert resp.status_code == 400
        assert resp.json() == {"errors": [{"loc": ["x"], "msg": "bad"}]}
        assert log == []

    @pytest.mark.asyncio
    async def test_route_pipes_transform_result(self, d, app):
        @d.controller("/p")
        @d.use_pipes(lambda value: value * 2)
        class Piped:
            @d.get("/")
            @d.use_pipes(lambda value: {"wrapped": value})
            def index(self):
                return 21

        server = app(Piped)
        async with client_for(server) as client:
            resp = await client.get("/p")

        # class pipes run first
        assert resp.json() == {"wrapped": 42}


# ============================================================================
# Request scope
# ============================================================================

class RequestCounter:
    instances = []

    def __init__(self):
        self.closed = False
        RequestCounter.instances.append(self)

    def close(self):
        self.closed = True


class TestRequestScope:

    @pytest.mark.asyncio
    async def test_request_scoped_controller_per_request(self, d, app):
        seen = []

        @d.controller("/scoped")
        class Scoped:
            def __init__(self, counter: RequestCounter):
                self.counter = counter

            @d.get("/")
            def index(self):
                seen.append(self.counter)
                return {"closed": self.counter.closed}

        RequestCounter.instances = []
        server = app(
            Scoped,
            providers=[
                ProviderDescriptor(RequestCounter, use_class=RequestCounter, scope=Scope.REQUEST),
                ProviderDescriptor(Scoped, use_class=Scoped, scope=Scope.REQUEST),
            ],
        )

        async with client_for(server) as client:
            first = await client.get("/scoped")
            await client.get("/scoped")

        assert first.json() == {"closed": False}
        assert len(seen) == 2
        assert seen[0] is not seen[1]
        assert all(counter.closed for counter in RequestCounter.instances)

    @pytest.mark.asyncio
    async def test_scope_released_after_error(self, d, app):
        @d.controller("/fail")
        class Failing:
            def __init__(self, counter: RequestCounter):
                self.counter = counter

            @d.get("/")
            def index(self):
                raise RuntimeError("boom")

        RequestCounter.instances = []
        server = app(
            Failing,
            providers=[
                ProviderDescriptor(RequestCounter, use_class=RequestCounter, scope=Scope.REQUEST),
                ProviderDescriptor(Failing, use_class=Failing, scope=Scope.REQUEST),
            ],
        )

        async with client_for(server) as client:
            resp = await client.get("/fail")

        assert resp.status_code == 500
        assert len(RequestCounter.instances) == 1
        assert RequestCounter.instances[0].closed

    @pytest.mark.asyncio
    async def test_missing_scope_is_a_server_error(self, d, registry, server, container):
        @d.controller("/noscope")
        class NoScope:
            @d.get("/")
            def index(self):
                return "x"

        container.register(NoScope)
        RouteBinder(registry, server).bind(NoScope)

        async with client_for(server) as client:
            resp = await client.get("/noscope")
        assert resp.status_code == 500

    @pytest.mark.asyncio
    async def test_scope_released_when_request_cancelled(self, d, app):
        started = asyncio.Event()

        @d.controller("/slow")
        class Slow:
            def __init__(self, counter: RequestCounter):
                self.counter = counter

            @d.get("/")
            async def index(self):
                started.set()
                await asyncio.sleep(10)
                return "late"

        RequestCounter.instances = []
        server = app(
            Slow,
            providers=[
                ProviderDescriptor(RequestCounter, use_class=RequestCounter, scope=Scope.REQUEST),
                ProviderDescriptor(Slow, use_class=Slow, scope=Scope.REQUEST),
            ],
        )

        send = SentMessages()
        task = asyncio.ensure_future(server(make_scope(path="/slow"), make_receive(), send))
        await asyncio.wait_for(started.wait(), timeout=1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert send.messages == []
        assert len(RequestCounter.instances) == 1
        assert RequestCounter.instances[0].closed
