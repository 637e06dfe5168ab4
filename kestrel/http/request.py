"""
Request - ASGI request wrapper.

Holds everything a handler chain reads or annotates: method, path, headers,
query string, matched path parameters, parsed body, per-request state and
the request-scoped DI container.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Union
from urllib.parse import parse_qsl

from ..faults import PayloadTooLargeException


QueryValue = Union[str, List[str]]


class Request:
    """
    HTTP request.

    Attributes set along the pipeline:
        params: Path parameters of the matched route
        body: Parsed body (set by the body parser, None otherwise)
        state: Free-form per-request state
        container: Request-scoped DI container (set by the scope middleware)
        route: Matched route, if any
    """

    __slots__ = (
        "scope",
        "_receive",
        "_headers",
        "_query",
        "_body",
        "params",
        "body",
        "state",
        "container",
        "route",
    )

    def __init__(self, scope: dict, receive: Optional[Callable] = None):
        self.scope = scope
        self._receive = receive
        self._headers: Optional[Dict[str, str]] = None
        self._query: Optional[Dict[str, QueryValue]] = None
        self._body: Optional[bytes] = None
        self.params: Dict[str, str] = {}
        self.body: Any = None
        self.state: Dict[str, Any] = {}
        self.container: Any = None
        self.route: Any = None

    @property
    def method(self) -> str:
        return self.scope.get("method", "GET").upper()

    @property
    def path(self) -> str:
        return self.scope.get("path", "/")

    @property
    def query_string(self) -> str:
        raw = self.scope.get("query_string", b"")
        return raw.decode("latin-1") if isinstance(raw, bytes) else raw

    @property
    def headers(self) -> Mapping[str, str]:
        """Headers with lowercased names; repeated headers are comma-joined."""
        if self._headers is None:
            headers: Dict[str, str] = {}
            for name, value in self.scope.get("headers", ()):
                key = name.decode("latin-1").lower()
                text = value.decode("latin-1")
                headers[key] = f"{headers[key]}, {text}" if key in headers else text
            self._headers = headers
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    @property
    def content_type(self) -> Optional[str]:
        value = self.header("content-type")
        if value is None:
            return None
        return value.split(";")[0].strip().lower()

    @property
    def query(self) -> Dict[str, QueryValue]:
        """
        Parsed query string.

        A key given once maps to a string, a repeated key to a list.
        """
        if self._query is None:
            query: Dict[str, QueryValue] = {}
            for key, value in parse_qsl(self.query_string, keep_blank_values=True):
                if key in query:
                    existing = query[key]
                    if isinstance(existing, list):
                        existing.append(value)
                    else:
                        query[key] = [existing, value]
                else:
                    query[key] = value
            self._query = query
        return self._query

    @property
    def client(self) -> Optional[tuple]:
        return self.scope.get("client")

    async def read_body(self, limit: Optional[int] = None) -> bytes:
        """
        Read the full request body (cached after the first call).

        Raises:
            PayloadTooLargeException: The body exceeds ``limit`` bytes
        """
        if self._body is not None:
            return self._body
        if self._receive is None:
            self._body = b""
            return self._body

        chunks: List[bytes] = []
        size = 0
        while True:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                break
            chunk = message.get("body", b"")
            size += len(chunk)
            if limit is not None and size > limit:
                raise PayloadTooLargeException(f"Request body exceeds {limit} bytes")
            chunks.append(chunk)
            if not message.get("more_body", False):
                break

        self._body = b"".join(chunks)
        return self._body

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"
