"""
Response - mutable HTTP response writer.

Handlers write into the response (``status()``, ``json()``, ``send()``);
the server transmits it once the handler chain has finished and then runs
the ``on_finish`` callbacks exactly once.
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..faults import ResponseAlreadySentError


logger = logging.getLogger("kestrel.http.response")

FinishCallback = Callable[[], Union[None, Awaitable[None]]]


def _json_default(o: Any) -> Any:
    """JSON serializer for non-standard types."""
    if hasattr(o, "model_dump"):
        return o.model_dump(mode="json")
    if isinstance(o, (set, frozenset, tuple)):
        return list(o)
    if hasattr(o, "isoformat"):
        return o.isoformat()
    return str(o)


def dumps(data: Any) -> bytes:
    return json.dumps(data, default=_json_default, separators=(",", ":")).encode("utf-8")


class Response:
    """
    HTTP response writer.

    Example:
        response.status(404).json({"message": "not found"})
    """

    __slots__ = (
        "status_code",
        "headers",
        "body",
        "_sent",
        "_finished",
        "_finish_callbacks",
    )

    def __init__(self):
        self.status_code = 200
        self.headers: Dict[str, str] = {}
        self.body = b""
        self._sent = False
        self._finished = False
        self._finish_callbacks: List[FinishCallback] = []

    @property
    def headers_sent(self) -> bool:
        """True once a body has been written."""
        return self._sent

    @property
    def finished(self) -> bool:
        return self._finished

    def status(self, code: int) -> "Response":
        self._check_not_sent()
        self.status_code = int(code)
        return self

    def set_header(self, name: str, value: str) -> "Response":
        self._check_not_sent()
        self.headers[name.lower()] = str(value)
        return self

    def json(self, data: Any) -> "Response":
        self._check_not_sent()
        self.headers.setdefault("content-type", "application/json; charset=utf-8")
        return self._commit(dumps(data))

    def send(self, content: Any = None) -> "Response":
        """
        Write the body, choosing the encoding from the content type.

        dict/list/number/bool and objects exposing ``model_dump`` are sent as
        JSON, ``str`` as HTML text, ``bytes`` as-is, ``None`` as an empty body.
        """
        self._check_not_sent()
        if content is None:
            return self._commit(b"")
        if isinstance(content, (bytes, bytearray)):
            self.headers.setdefault("content-type", "application/octet-stream")
            return self._commit(bytes(content))
        if isinstance(content, str):
            self.headers.setdefault("content-type", "text/html; charset=utf-8")
            return self._commit(content.encode("utf-8"))
        return self.json(content)

    def end(self) -> "Response":
        self._check_not_sent()
        return self._commit(b"")

    def on_finish(self, callback: FinishCallback) -> None:
        """Register a callback run once after the response has been sent."""
        self._finish_callbacks.append(callback)

    def _commit(self, body: bytes) -> "Response":
        self.body = body
        self._sent = True
        return self

    def _check_not_sent(self) -> None:
        if self._sent:
            raise ResponseAlreadySentError()

    async def send_asgi(self, send: Callable[[dict], Awaitable[None]]) -> None:
        headers = dict(self.headers)
        headers["content-length"] = str(len(self.body))
        await send({
            "type": "http.response.start",
            "status": self.status_code,
            "headers": [
                (name.encode("latin-1"), value.encode("latin-1"))
                for name, value in headers.items()
            ],
        })
        await send({"type": "http.response.body", "body": self.body, "more_body": False})

    async def finish(self) -> None:
        """
        Run finish callbacks exactly once.

        Callback failures are logged and swallowed.
        """
        if self._finished:
            return
        self._finished = True
        callbacks, self._finish_callbacks = self._finish_callbacks, []
        for callback in callbacks:
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Error in response finish callback: {e}", exc_info=True)

    def __repr__(self) -> str:
        state = "sent" if self._sent else "pending"
        return f"<Response {self.status_code} {state}>"
