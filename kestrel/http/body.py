"""
Body parsing middleware.
"""

from __future__ import annotations

import json
import logging

from ..faults import BadRequestException
from .request import Request
from .response import Response


logger = logging.getLogger("kestrel.http.body")

DEFAULT_BODY_LIMIT = 1024 * 1024


def json_body_parser(limit: int = DEFAULT_BODY_LIMIT):
    """
    Parse ``application/json`` (and ``+json``) bodies into ``request.body``.

    Requests with another content type are passed through with
    ``request.body`` left as None. Malformed JSON answers 400 and an
    oversized body 413 through the default error path.
    """

    async def parse_json_body(request: Request, response: Response, next) -> None:
        content_type = request.content_type or ""
        if content_type == "application/json" or content_type.endswith("+json"):
            raw = await request.read_body(limit=limit)
            if raw.strip():
                try:
                    request.body = json.loads(raw)
                except ValueError as e:
                    logger.debug(f"Rejected malformed JSON body on {request.method} {request.path}: {e}")
                    raise BadRequestException("Invalid JSON body") from e
        await next()

    return parse_json_body
