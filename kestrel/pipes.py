"""
Pipes - value transformation and validation.

A pipe is any callable ``value -> value`` (sync or async). Parameter pipes
run on an extracted argument before the handler is called; route pipes run
on the handler's return value. A pipe rejects a value by raising
``ValidationFault``, which the dispatch handler answers with 400.

Example:
    @d.post("/")
    async def create(self, data: Annotated[dict, Body(SchemaPipe(CreateUser))]):
        ...
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Iterable

from pydantic import TypeAdapter, ValidationError

from .faults import ValidationFault


Pipe = Callable[[Any], Any]


async def run_pipes(value: Any, pipes: Iterable[Pipe]) -> Any:
    """Apply pipes in order, awaiting async ones."""
    for pipe in pipes:
        value = pipe(value)
        if inspect.isawaitable(value):
            value = await value
    return value


class SchemaPipe:
    """
    Validate (and coerce) a value against a pydantic model or any type
    pydantic understands.

    Errors are pydantic's own error dicts (``loc``, ``msg``, ``type``,
    ``input``).
    """

    __slots__ = ("schema", "adapter", "strict")

    def __init__(self, schema: Any, *, strict: bool = False):
        self.schema = schema
        self.adapter = TypeAdapter(schema)
        self.strict = strict

    def __call__(self, value: Any) -> Any:
        try:
            return self.adapter.validate_python(value, strict=self.strict)
        except ValidationError as e:
            raise ValidationFault(
                e.errors(include_url=False, include_context=False),
                message=f"Validation failed for {getattr(self.schema, '__name__', self.schema)!s}",
            ) from e

    def __repr__(self) -> str:
        return f"SchemaPipe({getattr(self.schema, '__name__', self.schema)!s})"


class ParseIntPipe:
    """Convert a numeric string to ``int``."""

    __slots__ = ()

    def __call__(self, value: Any) -> int:
        if isinstance(value, bool):
            raise _not_an_integer(value)
        if isinstance(value, int):
            return value
        try:
            return int(str(value).strip())
        except (TypeError, ValueError):
            raise _not_an_integer(value) from None

    def __repr__(self) -> str:
        return "ParseIntPipe()"


def _not_an_integer(value: Any) -> ValidationFault:
    return ValidationFault(
        [{"loc": [], "msg": "Value must be an integer", "type": "int_parsing", "input": value}],
        message="Validation failed (numeric string is expected)",
    )
