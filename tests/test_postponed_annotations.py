"""
Handler markers under postponed evaluation of annotations.
"""

from __future__ import annotations

from typing import Annotated

import pytest

from kestrel import Body, Param
from kestrel.faults import ConfigurationError
from kestrel.metadata import MetadataKind, ParamKind


class Payload:
    pass


class TestPostponedAnnotations:

    def test_module_level_types_resolve(self, registry, d):
        class Controller:
            @d.post("/:id")
            def create(self, data: Annotated[Payload, Body()], uid: Annotated[str, Param("id")]):
                pass

        params = registry.read(Controller, "create", MetadataKind.PARAMS)
        assert [(p.index, p.kind, p.key) for p in params] == [
            (0, ParamKind.BODY, None),
            (1, ParamKind.PATH, "id"),
        ]

    def test_unresolvable_type_fails_at_registration(self, registry, d):
        class LocalPayload:
            pass

        with pytest.raises(ConfigurationError) as exc_info:
            class Controller:
                @d.post("/:id")
                def create(self, data: Annotated[LocalPayload, Body()], uid: Annotated[str, Param("id")]):
                    pass

        error = exc_info.value
        assert error.code == "UNRESOLVED_ANNOTATION"
        assert error.metadata["parameters"] == ["data"]
        assert "create" in error.message
        assert len(registry) == 0
