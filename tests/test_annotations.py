"""
Postponed annotations (metadata/reflection.py)

Parameter bindings are read from string annotations, so every name a route
signature uses must resolve from the module's globals.
"""

from __future__ import annotations

import pytest
from dataclasses import dataclass
from typing import Annotated

from larkspur.controller import GET, POST, controller
from larkspur.faults import ConfigurationError
from larkspur.metadata import FormParser, FromBody, Reflection


@dataclass
class Payload:
    name: str


@controller("items")
class ItemsController:

    @POST("new")
    async def create(self, item: Annotated[Payload, FromBody()]):
        return item.name

    @GET("{id}")
    async def show(self, id: int):
        return str(id)


class TestPostponedAnnotations:

    def test_body_binding_resolved(self):
        route = Reflection.get_controller_metadata(ItemsController).routes["create"]
        assert route.form is not None
        assert route.form.parser is FormParser.JSON
        assert route.form.type is Payload
        (param,) = route.func_params
        assert param.type is Payload
        assert param.is_query is False

    def test_path_param_type_resolved(self):
        route = Reflection.get_controller_metadata(ItemsController).routes["show"]
        (param,) = route.func_params
        assert param.type is int
        assert param.is_query is False

    def test_locally_defined_type_is_rejected(self):
        @dataclass
        class LocalPayload:
            name: str

        with pytest.raises(ConfigurationError) as exc:
            @controller("local")
            class LocalController:
                @POST("items")
                async def create(self, item: Annotated[LocalPayload, FromBody()]):
                    return item.name

        assert exc.value.code == "UNRESOLVABLE_ANNOTATION"
        assert exc.value.metadata == {"method_name": "create"}
        assert "LocalController.create" in exc.value.message
