"""
Method results and the static-type resolver (controller/results.py,
serialization.py)
"""

import json
import pytest
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional
from unittest.mock import MagicMock

from larkspur.config import JSON_RESULT_OPTIONS, STATIC_TYPED_RESOLVER, ConfigContainer
from larkspur.controller import JsonResult, JsonResultResolvers, MethodResult, StringResult
from larkspur.serialization import TypedSerializer, resolve_static


class Role(Enum):
    ADMIN = "admin"
    GUEST = "guest"


@dataclass
class Address:
    city: str
    zip_code: str = ""


@dataclass
class Account:
    user_name: str
    age: int
    role: Role = Role.GUEST
    address: Optional[Address] = None
    tags: List[str] = field(default_factory=list)


def _configs(**options) -> ConfigContainer:
    configs = ConfigContainer()
    configs.update(JSON_RESULT_OPTIONS, {"indentation": False, "static_type": False, **options})
    configs.update(STATIC_TYPED_RESOLVER, TypedSerializer)
    return configs


# ============================================================================
# JsonResult
# ============================================================================

class TestJsonResult:

    def test_compact(self):
        assert JsonResult({"a": 1, "b": [1, 2]}).to_string(_configs()) == '{"a":1,"b":[1,2]}'

    def test_indented_with_tabs(self):
        text = JsonResult({"a": 1}).to_string(_configs(indentation=True))
        assert text == '{\n\t"a": 1\n}'

    def test_result_options_override_container(self):
        configs = _configs(indentation=True)
        assert JsonResult({"a": 1}, {"indentation": False}).to_string(configs) == '{"a":1}'
        assert configs.get(JSON_RESULT_OPTIONS)["indentation"] is True

    def test_key_resolver(self):
        value = {"userName": "x", "nested": {"zipCode": "1"}, "items": [{"itemId": 1}]}
        text = JsonResult(value, {"resolver": JsonResultResolvers.decamelize}).to_string(_configs())
        assert json.loads(text) == {"user_name": "x", "nested": {"zip_code": "1"}, "items": [{"item_id": 1}]}

    def test_static_type_resolver(self):
        account = Account(user_name="ann", age=30, role=Role.ADMIN, address=Address("Oslo"))
        text = JsonResult(account, {"resolver": JsonResultResolvers.camel}).to_string(_configs(static_type=True))
        assert json.loads(text) == {
            "userName": "ann",
            "age": 30,
            "role": "admin",
            "address": {"city": "Oslo", "zipCode": ""},
            "tags": [],
        }

    def test_static_type_disabled_uses_fallback_encoder(self):
        text = JsonResult({"when": date(2024, 1, 2), "ids": (1, 2)}).to_string(_configs())
        assert json.loads(text) == {"when": "2024-01-02", "ids": [1, 2]}

    def test_static_resolver_skipped_when_static_type_off(self):
        resolver = MagicMock()
        configs = _configs()
        configs.update(STATIC_TYPED_RESOLVER, resolver)
        text = JsonResult(Address("Oslo")).to_string(configs)
        assert json.loads(text) == {"city": "Oslo", "zip_code": ""}
        resolver.to_object.assert_not_called()

    def test_non_ascii_kept(self):
        assert JsonResult({"name": "Zoë"}).to_string(_configs()) == '{"name":"Zoë"}'

    def test_without_configs(self):
        assert JsonResult([1]).to_string(None) == "[1]"

    def test_content_type(self):
        assert JsonResult({}).content_type.startswith("application/json")

    def test_is_method_result(self):
        assert isinstance(JsonResult({}), MethodResult)
        assert isinstance(StringResult("x"), MethodResult)
        assert not isinstance("plain", MethodResult)


class TestStringResult:

    def test_str(self):
        assert StringResult(42).to_string(None) == "42"

    def test_bytes_decoded(self):
        assert StringResult("Zoë".encode("latin-1"), encoding="latin-1").to_string(None) == "Zoë"


class TestResolvers:

    @pytest.mark.parametrize("key, expected", [
        ("userName", "user_name"),
        ("HTTPServer", "http_server"),
        ("userID", "user_id"),
        ("plain", "plain"),
    ])
    def test_decamelize(self, key, expected):
        assert JsonResultResolvers.decamelize(key) == expected

    @pytest.mark.parametrize("key, expected", [
        ("user_name", "userName"),
        ("zip-code", "zipCode"),
        ("plain", "plain"),
        ("", ""),
    ])
    def test_camel(self, key, expected):
        assert JsonResultResolvers.camel(key) == expected


# ============================================================================
# TypedSerializer
# ============================================================================

class TestToObject:

    def test_dataclass_nested(self):
        account = Account(user_name="ann", age=3, address=Address("Oslo", "0150"), tags=["a"])
        assert TypedSerializer.to_object(account) == {
            "user_name": "ann",
            "age": 3,
            "role": "guest",
            "address": {"city": "Oslo", "zip_code": "0150"},
            "tags": ["a"],
        }

    def test_plain_values_unchanged(self):
        assert TypedSerializer.to_object("x") == "x"
        assert TypedSerializer.to_object(None) is None

    def test_model_dump(self):
        class Model:
            def model_dump(self):
                return {"dumped": True}

        assert TypedSerializer.to_object(Model()) == {"dumped": True}

    def test_resolve_static(self):
        assert resolve_static(None, Address("x")) == Address("x")
        assert resolve_static(TypedSerializer, Address("x")) == {"city": "x", "zip_code": ""}


class TestFromObject:

    def test_scalars(self):
        assert TypedSerializer.from_object("42", int) == 42
        assert TypedSerializer.from_object("1.5", float) == 1.5
        assert TypedSerializer.from_object(7, str) == "7"

    @pytest.mark.parametrize("raw, expected", [
        ("true", True), ("1", True), ("on", True),
        ("false", False), ("0", False), ("", False),
    ])
    def test_bool(self, raw, expected):
        assert TypedSerializer.from_object(raw, bool) is expected

    def test_invalid_bool(self):
        with pytest.raises(ValueError):
            TypedSerializer.from_object("maybe", bool)

    def test_invalid_int(self):
        with pytest.raises(ValueError):
            TypedSerializer.from_object("abc", int)

    def test_enum(self):
        assert TypedSerializer.from_object("admin", Role) is Role.ADMIN

    def test_optional(self):
        assert TypedSerializer.from_object("3", Optional[int]) == 3
        assert TypedSerializer.from_object(None, Optional[int]) is None

    def test_containers(self):
        assert TypedSerializer.from_object(["1", "2"], List[int]) == [1, 2]
        assert TypedSerializer.from_object("1", List[int]) == [1]
        assert TypedSerializer.from_object({"a": "1"}, Dict[str, int]) == {"a": 1}

    def test_dataclass(self):
        account = TypedSerializer.from_object(
            {"user_name": "ann", "age": "30", "role": "admin", "address": {"city": "Oslo"}, "tags": ["x"]},
            Account,
        )
        assert account == Account("ann", 30, Role.ADMIN, Address("Oslo"), ["x"])

    def test_dataclass_needs_object(self):
        with pytest.raises(TypeError):
            TypedSerializer.from_object([1, 2], Account)

    def test_dataclass_missing_field(self):
        with pytest.raises(TypeError):
            TypedSerializer.from_object({"user_name": "ann"}, Account)

    def test_model_validate(self):
        class Model:
            @classmethod
            def model_validate(cls, raw):
                return ("validated", raw)

        assert TypedSerializer.from_object({"a": 1}, Model) == ("validated", {"a": 1})

    def test_no_target(self):
        raw = {"a": 1}
        assert TypedSerializer.from_object(raw, None) is raw
