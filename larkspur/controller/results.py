"""
Method results.

A controller method returns either a plain string (sent verbatim), a
``MethodResult`` (rendered with ``to_string(configs)``), or an awaitable
resolving to one of those.
"""

from typing import Any, Callable, Optional, Protocol, runtime_checkable
import dataclasses
import json
import re

from ..config import ConfigContainer, JSON_RESULT_OPTIONS, STATIC_TYPED_RESOLVER, JsonResultOptions
from ..serialization import resolve_static


@runtime_checkable
class MethodResult(Protocol):
    """Structured controller result."""

    def to_string(self, configs: ConfigContainer) -> str:
        ...


def _json_default(o: Any) -> Any:
    """Default JSON serializer for non-standard types."""
    if isinstance(o, (set, frozenset, tuple)):
        return list(o)
    if hasattr(o, "isoformat"):
        return o.isoformat()
    if dataclasses.is_dataclass(o) and not isinstance(o, type):
        return dataclasses.asdict(o)
    return str(o)


class JsonResult:
    """
    Represent the JSON to send by response.

    Options given here override ``JSON_RESULT_OPTIONS`` from the container.
    The ``STATIC_TYPED_RESOLVER`` converts the value only when ``static_type``
    is on; otherwise dataclasses, dates and sets go through the fallback
    JSON encoder.

    Example:
        return JsonResult({"userName": "x"}, {"resolver": JsonResultResolvers.decamelize})
    """

    content_type = "application/json; charset=utf-8"

    def __init__(self, value: Any, options: Optional[JsonResultOptions] = None):
        self.value = value
        self.options: JsonResultOptions = dict(options or {})

    def resolve_options(self, configs: Optional[ConfigContainer]) -> JsonResultOptions:
        defaults = configs.get(JSON_RESULT_OPTIONS) if configs is not None else None
        return {**(defaults or {}), **self.options}

    def to_string(self, configs: Optional[ConfigContainer]) -> str:
        options = self.resolve_options(configs)

        static_resolver = None
        if options.get("static_type") and configs is not None:
            static_resolver = configs.get(STATIC_TYPED_RESOLVER)

        payload = resolve_static(static_resolver, self.value)
        resolver = options.get("resolver")
        if resolver is not None:
            payload = _resolve_keys(payload, resolver, static_resolver)

        if options.get("indentation"):
            return json.dumps(payload, indent="\t", ensure_ascii=False, default=_json_default)
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=_json_default)

    def __repr__(self) -> str:
        return f"JsonResult({self.value!r})"


def _resolve_keys(target: Any, resolver: Callable[[str], str], static_resolver: Any) -> Any:
    if isinstance(target, dict):
        return {
            resolver(str(key)): _resolve_keys(resolve_static(static_resolver, item), resolver, static_resolver)
            for key, item in target.items()
        }
    if isinstance(target, (list, tuple)):
        return [
            _resolve_keys(resolve_static(static_resolver, item), resolver, static_resolver)
            for item in target
        ]
    return target


class StringResult:
    """Plain text result."""

    content_type = "text/plain; charset=utf-8"

    def __init__(self, value: Any, encoding: str = "utf-8"):
        self.value = value
        self.encoding = encoding

    def to_string(self, configs: Optional[ConfigContainer]) -> str:
        if isinstance(self.value, bytes):
            return self.value.decode(self.encoding)
        return str(self.value)

    def __repr__(self) -> str:
        return f"StringResult({self.value!r})"


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])|(?<=[A-Z])([A-Z])(?=[a-z])")
_SEPARATOR = re.compile(r"[_\-\s]+(\w)")


class JsonResultResolvers:
    """Key resolvers for ``JsonResultOptions.resolver``."""

    @staticmethod
    def decamelize(key: str, separator: str = "_") -> str:
        """``userName`` -> ``user_name``"""
        return _CAMEL_BOUNDARY.sub(lambda m: separator + (m.group(1) or m.group(2)), key).lower()

    @staticmethod
    def camel(key: str) -> str:
        """``user_name`` -> ``userName``"""
        if not key:
            return key
        converted = _SEPARATOR.sub(lambda m: m.group(1).upper(), key)
        return converted[0].lower() + converted[1:]


__all__ = [
    "MethodResult",
    "JsonResult",
    "StringResult",
    "JsonResultResolvers",
]
