"""
Static-type resolver.

Converts between domain objects and plain wire shapes (dicts, lists and
scalars). Used by ``JsonResult`` when static typing is enabled and by the
request pipeline to coerce query, path and body values into the declared
parameter types.
"""

from typing import Any, Dict, Optional, Union, get_args, get_origin, get_type_hints
import dataclasses
import enum
import types


_TRUE = frozenset({"true", "1", "yes", "on"})
_FALSE = frozenset({"false", "0", "no", "off", ""})


class TypedSerializer:
    """
    Default ``STATIC_TYPED_RESOLVER``.

    Supports dataclasses, enums, generic containers (``list[T]``,
    ``dict[str, T]``, ``Optional[T]``) and any class exposing pydantic-style
    ``model_validate`` / ``model_dump``.

    Example:
        TypedSerializer.from_object({"name": "a", "age": "3"}, User)
        TypedSerializer.to_object(User(name="a", age=3))  # {"name": "a", "age": 3}
    """

    @classmethod
    def to_object(cls, value: Any) -> Any:
        """Convert a domain object to its wire shape. Identity for plain values."""
        if value is None or isinstance(value, (str, int, float, bool)):
            return value
        if isinstance(value, enum.Enum):
            return value.value
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return {f.name: cls.to_object(getattr(value, f.name)) for f in dataclasses.fields(value)}
        if hasattr(value, "model_dump"):
            return value.model_dump()
        if isinstance(value, dict):
            return {key: cls.to_object(item) for key, item in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            return [cls.to_object(item) for item in value]
        return value

    @classmethod
    def from_object(cls, raw: Any, target: Any) -> Any:
        """
        Coerce a wire value into ``target``.

        Raises:
            ValueError: If the value cannot be converted
            TypeError: If the value has the wrong shape for ``target``
        """
        if target is None or target is Any or raw is None:
            return raw

        origin = get_origin(target)
        if origin is Union or origin is types.UnionType:
            return cls._from_union(raw, get_args(target))
        if origin in (list, tuple, set, frozenset):
            args = get_args(target)
            item_type = args[0] if args else None
            items = raw if isinstance(raw, (list, tuple, set, frozenset)) else [raw]
            converted = [cls.from_object(item, item_type) for item in items]
            return converted if origin is list else origin(converted)
        if origin is dict:
            args = get_args(target)
            value_type = args[1] if len(args) == 2 else None
            return {key: cls.from_object(item, value_type) for key, item in _as_mapping(raw, target).items()}
        if origin is not None:
            target = origin

        if not isinstance(target, type):
            return raw
        if isinstance(raw, target) and not (target is int and isinstance(raw, bool)):
            return raw
        if target is bool:
            return _to_bool(raw)
        if target in (int, float, str):
            return target(raw)
        if target is bytes:
            return raw.encode() if isinstance(raw, str) else bytes(raw)
        if issubclass(target, enum.Enum):
            return target(raw)
        if hasattr(target, "model_validate"):
            return target.model_validate(raw)
        if dataclasses.is_dataclass(target):
            return cls._from_dataclass(raw, target)

        if isinstance(raw, dict):
            return target(**raw)
        return target(raw)

    @classmethod
    def _from_union(cls, raw: Any, options: tuple) -> Any:
        candidates = [option for option in options if option is not type(None)]
        errors = []
        for option in candidates:
            try:
                return cls.from_object(raw, option)
            except (TypeError, ValueError) as exc:
                errors.append(exc)
        if not candidates:
            return raw
        raise ValueError(f"{raw!r} matches none of {candidates}: {errors[-1]}")

    @classmethod
    def _from_dataclass(cls, raw: Any, target: type) -> Any:
        data = _as_mapping(raw, target)
        try:
            hints = get_type_hints(target)
        except Exception:
            hints = {}
        kwargs = {}
        for f in dataclasses.fields(target):
            if not f.init or f.name not in data:
                continue
            kwargs[f.name] = cls.from_object(data[f.name], hints.get(f.name, f.type))
        return target(**kwargs)


def _as_mapping(raw: Any, target: Any) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise TypeError(f"Expected an object for {target!r}, got {type(raw).__name__}")
    return raw


def _to_bool(raw: Any) -> bool:
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ValueError(f"Invalid boolean value: {raw!r}")
    return bool(raw)


def resolve_static(resolver: Optional[Any], value: Any) -> Any:
    """``resolver.to_object(value)`` falling back to ``value`` when there is no resolver or it returns None."""
    if resolver is None:
        return value
    converted = resolver.to_object(value)
    return value if converted is None else converted
