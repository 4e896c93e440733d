"""
Config system - Option container and server settings.

Two layers:
- ``ConfigContainer``: process-wide keyed store of option objects read by
  body parsers and result serializers. Plain data bags merge, instances of
  user-defined types replace.
- ``ServerSettings``: bootstrap settings (host, port, log level) loaded with
  precedence overrides > environment > .env file > defaults.
"""

from typing import Any, Callable, Dict, Generic, Iterator, Mapping, Optional, TypedDict, TypeVar
from dataclasses import dataclass, fields
import logging
import os

from dotenv import dotenv_values


T = TypeVar("T")

logger = logging.getLogger("larkspur.config")


class ConfigKey(Generic[T]):
    """
    Typed key for an option stored in a ``ConfigContainer``.

    Keys compare by identity, so two keys with the same name never collide.
    """

    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"ConfigKey({self.name!r})"


@dataclass(frozen=True)
class OptionRecord(Generic[T]):
    """A ``{key, value}`` pair stored in a ``ConfigContainer``."""

    key: ConfigKey[T]
    value: T


def create_options(key: ConfigKey[T], value: T) -> OptionRecord[T]:
    """Build an option record."""
    return OptionRecord(key=key, value=value)


def is_data_bag(value: Any) -> bool:
    """Plain mappings merge; everything else is an opaque value that replaces."""
    return isinstance(value, Mapping)


class ConfigContainer:
    """
    Keyed store of configuration option objects.

    Example:
        configs.set(create_options(BODY_JSON_PARSER, {"limit": "1mb"}))
        configs.get(BODY_JSON_PARSER)["strict"]  # default kept, limit merged
    """

    def __init__(self):
        self._options: Dict[ConfigKey, Any] = {}

    def get(self, key: ConfigKey[T], default: Optional[T] = None) -> Optional[T]:
        return self._options.get(key, default)

    def set(self, record: OptionRecord[T]) -> None:
        """Store a record, replacing any previous value."""
        self._options[record.key] = record.value

    def update(self, key: ConfigKey[T], value: T) -> T:
        """
        Store ``value`` under ``key`` with merge semantics.

        A plain data bag merges field by field into the existing value. An
        instance of a user-defined type (or any other non-mapping value)
        replaces the old value wholesale.
        """
        if is_data_bag(value):
            merged = _merge(self._options.get(key), value)
        else:
            merged = value
        self.set(create_options(key, merged))
        return merged

    def __contains__(self, key: ConfigKey) -> bool:
        return key in self._options

    def __iter__(self) -> Iterator[ConfigKey]:
        return iter(self._options)

    def __len__(self) -> int:
        return len(self._options)


def _merge(existing: Any, incoming: Mapping[str, Any]) -> Any:
    if existing is None:
        return dict(incoming)
    if isinstance(existing, Mapping):
        return {**existing, **incoming}
    # Opaque object already stored: assign fields onto it
    for name, value in incoming.items():
        setattr(existing, name, value)
    return existing


# ============================================================================
# Built-in option keys and defaults
# ============================================================================

class JsonResultOptions(TypedDict, total=False):
    """JSON serialization configuration for ``JsonResult``."""

    indentation: bool
    resolver: Callable[[str], str]
    static_type: bool


class BodyParserOptions(TypedDict, total=False):
    """Body parser configuration (json/raw/text/url-encoded)."""

    limit: str | int
    inflate: bool
    type: str
    strict: bool
    parameter_limit: int
    default_charset: str
    extended: bool


JSON_RESULT_OPTIONS: ConfigKey[JsonResultOptions] = ConfigKey("json_result_options")
BODY_JSON_PARSER: ConfigKey[BodyParserOptions] = ConfigKey("body_json_parser")
BODY_URLENCODED_PARSER: ConfigKey[BodyParserOptions] = ConfigKey("body_urlencoded_parser")
BODY_RAW_PARSER: ConfigKey[BodyParserOptions] = ConfigKey("body_raw_parser")
BODY_TEXT_PARSER: ConfigKey[BodyParserOptions] = ConfigKey("body_text_parser")
STATIC_TYPED_RESOLVER: ConfigKey[Any] = ConfigKey("static_typed_resolver")


def default_json_result_options() -> JsonResultOptions:
    return {"indentation": True, "static_type": False}


def default_json_options() -> BodyParserOptions:
    return {
        "inflate": True,
        "limit": "10mb",
        "strict": True,
        "type": "application/json",
    }


def default_urlencoded_options() -> BodyParserOptions:
    return {
        "extended": False,
        "inflate": True,
        "parameter_limit": 1000,
        "type": "application/x-www-form-urlencoded",
    }


def default_text_options() -> BodyParserOptions:
    return {
        "default_charset": "utf-8",
        "inflate": True,
        "limit": "10mb",
        "type": "text/plain",
    }


def default_raw_options() -> BodyParserOptions:
    return {
        "inflate": True,
        "limit": "10mb",
        "type": "application/octet-stream",
    }


# ============================================================================
# Server settings
# ============================================================================

@dataclass
class ServerSettings:
    """Bootstrap settings consumed by ``Application.run``."""

    host: str = "127.0.0.1"
    port: int = 3000
    log_level: str = "info"

    @classmethod
    def load(
        cls,
        *,
        env_prefix: str = "LARKSPUR_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ServerSettings":
        """
        Load settings.

        Merge order (later overrides earlier):
        1. Dataclass defaults
        2. ``.env`` file (only ``env_prefix`` keys)
        3. Environment variables (``env_prefix`` keys)
        4. Manual overrides
        """
        data: Dict[str, Any] = {}

        if env_file:
            data.update(cls._from_mapping(dotenv_values(env_file), env_prefix))
        data.update(cls._from_mapping(os.environ, env_prefix))
        if overrides:
            data.update({k: v for k, v in overrides.items() if v is not None})

        settings = cls()
        for f in fields(cls):
            if f.name in data:
                setattr(settings, f.name, _coerce(data[f.name], type(getattr(settings, f.name))))

        logger.debug(f"Server settings loaded: {settings}")
        return settings

    @staticmethod
    def _from_mapping(source: Mapping[str, Optional[str]], prefix: str) -> Dict[str, Any]:
        result = {}
        for key, value in source.items():
            if value is None or not key.startswith(prefix):
                continue
            result[key[len(prefix):].lower()] = value
        return result


def _coerce(value: Any, target: type) -> Any:
    if isinstance(value, target):
        return value
    if target is int:
        return int(value)
    if target is bool:
        return str(value).lower() in ("true", "1", "yes", "on")
    return target(value)
