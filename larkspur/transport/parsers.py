"""
Body parser middleware factories.

Each factory returns a middleware ``async (request, response, next)`` that
parses the body into ``request.body`` when the request's content type
matches, and leaves ``request.body`` as ``None`` otherwise.

Defaults:
    json/raw/text: 10mb limit; json strict mode on
    url_encoded: 1000 parameters at most
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import parse_qsl
import gzip
import json as _json
import logging
import re
import zlib

from python_multipart import MultipartParser
from python_multipart.multipart import parse_options_header

from ..config import (
    default_json_options,
    default_raw_options,
    default_text_options,
    default_urlencoded_options,
)
from ..faults import BadRequest, PayloadTooLarge, RequestFault
from .request import Request, UploadFile


logger = logging.getLogger("larkspur.transport.parsers")

Middleware = Callable[[Request, Any, Callable[[], Awaitable[None]]], Awaitable[None]]

DEFAULT_URLENCODED_LIMIT = "100kb"
DEFAULT_MULTIPART_LIMIT = "10mb"

_UNITS = {"b": 1, "kb": 1 << 10, "mb": 1 << 20, "gb": 1 << 30}
_SIZE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(b|kb|mb|gb)?\s*$", re.IGNORECASE)
_BRACKETS = re.compile(r"\[([^\]]*)\]")


class UnsupportedMediaType(RequestFault):
    """Body encoding or charset the parser cannot handle."""

    def __init__(self, message: str, **metadata):
        super().__init__("UNSUPPORTED_MEDIA_TYPE", message, status=415, **metadata)


def parse_size(value: Union[str, int, None]) -> Optional[int]:
    """
    Convert ``"10mb"`` style sizes to bytes (1024 based).

    Integers are taken as bytes; ``None`` means unlimited.
    """
    if value is None or isinstance(value, int):
        return value
    match = _SIZE.match(value)
    if match is None:
        raise ValueError(f"Invalid size: {value!r}")
    number, unit = match.groups()
    return int(float(number) * _UNITS[(unit or "b").lower()])


def type_matches(request: Request, expected: Union[str, List[str], Callable[[Request], bool]]) -> bool:
    """Check the request's media type against ``expected``."""
    if callable(expected):
        return bool(expected(request))
    media_type, _ = request.content_type
    if not media_type:
        return False
    candidates = [expected] if isinstance(expected, str) else list(expected)
    for candidate in candidates:
        candidate = candidate.lower()
        if candidate == media_type:
            return True
        if candidate.endswith("/*") and media_type.startswith(candidate[:-1]):
            return True
        if candidate.startswith("*/") and media_type.endswith(candidate[1:]):
            return True
        if candidate == "application/json" and media_type.endswith("+json"):
            return True
    return False


async def read_body(request: Request, options: Dict[str, Any], default_limit: Optional[str] = None) -> bytes:
    """Read, size-check and inflate the request body."""
    limit = parse_size(options.get("limit", default_limit))
    data = await request.read(limit)

    encoding = request.header("content-encoding", "identity").strip().lower()
    if encoding == "identity":
        return data
    if not options.get("inflate", True):
        raise UnsupportedMediaType(f'content encoding "{encoding}" is not supported', encoding=encoding)

    try:
        if encoding in ("gzip", "x-gzip"):
            data = gzip.decompress(data)
        elif encoding == "deflate":
            data = zlib.decompress(data)
        else:
            raise UnsupportedMediaType(f'unsupported content encoding "{encoding}"', encoding=encoding)
    except (OSError, zlib.error) as exc:
        raise BadRequest(f"invalid {encoding} body: {exc}") from exc

    if limit is not None and len(data) > limit:
        raise PayloadTooLarge("request entity too large", limit=limit, length=len(data))
    return data


def _charset(request: Request, default: str = "utf-8") -> str:
    _, params = request.content_type
    return params.get("charset", default).lower()


def _decode(data: bytes, charset: str) -> str:
    try:
        return data.decode(charset)
    except LookupError as exc:
        raise UnsupportedMediaType(f'unsupported charset "{charset.upper()}"', charset=charset) from exc
    except UnicodeDecodeError as exc:
        raise BadRequest(f"invalid {charset} body") from exc


# ============================================================================
# Factories
# ============================================================================

def json(options: Optional[Dict[str, Any]] = None) -> Middleware:
    """
    Parse ``application/json`` bodies.

    In strict mode the top-level value must be an object or an array. An
    empty body parses to ``{}``.
    """
    opts = {**default_json_options(), **(options or {})}

    async def json_parser(request: Request, response: Any, next: Callable) -> None:
        if type_matches(request, opts["type"]):
            text = _decode(await read_body(request, opts), _charset(request)).strip()
            if not text:
                request.body = {}
            else:
                if opts.get("strict", True) and text[0] not in "{[":
                    raise BadRequest(
                        f"strict mode: top-level JSON value must be an object or array, got {text[:16]!r}"
                    )
                try:
                    request.body = _json.loads(text)
                except ValueError as exc:
                    raise BadRequest(f"invalid JSON body: {exc}") from exc
        await next()

    return json_parser


def url_encoded(options: Optional[Dict[str, Any]] = None) -> Middleware:
    """
    Parse ``application/x-www-form-urlencoded`` bodies.

    Repeated keys become lists. With ``extended`` enabled, bracket keys
    (``user[name]=x``, ``tags[]=a``) nest into dicts and lists.
    """
    opts = {**default_urlencoded_options(), **(options or {})}

    async def url_encoded_parser(request: Request, response: Any, next: Callable) -> None:
        if type_matches(request, opts["type"]):
            text = _decode(await read_body(request, opts, DEFAULT_URLENCODED_LIMIT), _charset(request))
            parameter_limit = opts.get("parameter_limit", 1000)
            count = text.count("&") + 1 if text else 0
            if parameter_limit is not None and count > parameter_limit:
                raise PayloadTooLarge("too many parameters", limit=parameter_limit, count=count)
            pairs = parse_qsl(text, keep_blank_values=True)
            request.body = _nest(pairs) if opts.get("extended") else _flat(pairs)
        await next()

    return url_encoded_parser


def raw(options: Optional[Dict[str, Any]] = None) -> Middleware:
    """Read ``application/octet-stream`` bodies as bytes."""
    opts = {**default_raw_options(), **(options or {})}

    async def raw_parser(request: Request, response: Any, next: Callable) -> None:
        if type_matches(request, opts["type"]):
            request.body = await read_body(request, opts)
        await next()

    return raw_parser


def text(options: Optional[Dict[str, Any]] = None) -> Middleware:
    """Read ``text/plain`` bodies as ``str``."""
    opts = {**default_text_options(), **(options or {})}

    async def text_parser(request: Request, response: Any, next: Callable) -> None:
        if type_matches(request, opts["type"]):
            data = await read_body(request, opts)
            request.body = _decode(data, _charset(request, opts.get("default_charset", "utf-8")))
        await next()

    return text_parser


class _Multipart:
    """``multipart/form-data`` parser factories."""

    def any(self, options: Optional[Dict[str, Any]] = None) -> Middleware:
        """
        Accept every field and file.

        Text fields go to ``request.body`` (repeated names become lists),
        files to ``request.files``.
        """
        opts = dict(options or {})

        async def multipart_parser(request: Request, response: Any, next: Callable) -> None:
            media_type, params = request.content_type
            if media_type == "multipart/form-data":
                boundary = params.get("boundary")
                if not boundary:
                    raise BadRequest("No boundary in multipart Content-Type")
                limit = parse_size(opts.get("limit", DEFAULT_MULTIPART_LIMIT))
                fields, files = await _parse_multipart(request, boundary.encode("latin-1"), limit)
                request.body = fields
                request.files = files
            await next()

        return multipart_parser


multipart = _Multipart()


async def _parse_multipart(
    request: Request,
    boundary: bytes,
    limit: Optional[int],
) -> Tuple[Dict[str, Any], Dict[str, List[UploadFile]]]:
    pairs: List[Tuple[str, str]] = []
    files: Dict[str, List[UploadFile]] = {}
    part: Dict[str, Any] = {}
    header = {"field": bytearray(), "value": bytearray()}

    def on_part_begin():
        part.clear()
        part.update(headers={}, data=bytearray())

    def on_part_data(data: bytes, start: int, end: int):
        part["data"].extend(data[start:end])

    def on_header_field(data: bytes, start: int, end: int):
        header["field"].extend(data[start:end])

    def on_header_value(data: bytes, start: int, end: int):
        header["value"].extend(data[start:end])

    def on_header_end():
        name = header["field"].decode("latin-1").lower()
        part["headers"][name] = header["value"].decode("utf-8", errors="replace")
        header["field"] = bytearray()
        header["value"] = bytearray()

    def on_part_end():
        disposition = part["headers"].get("content-disposition", "")
        _, disposition_options = parse_options_header(disposition)
        name = _text(disposition_options.get(b"name"))
        if not name:
            return
        filename = _text(disposition_options.get(b"filename"))
        if filename is not None:
            upload = UploadFile(
                filename=filename,
                content_type=part["headers"].get("content-type", "application/octet-stream"),
                content=bytes(part["data"]),
                field_name=name,
            )
            files.setdefault(name, []).append(upload)
        else:
            pairs.append((name, part["data"].decode("utf-8", errors="replace")))

    parser = MultipartParser(boundary, {
        "on_part_begin": on_part_begin,
        "on_part_data": on_part_data,
        "on_part_end": on_part_end,
        "on_header_field": on_header_field,
        "on_header_value": on_header_value,
        "on_header_end": on_header_end,
    })

    received = 0
    try:
        async for chunk in request.iter_bytes():
            received += len(chunk)
            if limit is not None and received > limit:
                raise PayloadTooLarge("request entity too large", limit=limit, length=received)
            parser.write(chunk)
        parser.finalize()
    except RequestFault:
        raise
    except Exception as exc:
        raise BadRequest(f"Multipart parsing failed: {exc}") from exc

    return _flat(pairs), files


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.decode("utf-8") if isinstance(value, bytes) else value


# ============================================================================
# Form helpers
# ============================================================================

def _flat(pairs: List[Tuple[str, str]]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in pairs:
        if key not in result:
            result[key] = value
        elif isinstance(result[key], list):
            result[key].append(value)
        else:
            result[key] = [result[key], value]
    return result


def _nest(pairs: List[Tuple[str, str]]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in pairs:
        head = key.split("[", 1)[0]
        path = [head] + _BRACKETS.findall(key[len(head):]) if head else [key]
        _assign(result, path, value)
    return result


def _assign(container: Dict[str, Any], path: List[str], value: str) -> None:
    key, rest = path[0], path[1:]
    if not rest:
        existing = container.get(key)
        if existing is None:
            container[key] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            container[key] = [existing, value]
        return

    if rest[0] == "":
        target = container.setdefault(key, [])
        if not isinstance(target, list):
            target = container[key] = [target]
        if len(rest) == 1:
            target.append(value)
        else:
            child: Dict[str, Any] = {}
            _assign(child, rest[1:], value)
            target.append(child)
        return

    target = container.setdefault(key, {})
    if not isinstance(target, dict):
        target = container[key] = {"": target}
    _assign(target, rest, value)


__all__ = [
    "UnsupportedMediaType",
    "parse_size",
    "type_matches",
    "read_body",
    "json",
    "url_encoded",
    "raw",
    "text",
    "multipart",
]
