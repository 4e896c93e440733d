"""
Request - ASGI request wrapper.

Lazily parses the query string, caches the request body and exposes the
``query`` / ``param`` accessors used by controller parameter extraction.
Body parsers store their result on ``request.body``.
"""

from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass
from urllib.parse import parse_qs

from python_multipart.multipart import parse_options_header

from ..faults import PayloadTooLarge
from ..serialization import TypedSerializer


@dataclass
class UploadFile:
    """A file received in a multipart body."""

    filename: str
    content_type: str = "application/octet-stream"
    content: bytes = b""
    field_name: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)

    def text(self, encoding: str = "utf-8") -> str:
        return self.content.decode(encoding)


class Request:
    """
    HTTP request.

    Attributes:
        scope: ASGI scope
        path_params: Values captured from the matched path template
        body: Parsed body, ``None`` until a body parser ran
        files: Uploaded files (multipart bodies only)
        state: Free-form per-request storage for middleware
    """

    __slots__ = (
        "scope", "_receive", "_body", "_query", "_headers",
        "path_params", "body", "files", "state",
    )

    def __init__(self, scope: dict, receive: Callable, path_params: Optional[Dict[str, str]] = None):
        self.scope = scope
        self._receive = receive
        self._body: Optional[bytes] = None
        self._query: Optional[Dict[str, List[str]]] = None
        self._headers: Optional[Dict[str, str]] = None
        self.path_params: Dict[str, str] = path_params or {}
        self.body: Any = None
        self.files: Dict[str, List[UploadFile]] = {}
        self.state: Dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Basic attributes
    # ------------------------------------------------------------------

    @property
    def method(self) -> str:
        return self.scope.get("method", "GET").upper()

    @property
    def path(self) -> str:
        return self.scope.get("path", "/")

    @property
    def headers(self) -> Dict[str, str]:
        """Headers with lower-cased names. Repeated headers are joined with ``,``."""
        if self._headers is None:
            headers: Dict[str, str] = {}
            for raw_name, raw_value in self.scope.get("headers", []):
                name = raw_name.decode("latin-1").lower()
                value = raw_value.decode("latin-1")
                headers[name] = f"{headers[name]},{value}" if name in headers else value
            self._headers = headers
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    @property
    def content_type(self) -> Tuple[str, Dict[str, str]]:
        """Media type (lower-cased) and its parameters."""
        raw = self.headers.get("content-type")
        if not raw:
            return "", {}
        media_type, options = parse_options_header(raw)
        params = {
            (k.decode("latin-1") if isinstance(k, bytes) else k).lower():
            (v.decode("latin-1") if isinstance(v, bytes) else v)
            for k, v in options.items()
        }
        if isinstance(media_type, bytes):
            media_type = media_type.decode("latin-1")
        return media_type.lower(), params

    @property
    def content_length(self) -> Optional[int]:
        raw = self.headers.get("content-length")
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    # ------------------------------------------------------------------
    # Query and path parameters
    # ------------------------------------------------------------------

    @property
    def query_params(self) -> Dict[str, List[str]]:
        if self._query is None:
            raw = self.scope.get("query_string", b"").decode("latin-1")
            self._query = parse_qs(raw, keep_blank_values=True)
        return self._query

    def query(self, key: str, type: Any = None) -> Any:
        """
        First query-string value for ``key``, coerced to ``type`` when given.

        A ``list[...]`` type receives every value. Returns ``None`` if absent.
        """
        values = self.query_params.get(key)
        if not values:
            return None
        raw: Any = values if _wants_many(type) else values[0]
        return TypedSerializer.from_object(raw, type) if type is not None else raw

    def param(self, key: str, type: Any = None) -> Any:
        """Path parameter ``key``, coerced to ``type`` when given."""
        raw = self.path_params.get(key)
        if raw is None or type is None:
            return raw
        return TypedSerializer.from_object(raw, type)

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """Stream the body. Replays the cached body if it was already read."""
        if self._body is not None:
            yield self._body
            return
        while True:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                break
            chunk = message.get("body", b"")
            if chunk:
                yield chunk
            if not message.get("more_body", False):
                break

    async def read(self, limit: Optional[int] = None) -> bytes:
        """
        Read and cache the whole body.

        Raises:
            PayloadTooLarge: If the body exceeds ``limit`` bytes
        """
        if self._body is not None:
            _check_limit(len(self._body), limit)
            return self._body

        declared = self.content_length
        if declared is not None:
            _check_limit(declared, limit)

        chunks = bytearray()
        async for chunk in self.iter_bytes():
            chunks.extend(chunk)
            _check_limit(len(chunks), limit)
        self._body = bytes(chunks)
        return self._body

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"


def _check_limit(size: int, limit: Optional[int]) -> None:
    if limit is not None and size > limit:
        raise PayloadTooLarge("request entity too large", limit=limit, length=size)


def _wants_many(type: Any) -> bool:
    return getattr(type, "__origin__", None) in (list, tuple, set, frozenset)
