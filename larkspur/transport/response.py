"""
Response - ASGI response writer.

Collects status and headers, then writes the whole body in one ``send``.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple, Union
import json

from ..faults import FlowFault


class ResponseAlreadySent(FlowFault):
    """A handler tried to write a response twice."""

    def __init__(self, path: str):
        super().__init__(
            code="RESPONSE_ALREADY_SENT",
            message=f"Response for '{path}' was already sent",
            metadata={"path": path},
        )


class Response:
    """
    HTTP response bound to one ASGI ``send`` callable.

    Example:
        response.status(201).set_header("location", "/users/1")
        await response.send('{"id": 1}', content_type="application/json")
    """

    __slots__ = ("_send", "_path", "status_code", "_headers", "_sent")

    def __init__(self, send: Callable, path: str = ""):
        self._send = send
        self._path = path
        self.status_code = 200
        self._headers: Dict[str, str] = {}
        self._sent = False

    @property
    def sent(self) -> bool:
        return self._sent

    @property
    def headers(self) -> Dict[str, str]:
        return self._headers

    def status(self, code: int) -> "Response":
        self.status_code = code
        return self

    def set_header(self, name: str, value: str) -> "Response":
        self._headers[name.lower()] = value
        return self

    def get_header(self, name: str) -> Optional[str]:
        return self._headers.get(name.lower())

    async def send(
        self,
        payload: Union[str, bytes, None] = None,
        *,
        content_type: Optional[str] = None,
    ) -> None:
        """
        Write status, headers and body.

        Strings default to ``text/plain; charset=utf-8``, bytes to
        ``application/octet-stream``.

        Raises:
            ResponseAlreadySent: If called twice
        """
        if self._sent:
            raise ResponseAlreadySent(self._path)

        if payload is None:
            body = b""
        elif isinstance(payload, bytes):
            body = payload
            content_type = content_type or "application/octet-stream"
        else:
            body = str(payload).encode("utf-8")
            content_type = content_type or "text/plain; charset=utf-8"

        if content_type and "content-type" not in self._headers:
            self._headers["content-type"] = content_type
        self._headers["content-length"] = str(len(body))

        self._sent = True
        await self._send({
            "type": "http.response.start",
            "status": self.status_code,
            "headers": self._prepare_headers(),
        })
        await self._send({"type": "http.response.body", "body": body})

    async def json(self, obj: Any, status: Optional[int] = None) -> None:
        """Send ``obj`` as compact JSON."""
        if status is not None:
            self.status_code = status
        await self.send(
            json.dumps(obj, separators=(",", ":"), default=str),
            content_type="application/json; charset=utf-8",
        )

    async def end(self) -> None:
        """Send an empty body with the current status."""
        await self.send(None)

    def _prepare_headers(self) -> List[Tuple[bytes, bytes]]:
        return [
            (name.encode("latin-1"), value.encode("latin-1"))
            for name, value in self._headers.items()
        ]

    def __repr__(self) -> str:
        return f"<Response {self.status_code} sent={self._sent}>"
