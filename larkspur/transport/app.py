"""
Transport - minimal ASGI application with per-verb handler chains.

Handlers are ``async def handler(request, response, next)``; calling
``await next()`` runs the rest of the chain. Plain (sync) handlers are
accepted as well.

Path templates use ``{name}`` segments (``{name:path}`` matches across
slashes). A path that matches no route answers 404; a path that matches with
a different verb answers 405.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
import inspect
import logging
import re

from ..faults import Fault, FaultContext, HandlerFault
from .request import Request
from .response import Response


Handler = Callable[..., Any]

_TEMPLATE_PARAM = re.compile(r"\{(\w+)(?::(\w+))?\}")
_CONVERTERS = {
    None: r"[^/]+",
    "str": r"[^/]+",
    "int": r"-?\d+",
    "path": r".+",
}


def compile_path(path: str) -> Tuple[re.Pattern, List[str]]:
    """Compile a ``{name}`` path template to a regex and its parameter names."""
    normalized = _strip_trailing(path)
    names: List[str] = []
    pattern = ""
    last = 0
    for match in _TEMPLATE_PARAM.finditer(normalized):
        name, converter = match.groups()
        if converter not in _CONVERTERS:
            raise ValueError(f"Unknown path converter '{converter}' in {path!r}")
        pattern += re.escape(normalized[last:match.start()])
        pattern += f"(?P<{name}>{_CONVERTERS[converter]})"
        names.append(name)
        last = match.end()
    pattern += re.escape(normalized[last:])
    return re.compile(f"^{pattern}$"), names


def _strip_trailing(path: str) -> str:
    return path.rstrip("/") or "/"


@dataclass
class TransportRoute:
    """One ``verb path -> handlers`` registration."""

    method: str
    path: str
    handlers: Tuple[Handler, ...]
    pattern: re.Pattern = field(init=False, repr=False)
    param_names: List[str] = field(init=False, repr=False)

    def __post_init__(self):
        self.pattern, self.param_names = compile_path(self.path)

    def match(self, path: str) -> Optional[Dict[str, str]]:
        found = self.pattern.match(_strip_trailing(path))
        return found.groupdict() if found else None


class Transport:
    """
    ASGI 3 application.

    Example:
        transport = Transport()
        transport.get("/hello/{name}", greet)
        uvicorn.run(transport)
    """

    def __init__(self):
        self.routes: List[TransportRoute] = []
        self.on_startup: List[Callable[[], Any]] = []
        self.on_shutdown: List[Callable[[], Any]] = []
        self.logger = logging.getLogger("larkspur.transport")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_route(self, method: str, path: str, *handlers: Handler) -> TransportRoute:
        if not handlers:
            raise ValueError(f"No handlers given for {method} {path}")
        route = TransportRoute(method=method.upper(), path=path, handlers=tuple(handlers))
        self.routes.append(route)
        self.logger.debug(f"Registered {route.method} {route.path} ({len(handlers)} handler(s))")
        return route

    def get(self, path: str, *handlers: Handler) -> TransportRoute:
        return self.add_route("GET", path, *handlers)

    def post(self, path: str, *handlers: Handler) -> TransportRoute:
        return self.add_route("POST", path, *handlers)

    def put(self, path: str, *handlers: Handler) -> TransportRoute:
        return self.add_route("PUT", path, *handlers)

    def delete(self, path: str, *handlers: Handler) -> TransportRoute:
        return self.add_route("DELETE", path, *handlers)

    def patch(self, path: str, *handlers: Handler) -> TransportRoute:
        return self.add_route("PATCH", path, *handlers)

    def options(self, path: str, *handlers: Handler) -> TransportRoute:
        return self.add_route("OPTIONS", path, *handlers)

    def head(self, path: str, *handlers: Handler) -> TransportRoute:
        return self.add_route("HEAD", path, *handlers)

    def match(self, method: str, path: str) -> Tuple[Optional[TransportRoute], Dict[str, str], List[str]]:
        """
        Find the first route for ``method`` and ``path``.

        Returns:
            (route or None, path params, verbs allowed on the path)
        """
        allowed: List[str] = []
        for route in self.routes:
            params = route.match(path)
            if params is None:
                continue
            if route.method == method:
                return route, params, allowed
            if route.method not in allowed:
                allowed.append(route.method)
        return None, {}, allowed

    # ------------------------------------------------------------------
    # ASGI entry point
    # ------------------------------------------------------------------

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        elif scope_type == "websocket":
            self.logger.warning("WebSocket connection attempt but websockets are not supported")
            await send({"type": "websocket.close", "code": 1003})

    async def handle_http(self, scope: dict, receive: Callable, send: Callable) -> None:
        method = scope.get("method", "GET").upper()
        path = scope.get("path", "/")
        response = Response(send, path)

        route, params, allowed = self.match(method, path)
        if route is None:
            if allowed:
                response.set_header("allow", ", ".join(allowed))
                await response.json(
                    {"error": {"code": "METHOD_NOT_ALLOWED", "message": f"Cannot {method} {path}"}},
                    status=405,
                )
            else:
                await response.json(
                    {"error": {"code": "NOT_FOUND", "message": f"Cannot {method} {path}"}},
                    status=404,
                )
            return

        request = Request(scope, receive, path_params=params)
        request.state["route"] = route

        try:
            await self.run_chain(route.handlers, request, response)
            if not response.sent:
                await response.end()
        except Fault as fault:
            await self._fail(fault, fault, request, response, route)
        except Exception as exc:
            fault = HandlerFault(route.path, f"{type(exc).__name__}: {exc}")
            await self._fail(fault, exc, request, response, route)

    async def run_chain(self, handlers: Tuple[Handler, ...], request: Request, response: Response) -> None:
        """Run ``handlers`` in order; each continues the chain by awaiting ``next()``."""

        async def dispatch(index: int) -> None:
            if index >= len(handlers):
                return

            async def next_() -> None:
                await dispatch(index + 1)

            result = handlers[index](request, response, next_)
            if inspect.isawaitable(result):
                await result

        await dispatch(0)

    async def _fail(
        self,
        fault: Fault,
        cause: BaseException,
        request: Request,
        response: Response,
        route: TransportRoute,
    ) -> None:
        ctx = FaultContext.capture(fault, route=route.path, method=request.method, cause=cause)
        if fault.status >= 500:
            self.logger.error(f"{ctx}", exc_info=cause)
        else:
            self.logger.info(f"{ctx}")

        if response.sent:
            return
        message = fault.message if fault.public else "Internal server error"
        await response.json(
            {"error": {"code": fault.code, "message": message, "trace_id": ctx.trace_id}},
            status=fault.status,
        )

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable) -> None:
        """Handle ASGI lifespan events."""
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                try:
                    await _run_hooks(self.on_startup)
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:
                    self.logger.error(f"Startup error: {e}", exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    raise

            elif message["type"] == "lifespan.shutdown":
                try:
                    await _run_hooks(self.on_shutdown)
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    self.logger.error(f"Shutdown error: {e}", exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                break


async def _run_hooks(hooks: List[Callable[[], Any]]) -> None:
    for hook in hooks:
        result = hook()
        if inspect.isawaitable(result):
            await result
