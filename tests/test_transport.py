"""
Transport layer (transport/)

Tests Request, Response, path matching and the ASGI handler chain.
"""

import pytest
import httpx
from typing import List

from larkspur.faults import BadRequest, PayloadTooLarge
from larkspur.transport import Request, ResponseAlreadySent, Transport, compile_path

from tests.conftest import make_receive, make_request, make_response, make_scope


def client_for(transport: Transport) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=transport), base_url="http://test")


# ============================================================================
# Request
# ============================================================================

class TestRequest:

    def test_basic_attributes(self):
        request = make_request("post", "/users", headers=[("X-Trace", "abc")])
        assert request.method == "POST"
        assert request.path == "/users"
        assert request.header("x-trace") == "abc"
        assert request.header("missing", "d") == "d"

    def test_repeated_headers_joined(self):
        request = make_request(headers=[("accept", "a"), ("Accept", "b")])
        assert request.headers["accept"] == "a,b"

    def test_content_type(self):
        request = make_request(headers=[("content-type", "Application/JSON; charset=UTF-8")])
        media_type, params = request.content_type
        assert media_type == "application/json"
        assert params["charset"] == "UTF-8"

    def test_missing_content_type(self):
        assert make_request().content_type == ("", {})

    def test_query(self):
        request = make_request(query_string="page=2&tag=a&tag=b&empty=")
        assert request.query("page") == "2"
        assert request.query("page", int) == 2
        assert request.query("tag") == "a"
        assert request.query("tag", List[str]) == ["a", "b"]
        assert request.query("empty") == ""
        assert request.query("absent", int) is None

    def test_query_coercion_error(self):
        request = make_request(query_string="page=two")
        with pytest.raises(ValueError):
            request.query("page", int)

    def test_param(self):
        request = make_request(path_params={"id": "7"})
        assert request.param("id") == "7"
        assert request.param("id", int) == 7
        assert request.param("other", int) is None

    @pytest.mark.asyncio
    async def test_read_caches_body(self):
        scope = make_scope("POST", "/")
        request = Request(scope, make_receive(chunks=[b"hel", b"lo"]))
        assert await request.read() == b"hello"
        assert await request.read() == b"hello"

    @pytest.mark.asyncio
    async def test_read_limit(self):
        request = make_request("POST", body=b"x" * 20)
        with pytest.raises(PayloadTooLarge):
            await request.read(limit=10)

    @pytest.mark.asyncio
    async def test_declared_length_checked_first(self):
        request = make_request("POST", headers=[("content-length", "5000")], body=b"x")
        with pytest.raises(PayloadTooLarge) as exc:
            await request.read(limit=100)
        assert exc.value.metadata["length"] == 5000


# ============================================================================
# Response
# ============================================================================

class TestResponse:

    @pytest.mark.asyncio
    async def test_send_string(self):
        response, sent = make_response()
        await response.send("ok")
        assert sent.status == 200
        assert sent.body == b"ok"
        assert sent.headers["content-type"] == "text/plain; charset=utf-8"
        assert sent.headers["content-length"] == "2"

    @pytest.mark.asyncio
    async def test_status_and_headers_chain(self):
        response, sent = make_response()
        response.status(201).set_header("Location", "/users/1")
        await response.send(b"\x00\x01")
        assert sent.status == 201
        assert sent.headers["location"] == "/users/1"
        assert sent.headers["content-type"] == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_explicit_content_type_header_wins(self):
        response, sent = make_response()
        response.set_header("content-type", "text/html")
        await response.send("<p>", content_type="text/plain")
        assert sent.headers["content-type"] == "text/html"

    @pytest.mark.asyncio
    async def test_json(self):
        response, sent = make_response()
        await response.json({"a": [1, 2]}, status=202)
        assert sent.status == 202
        assert sent.body == b'{"a":[1,2]}'

    @pytest.mark.asyncio
    async def test_send_twice(self):
        response, sent = make_response("/x")
        await response.end()
        assert response.sent is True
        with pytest.raises(ResponseAlreadySent):
            await response.send("again")
        assert len(sent.messages) == 2


# ============================================================================
# Path templates
# ============================================================================

class TestCompilePath:

    def test_named_segments(self):
        pattern, names = compile_path("/users/{id}/posts/{post}")
        assert names == ["id", "post"]
        assert pattern.match("/users/1/posts/abc").groupdict() == {"id": "1", "post": "abc"}
        assert pattern.match("/users/1/posts") is None

    def test_int_converter(self):
        pattern, _ = compile_path("/items/{id:int}")
        assert pattern.match("/items/42")
        assert pattern.match("/items/abc") is None

    def test_path_converter(self):
        pattern, _ = compile_path("/files/{rest:path}")
        assert pattern.match("/files/a/b/c").group("rest") == "a/b/c"

    def test_literal_characters_escaped(self):
        pattern, _ = compile_path("/v1.0/items")
        assert pattern.match("/v1.0/items")
        assert pattern.match("/v1x0/items") is None

    def test_unknown_converter(self):
        with pytest.raises(ValueError):
            compile_path("/items/{id:uuid}")


# ============================================================================
# Transport
# ============================================================================

class TestTransport:

    def test_add_route_needs_handlers(self):
        with pytest.raises(ValueError):
            Transport().get("/x")

    def test_match_reports_allowed_verbs(self):
        async def handler(req, res, next):
            await res.send("x")

        transport = Transport()
        transport.get("/items/{id}", handler)
        transport.delete("/items/{id}", handler)
        route, params, allowed = transport.match("PUT", "/items/3")
        assert route is None
        assert allowed == ["GET", "DELETE"]
        route, params, _ = transport.match("GET", "/items/3/")
        assert route.method == "GET"
        assert params == {"id": "3"}

    @pytest.mark.asyncio
    async def test_chain_runs_in_order(self):
        calls = []

        async def first(req, res, next):
            calls.append("first")
            req.state["user"] = "ann"
            await next()
            calls.append("first:after")

        def second(req, res, next):
            calls.append("second")
            return next()

        async def final(req, res, next):
            calls.append("final")
            await res.send(f"hello {req.state['user']}")

        transport = Transport()
        transport.get("/hello", first, second, final)
        async with client_for(transport) as client:
            response = await client.get("/hello")

        assert response.status_code == 200
        assert response.text == "hello ann"
        assert calls == ["first", "second", "final", "first:after"]

    @pytest.mark.asyncio
    async def test_middleware_can_short_circuit(self):
        async def deny(req, res, next):
            await res.status(401).send("denied")

        async def final(req, res, next):
            raise AssertionError("must not run")

        transport = Transport()
        transport.get("/secret", deny, final)
        async with client_for(transport) as client:
            response = await client.get("/secret")
        assert response.status_code == 401
        assert response.text == "denied"

    @pytest.mark.asyncio
    async def test_path_params_reach_request(self):
        async def show(req, res, next):
            await res.send(req.param("id"))

        transport = Transport()
        transport.get("/items/{id}", show)
        async with client_for(transport) as client:
            response = await client.get("/items/42")
        assert response.text == "42"

    @pytest.mark.asyncio
    async def test_not_found(self):
        async with client_for(Transport()) as client:
            response = await client.get("/nope")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_method_not_allowed(self):
        async def handler(req, res, next):
            await res.send("x")

        transport = Transport()
        transport.get("/items", handler)
        async with client_for(transport) as client:
            response = await client.post("/items")
        assert response.status_code == 405
        assert response.headers["allow"] == "GET"

    @pytest.mark.asyncio
    async def test_chain_without_response_sends_empty_body(self):
        async def noop(req, res, next):
            res.status(204)

        transport = Transport()
        transport.delete("/items/1", noop)
        async with client_for(transport) as client:
            response = await client.delete("/items/1")
        assert response.status_code == 204
        assert response.content == b""

    @pytest.mark.asyncio
    async def test_public_fault_exposed(self):
        async def bad(req, res, next):
            raise BadRequest("name is required")

        transport = Transport()
        transport.post("/users", bad)
        async with client_for(transport) as client:
            response = await client.post("/users")
        body = response.json()
        assert response.status_code == 400
        assert body["error"]["code"] == "BAD_REQUEST"
        assert body["error"]["message"] == "name is required"
        assert len(body["error"]["trace_id"]) == 16

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_hidden(self, caplog):
        async def broken(req, res, next):
            raise KeyError("secret-detail")

        transport = Transport()
        transport.get("/broken", broken)
        async with client_for(transport) as client:
            response = await client.get("/broken")
        error = response.json()["error"]
        assert response.status_code == 500
        assert error["code"] == "HANDLER_FAILED"
        assert error["message"] == "Internal server error"
        assert "secret-detail" not in response.text
        assert any("HANDLER_FAILED" in record.getMessage() for record in caplog.records)

    @pytest.mark.asyncio
    async def test_lifespan_hooks(self):
        events = []
        transport = Transport()
        transport.on_startup.append(lambda: events.append("startup"))

        async def shutdown():
            events.append("shutdown")

        transport.on_shutdown.append(shutdown)

        messages = iter([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])
        sent = []

        async def receive():
            return next(messages)

        async def send(message):
            sent.append(message["type"])

        await transport({"type": "lifespan"}, receive, send)
        assert events == ["startup", "shutdown"]
        assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]

    @pytest.mark.asyncio
    async def test_websocket_rejected(self):
        sent = []

        async def receive():
            return {"type": "websocket.connect"}

        async def send(message):
            sent.append(message)

        await Transport()({"type": "websocket"}, receive, send)
        assert sent == [{"type": "websocket.close", "code": 1003}]
