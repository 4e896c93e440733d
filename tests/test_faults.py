"""
Fault system (faults/)

Tests fault construction, domain defaults and FaultContext capture.
"""

import pytest

from larkspur.faults import (
    AlreadyCompiledError,
    BadRequest,
    ConfigurationError,
    Fault,
    FaultContext,
    FaultDomain,
    HandlerFault,
    InvalidMethodError,
    InvalidPathError,
    InvalidResultTypeError,
    PayloadTooLarge,
    Severity,
)


class TestFault:

    def test_requires_code_message_domain(self):
        with pytest.raises(TypeError):
            Fault(code="X", message="missing domain")

    def test_domain_defaults(self):
        fault = Fault(code="X", message="m", domain=FaultDomain.IO)
        assert fault.severity is Severity.WARN
        assert fault.retryable is False
        assert fault.status == 500

    def test_explicit_status(self):
        fault = Fault(code="NOT_FOUND", message="gone", domain=FaultDomain.FLOW, status=404, public=True)
        assert fault.status == 404
        assert str(fault) == "[NOT_FOUND] gone"

    def test_to_dict(self):
        fault = Fault(code="X", message="m", domain=FaultDomain.CONFIG, metadata={"k": 1})
        data = fault.to_dict()
        assert data["domain"] == "config"
        assert data["severity"] == "fatal"
        assert data["metadata"] == {"k": 1}

    def test_domain_equality(self):
        assert FaultDomain.CONFIG == FaultDomain("config")
        assert FaultDomain.CONFIG == "config"
        assert FaultDomain.CONFIG != FaultDomain.FLOW


class TestDomainFaults:

    def test_invalid_path(self):
        fault = InvalidPathError("show", "UsersController")
        assert fault.code == "INVALID_PATH"
        assert fault.domain == FaultDomain.ROUTING
        assert "UsersController.show" in fault.message
        assert isinstance(fault, ConfigurationError)

    def test_invalid_method(self):
        fault = InvalidMethodError("FETCH", "show")
        assert fault.code == "INVALID_METHOD"
        assert "[FETCH]" in fault.message
        assert fault.severity is Severity.FATAL

    def test_already_compiled(self):
        fault = AlreadyCompiledError("UsersController", action="register")
        assert fault.metadata == {"target": "UsersController", "action": "register"}
        assert fault.message.startswith("Cannot register")

    def test_invalid_result_type(self):
        fault = InvalidResultTypeError("Ctrl.show", 42)
        assert fault.status == 500
        assert fault.public is False
        assert fault.metadata["type"] == "int"

    def test_request_faults_are_public(self):
        assert BadRequest("nope").status == 400
        assert BadRequest("nope").public is True
        too_large = PayloadTooLarge(limit=10)
        assert too_large.status == 413
        assert too_large.metadata == {"limit": 10}

    def test_handler_fault(self):
        fault = HandlerFault("/users", "KeyError: 'x'")
        assert fault.code == "HANDLER_FAILED"
        assert fault.domain == FaultDomain.FLOW


class TestFaultContext:

    def test_capture(self):
        fault = BadRequest("bad")
        ctx = FaultContext.capture(fault, route="/users", method="POST")
        assert len(ctx.trace_id) == 16
        assert ctx.route == "/users"
        assert "POST /users" in str(ctx)

    def test_capture_keeps_cause_stack(self):
        try:
            raise KeyError("x")
        except KeyError as exc:
            ctx = FaultContext.capture(HandlerFault("/x", "boom"), cause=exc)
        assert ctx.cause is not None
        assert ctx.stack

    def test_fingerprint_is_stable(self):
        fault = BadRequest("bad")
        first = FaultContext.capture(fault, route="/a", method="GET")
        second = FaultContext.capture(fault, route="/a", method="GET")
        assert first.fingerprint() == second.fingerprint()
        other = FaultContext.capture(fault, route="/b", method="GET")
        assert first.fingerprint() != other.fingerprint()

    def test_to_dict(self):
        ctx = FaultContext.capture(BadRequest("bad"), route="/a", method="GET")
        data = ctx.to_dict()
        assert data["fault"]["code"] == "BAD_REQUEST"
        assert data["scope"] == {"route": "/a", "method": "GET"}
        assert data["cause"] is None
