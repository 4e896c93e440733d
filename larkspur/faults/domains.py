"""
Larkspur faults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults (registration input)
- ROUTING faults (route compilation)
- REGISTRY faults (controller metadata lifecycle)
- FLOW faults (handler execution)
- IO faults (request body parsing)

Dependency injection faults live in ``larkspur.di.errors``.
"""

from typing import Any, Optional
from .core import Fault, FaultDomain, Severity


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigurationError(Fault):
    """Invalid or missing registration input. Always fatal at startup."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "CONFIGURATION_ERROR",
        domain: FaultDomain = FaultDomain.CONFIG,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=domain,
            severity=Severity.FATAL,
            retryable=False,
            public=False,
            metadata=metadata,
        )


# ============================================================================
# ROUTING Faults
# ============================================================================

class InvalidPathError(ConfigurationError):
    """A route was compiled with an empty path."""

    def __init__(self, method_name: str, controller: str = ""):
        where = f"{controller}.{method_name}" if controller else method_name
        super().__init__(
            f"invalid REST method path : the path of action '{where}' is empty.",
            code="INVALID_PATH",
            domain=FaultDomain.ROUTING,
            metadata={"method_name": method_name, "controller": controller},
        )


class InvalidMethodError(Fault):
    """A declared verb is outside the fixed enumerated set."""

    def __init__(self, verb: str, method_name: str = ""):
        super().__init__(
            code="INVALID_METHOD",
            message=f"invalid REST method registration : the method [{verb}] is not allowed.",
            domain=FaultDomain.ROUTING,
            severity=Severity.FATAL,
            metadata={"verb": verb, "method_name": method_name},
        )


# ============================================================================
# REGISTRY Faults
# ============================================================================

class AlreadyCompiledError(Fault):
    """Controller metadata touched after it was bound to the transport."""

    def __init__(self, target: str, action: str = "mutate"):
        super().__init__(
            code="ALREADY_COMPILED",
            message=f"Cannot {action} '{target}': routes were already compiled",
            domain=FaultDomain.REGISTRY,
            severity=Severity.FATAL,
            metadata={"target": target, "action": action},
        )


# ============================================================================
# FLOW Faults
# ============================================================================

class FlowFault(Fault):
    """Base class for faults raised while serving one request."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        status: int = 500,
        public: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.FLOW,
            severity=Severity.ERROR,
            public=public,
            status=status,
            metadata=metadata,
        )


class InvalidResultTypeError(FlowFault):
    """Handler returned a value outside the string / result / awaitable contract."""

    def __init__(self, handler: str, value: Any):
        super().__init__(
            code="INVALID_RESULT_TYPE",
            message=(
                f"Handler '{handler}' returned {type(value).__name__}; expected str, "
                f"a MethodResult, or an awaitable resolving to one"
            ),
            metadata={"handler": handler, "type": type(value).__name__},
        )


class HandlerFault(FlowFault):
    """Wraps a plain exception raised inside a handler chain."""

    def __init__(self, handler: str, reason: str):
        super().__init__(
            code="HANDLER_FAILED",
            message=f"Handler '{handler}' failed: {reason}",
            metadata={"handler": handler, "reason": reason},
        )


# ============================================================================
# IO Faults
# ============================================================================

class RequestFault(Fault):
    """Base class for request body faults. Safe to expose to the client."""

    def __init__(self, code: str, message: str, *, status: int, **metadata):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.IO,
            public=True,
            status=status,
            metadata=metadata,
        )


class BadRequest(RequestFault):
    """Malformed request body."""

    def __init__(self, message: str = "Bad request", **metadata):
        super().__init__("BAD_REQUEST", message, status=400, **metadata)


class PayloadTooLarge(RequestFault):
    """Request body exceeds the configured parser limit."""

    def __init__(self, message: str = "Payload too large", **metadata):
        super().__init__("PAYLOAD_TOO_LARGE", message, status=413, **metadata)
