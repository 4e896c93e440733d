"""
Larkspur faults - structured error taxonomy.

Startup faults (configuration, routing, registry, DI) abort the application
before traffic is served. Flow and IO faults end a single request.
"""

from .core import (
    Fault,
    FaultContext,
    FaultDomain,
    Severity,
)
from .domains import (
    ConfigurationError,
    InvalidPathError,
    InvalidMethodError,
    AlreadyCompiledError,
    FlowFault,
    InvalidResultTypeError,
    HandlerFault,
    RequestFault,
    BadRequest,
    PayloadTooLarge,
)

__all__ = [
    "Fault",
    "FaultContext",
    "FaultDomain",
    "Severity",
    "ConfigurationError",
    "InvalidPathError",
    "InvalidMethodError",
    "AlreadyCompiledError",
    "FlowFault",
    "InvalidResultTypeError",
    "HandlerFault",
    "RequestFault",
    "BadRequest",
    "PayloadTooLarge",
]
