"""
Larkspur - async controller and routing layer for ASGI.

- Controllers: declarative routes on classes, finalized by ``@controller``
- DI: constructor injection with singleton and per-request scoped lifetimes
- Options: keyed configuration read by body parsers and result serializers
- Faults: structured errors that abort startup or fail a single request
"""

__version__ = "0.1.0"

from .server import Application
from .config import (
    ConfigContainer,
    ConfigKey,
    OptionRecord,
    ServerSettings,
    create_options,
    JSON_RESULT_OPTIONS,
    BODY_JSON_PARSER,
    BODY_URLENCODED_PARSER,
    BODY_RAW_PARSER,
    BODY_TEXT_PARSER,
    STATIC_TYPED_RESOLVER,
)
from .controller import (
    BaseController,
    Context,
    ControllerConfig,
    controller,
    Method,
    Route,
    Middleware,
    Pipes,
    GET,
    POST,
    PUT,
    DELETE,
    PATCH,
    OPTIONS,
    HEAD,
    MethodResult,
    JsonResult,
    StringResult,
    JsonResultResolvers,
)
from .metadata import (
    Query,
    Param,
    FromBody,
    FromForm,
    FromText,
    FromRaw,
    FromMultipart,
    FromFiles,
)
from .di import Container, Lifetime, Inject, inject, injectable
from .serialization import TypedSerializer
from .transport import Request, Response, Transport, UploadFile
from .faults import (
    Fault,
    ConfigurationError,
    InvalidPathError,
    InvalidMethodError,
    AlreadyCompiledError,
    InvalidResultTypeError,
)
from .di.errors import MissingBindingError, CyclicDependencyError

__all__ = [
    "__version__",
    "Application",
    "ConfigContainer",
    "ConfigKey",
    "OptionRecord",
    "ServerSettings",
    "create_options",
    "JSON_RESULT_OPTIONS",
    "BODY_JSON_PARSER",
    "BODY_URLENCODED_PARSER",
    "BODY_RAW_PARSER",
    "BODY_TEXT_PARSER",
    "STATIC_TYPED_RESOLVER",
    "BaseController",
    "Context",
    "ControllerConfig",
    "controller",
    "Method",
    "Route",
    "Middleware",
    "Pipes",
    "GET",
    "POST",
    "PUT",
    "DELETE",
    "PATCH",
    "OPTIONS",
    "HEAD",
    "MethodResult",
    "JsonResult",
    "StringResult",
    "JsonResultResolvers",
    "Query",
    "Param",
    "FromBody",
    "FromForm",
    "FromText",
    "FromRaw",
    "FromMultipart",
    "FromFiles",
    "Container",
    "Lifetime",
    "Inject",
    "inject",
    "injectable",
    "TypedSerializer",
    "Request",
    "Response",
    "Transport",
    "UploadFile",
    "Fault",
    "ConfigurationError",
    "InvalidPathError",
    "InvalidMethodError",
    "AlreadyCompiledError",
    "InvalidResultTypeError",
    "MissingBindingError",
    "CyclicDependencyError",
]
