"""
Larkspur controllers: decorators, results, compilation and the request
pipeline.
"""

from .base import BaseController, Context
from .decorators import (
    ControllerConfig,
    controller,
    Method,
    Route,
    Middleware,
    Pipes,
    RouteDecorator,
    GET,
    POST,
    PUT,
    DELETE,
    PATCH,
    OPTIONS,
    HEAD,
)
from .results import MethodResult, JsonResult, StringResult, JsonResultResolvers
from .pipeline import (
    RequestPipeline,
    StringOutcome,
    StructuredOutcome,
    AsyncOutcome,
    classify,
)
from .compiler import RouteCompiler, CompiledRoute

__all__ = [
    "BaseController",
    "Context",
    "ControllerConfig",
    "controller",
    "Method",
    "Route",
    "Middleware",
    "Pipes",
    "RouteDecorator",
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
    "RequestPipeline",
    "StringOutcome",
    "StructuredOutcome",
    "AsyncOutcome",
    "classify",
    "RouteCompiler",
    "CompiledRoute",
]
