"""
Controller metadata: route definitions, reflection and finalization.
"""

from .controller import (
    ALLOW_METHODS,
    FormParser,
    MetadataState,
    Query,
    Param,
    BodyBinding,
    FromBody,
    FromForm,
    FromText,
    FromRaw,
    FromMultipart,
    FromFiles,
    MiddlewareSpec,
    FuncParam,
    FormBinding,
    RouteDefinition,
    ControllerMetadata,
)
from .reflection import (
    Reflection,
    ControllerBuilder,
    MethodsDelta,
    PathDelta,
    MiddlewareDelta,
    PipesDelta,
    add_delta,
    merge_spec,
    normalize_prefix,
)

__all__ = [
    "ALLOW_METHODS",
    "FormParser",
    "MetadataState",
    "Query",
    "Param",
    "BodyBinding",
    "FromBody",
    "FromForm",
    "FromText",
    "FromRaw",
    "FromMultipart",
    "FromFiles",
    "MiddlewareSpec",
    "FuncParam",
    "FormBinding",
    "RouteDefinition",
    "ControllerMetadata",
    "Reflection",
    "ControllerBuilder",
    "MethodsDelta",
    "PathDelta",
    "MiddlewareDelta",
    "PipesDelta",
    "add_delta",
    "merge_spec",
    "normalize_prefix",
]
