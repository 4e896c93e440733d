"""
Controller Metadata

Data model for the routes a controller class declares:
- RouteDefinition: one controller method's path, verbs, middleware, pipes
  and parameter bindings
- ControllerMetadata: every route of one controller plus class-level defaults

Route definitions are mutable while decorators run, merged once by the class
decorator, and frozen when the route compiler binds them to the transport.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field
from enum import Enum
import inspect

from ..faults import AlreadyCompiledError


ALLOW_METHODS = frozenset({"GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"})


class FormParser(str, Enum):
    """Body parser variants a route can bind a parameter to."""

    MULTIPLE = "multiple"
    FILES = "files"
    JSON = "json"
    URL = "url"
    TEXT = "text"
    RAW = "raw"


class MetadataState(str, Enum):
    """Lifecycle of controller metadata."""

    PENDING = "pending"    # decorators still contributing
    MERGED = "merged"      # finalized by @controller
    COMPILED = "compiled"  # bound to the transport


# ============================================================================
# Parameter binding markers (used inside Annotated[...])
# ============================================================================

@dataclass(frozen=True)
class Query:
    """
    Read a parameter from the query string.

    Usage:
        async def search(self, term: Annotated[str, Query("q")]): ...
    """

    name: Optional[str] = None


@dataclass(frozen=True)
class Param:
    """Read a parameter from the path template."""

    name: Optional[str] = None


@dataclass(frozen=True)
class BodyBinding:
    """Base marker: bind the parsed request body to this parameter."""

    options: Optional[Dict[str, Any]] = None

    parser = FormParser.JSON


class FromBody(BodyBinding):
    """JSON body."""

    parser = FormParser.JSON


class FromForm(BodyBinding):
    """URL-encoded form body."""

    parser = FormParser.URL


class FromText(BodyBinding):
    """Plain text body."""

    parser = FormParser.TEXT


class FromRaw(BodyBinding):
    """Raw bytes body."""

    parser = FormParser.RAW


class FromMultipart(BodyBinding):
    """Multipart form data (fields and files)."""

    parser = FormParser.MULTIPLE


class FromFiles(BodyBinding):
    """Uploaded files of a multipart body."""

    parser = FormParser.FILES


# ============================================================================
# Route pieces
# ============================================================================

@dataclass(frozen=True)
class MiddlewareSpec:
    """Ordered handler list plus whether it merges with class defaults."""

    items: Tuple[Callable[..., Any], ...] = ()
    merge: bool = True


@dataclass(frozen=True)
class FuncParam:
    """How to extract one positional argument of a controller method."""

    key: str
    type: Any = None
    is_query: bool = False
    default: Any = inspect.Parameter.empty

    @property
    def has_default(self) -> bool:
        return self.default is not inspect.Parameter.empty


@dataclass(frozen=True)
class FormBinding:
    """Which body parser to run and which argument receives the parsed body."""

    parser: FormParser
    index: int
    options: Optional[Dict[str, Any]] = None
    type: Any = None


@dataclass
class RouteDefinition:
    """
    Route metadata for one controller method.

    Attributes:
        method_name: Controller attribute name
        path: Relative or absolute path template (``{name}`` segments)
        allow_methods: Verbs the route answers
        middleware: Route middleware, ``None`` until declared or merged
        pipes: Argument transforms, ``None`` until declared or merged
        func_params: Extraction plan for each positional argument
        form: Body binding, if any
    """

    method_name: str
    path: Optional[str] = None
    allow_methods: List[str] = field(default_factory=list)
    middleware: Optional[MiddlewareSpec] = None
    pipes: Optional[MiddlewareSpec] = None
    func_params: List[FuncParam] = field(default_factory=list)
    form: Optional[FormBinding] = None
    compiled: bool = field(default=False, repr=False, compare=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if self.compiled:
            raise AlreadyCompiledError(f"route '{self.method_name}'")
        object.__setattr__(self, name, value)

    def add_methods(self, verbs: Sequence[str]) -> None:
        if self.compiled:
            raise AlreadyCompiledError(f"route '{self.method_name}'")
        for verb in verbs:
            verb = verb.upper()
            if verb not in self.allow_methods:
                self.allow_methods.append(verb)

    def freeze(self) -> None:
        """Make the definition immutable."""
        if self.compiled:
            return
        self.allow_methods = tuple(self.allow_methods)
        self.func_params = tuple(self.func_params)
        object.__setattr__(self, "compiled", True)


@dataclass
class ControllerMetadata:
    """
    Complete metadata for a controller class.

    Attributes:
        controller: The controller class
        routes: Method name -> route definition
        middlewares: Class-level default middleware
        pipes: Class-level default pipes
        prefix: Normalized route prefix (starts and ends with ``/``)
        state: Lifecycle state
    """

    controller: type
    routes: Dict[str, RouteDefinition] = field(default_factory=dict)
    middlewares: List[Callable[..., Any]] = field(default_factory=list)
    pipes: List[Callable[..., Any]] = field(default_factory=list)
    prefix: str = "/"
    state: MetadataState = MetadataState.PENDING

    @property
    def name(self) -> str:
        return self.controller.__qualname__

    def route(self, method_name: str) -> RouteDefinition:
        """Get or create the route definition for a method."""
        self._check_mutable()
        route = self.routes.get(method_name)
        if route is None:
            route = RouteDefinition(method_name=method_name)
            self.routes[method_name] = route
        return route

    def mark_compiled(self) -> None:
        """
        Freeze every route. Frozen metadata stays readable, so the same
        controller can be compiled onto several transports.
        """
        if self.state is MetadataState.COMPILED:
            return
        for route in self.routes.values():
            route.freeze()
        self.state = MetadataState.COMPILED

    def _check_mutable(self) -> None:
        if self.state is MetadataState.COMPILED:
            raise AlreadyCompiledError(self.name)
