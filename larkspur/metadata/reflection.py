"""
Metadata reflection and controller finalization.

Method decorators never touch shared state: each one appends a delta to the
decorated function's ``__larkspur_deltas__`` list. The class decorator then
runs ``ControllerBuilder.finalize`` exactly once, which replays the deltas
into a fresh ``ControllerMetadata``, scans method signatures for parameter
bindings, applies the controller prefix and merges class-level middleware
and pipes into every route.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Annotated, get_args, get_origin, get_type_hints
from dataclasses import dataclass
import inspect
import logging
import re

from .controller import (
    BodyBinding,
    ControllerMetadata,
    FormBinding,
    FuncParam,
    MetadataState,
    MiddlewareSpec,
    Param,
    Query,
    RouteDefinition,
)
from ..faults import AlreadyCompiledError, ConfigurationError


logger = logging.getLogger("larkspur.metadata")

METADATA_ATTR = "__larkspur_controller__"
DELTAS_ATTR = "__larkspur_deltas__"

_PATH_PARAM = re.compile(r"\{(\w+)(?::[^}]*)?\}")


class Reflection:
    """Read and write controller metadata attached to a class."""

    @staticmethod
    def get_controller_metadata(cls: type) -> ControllerMetadata:
        """
        Return the metadata of ``cls``, creating an empty one on first access.

        Metadata lives in the class's own ``__dict__``, so a subclass never
        sees its parent's metadata.
        """
        meta = cls.__dict__.get(METADATA_ATTR)
        if meta is None:
            meta = ControllerMetadata(controller=cls)
            setattr(cls, METADATA_ATTR, meta)
        return meta

    @staticmethod
    def set_controller_metadata(cls: type, meta: ControllerMetadata) -> None:
        setattr(cls, METADATA_ATTR, meta)

    @staticmethod
    def has_controller_metadata(cls: type) -> bool:
        return METADATA_ATTR in cls.__dict__


# ============================================================================
# Deltas
# ============================================================================

@dataclass(frozen=True)
class MethodsDelta:
    verbs: Tuple[str, ...]

    def apply(self, route: RouteDefinition) -> None:
        route.add_methods(self.verbs)


@dataclass(frozen=True)
class PathDelta:
    path: str

    def apply(self, route: RouteDefinition) -> None:
        route.path = self.path


@dataclass(frozen=True)
class MiddlewareDelta:
    items: Tuple[Callable[..., Any], ...]
    merge: bool

    def apply(self, route: RouteDefinition) -> None:
        route.middleware = _extend(route.middleware, self.items, self.merge)


@dataclass(frozen=True)
class PipesDelta:
    items: Tuple[Callable[..., Any], ...]
    merge: bool

    def apply(self, route: RouteDefinition) -> None:
        route.pipes = _extend(route.pipes, self.items, self.merge)


def _extend(spec: Optional[MiddlewareSpec], items: Tuple, merge: bool) -> MiddlewareSpec:
    if spec is None:
        return MiddlewareSpec(items=items, merge=merge)
    return MiddlewareSpec(items=spec.items + items, merge=spec.merge and merge)


def add_delta(func: Callable, delta: Any) -> Callable:
    """Attach a delta to a controller method and return the method."""
    deltas = func.__dict__.get(DELTAS_ATTR)
    if deltas is None:
        deltas = []
        setattr(func, DELTAS_ATTR, deltas)
    deltas.append(delta)
    return func


# ============================================================================
# Builder
# ============================================================================

def normalize_prefix(prefix: Optional[str]) -> str:
    """
    ``"/" + prefix + "/"`` with the first ``//`` collapsed.

    Only the first doubled slash is replaced: ``"api"`` gives ``/api/``,
    ``"/api"`` gives ``/api/``, but ``"/api/"`` gives ``/api//``.
    """
    return ("/" + (prefix or "") + "/").replace("//", "/", 1)


def merge_spec(own: Optional[MiddlewareSpec], defaults: List[Callable]) -> MiddlewareSpec:
    """
    Combine route-level and class-level handlers.

    - nothing declared on the route: class list verbatim, ``merge=False``
    - ``merge=True``: class list first, then the route's own list
    - ``merge=False``: the route's own list only
    """
    if own is None:
        return MiddlewareSpec(items=tuple(defaults), merge=False)
    if own.merge:
        return MiddlewareSpec(items=tuple(defaults) + own.items, merge=True)
    return own


class ControllerBuilder:
    """
    Collects the deltas of one controller class and finalizes its metadata.

    Example:
        meta = ControllerBuilder(UsersController).finalize("users", middlewares=[auth])
    """

    def __init__(self, cls: type):
        self.cls = cls
        self.meta = Reflection.get_controller_metadata(cls)

    def collect(self) -> Dict[str, Tuple[Callable, List[Any]]]:
        """Routed methods of the class (including inherited ones) and their deltas."""
        found: Dict[str, Tuple[Callable, List[Any]]] = {}
        for klass in reversed(self.cls.__mro__[:-1]):
            for name, attr in vars(klass).items():
                func = _unwrap(attr)
                if func is None:
                    continue
                deltas = getattr(func, DELTAS_ATTR, None)
                if deltas:
                    found[name] = (func, deltas)
        return found

    def finalize(
        self,
        prefix: Optional[str] = None,
        *,
        middlewares: Iterable[Callable] = (),
        pipes: Iterable[Callable] = (),
    ) -> ControllerMetadata:
        """
        Build the merged metadata. Runs once per class.

        Raises:
            AlreadyCompiledError: If the class was already finalized
        """
        meta = self.meta
        if meta.state is not MetadataState.PENDING:
            raise AlreadyCompiledError(meta.name, action="finalize")

        meta.middlewares = list(middlewares)
        meta.pipes = list(pipes)
        meta.prefix = normalize_prefix(prefix)

        for name, (func, deltas) in self.collect().items():
            route = meta.route(name)
            # Decorators run bottom-up; replay in source order
            for delta in reversed(deltas):
                delta.apply(route)
            self._bind_params(route, func)

        for route in meta.routes.values():
            if route.path and not route.path.startswith("/"):
                route.path = meta.prefix + route.path
            route.middleware = merge_spec(route.middleware, meta.middlewares)
            route.pipes = merge_spec(route.pipes, meta.pipes)

        meta.state = MetadataState.MERGED
        Reflection.set_controller_metadata(self.cls, meta)

        logger.debug(
            f"Finalized controller {meta.name}: prefix={meta.prefix!r}, "
            f"{len(meta.routes)} route(s)"
        )
        return meta

    def _bind_params(self, route: RouteDefinition, func: Callable) -> None:
        """Derive the argument extraction plan from the method signature."""
        path_names = set(_PATH_PARAM.findall(route.path or ""))

        try:
            hints = get_type_hints(func, include_extras=True)
        except (NameError, TypeError) as exc:
            raise ConfigurationError(
                f"Cannot resolve annotations of '{self.meta.name}.{route.method_name}': {exc}",
                code="UNRESOLVABLE_ANNOTATION",
                metadata={"method_name": route.method_name},
            ) from exc

        params: List[FuncParam] = []
        form: Optional[FormBinding] = None
        positional = [
            p for p in inspect.signature(func).parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ][1:]  # self

        for index, param in enumerate(positional):
            annotation = hints.get(param.name, param.annotation)
            target, markers = _split_annotated(annotation)

            body = next((m for m in markers if isinstance(m, BodyBinding)), None)
            if body is not None:
                if form is not None:
                    raise ConfigurationError(
                        f"Route '{self.meta.name}.{route.method_name}' binds more than one body parameter",
                        code="DUPLICATE_BODY_BINDING",
                        metadata={"method_name": route.method_name},
                    )
                form = FormBinding(parser=body.parser, index=index, options=body.options, type=target)
                params.append(FuncParam(key=param.name, type=target, default=param.default))
                continue

            query = next((m for m in markers if isinstance(m, Query)), None)
            path = next((m for m in markers if isinstance(m, Param)), None)
            if query is not None:
                params.append(FuncParam(query.name or param.name, target, True, param.default))
            elif path is not None:
                params.append(FuncParam(path.name or param.name, target, False, param.default))
            else:
                is_query = param.name not in path_names
                params.append(FuncParam(param.name, target, is_query, param.default))

        route.func_params = params
        route.form = form


def _split_annotated(annotation: Any) -> Tuple[Any, Tuple[Any, ...]]:
    if annotation is inspect.Parameter.empty:
        return None, ()
    if get_origin(annotation) is Annotated:
        base, *extras = get_args(annotation)
        return base, tuple(extras)
    return annotation, ()


def _unwrap(attr: Any) -> Optional[Callable]:
    if isinstance(attr, (staticmethod, classmethod)):
        return None
    if inspect.isfunction(attr):
        return attr
    return None
