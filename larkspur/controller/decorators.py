"""
Controller Decorators

Method decorators only record deltas on the function; nothing is registered
at import time. ``@controller`` finalizes the class once all of its methods
have been decorated.
"""

from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar, Union
from dataclasses import dataclass

from ..metadata import (
    ControllerBuilder,
    MethodsDelta,
    MiddlewareDelta,
    PathDelta,
    PipesDelta,
    add_delta,
)


F = TypeVar("F", bound=Callable[..., Any])
C = TypeVar("C", bound=type)


@dataclass(frozen=True)
class ControllerConfig:
    """Controller-level settings."""

    prefix: Optional[str] = None


def controller(
    config: Union[str, ControllerConfig, Mapping[str, Any], type, None] = None,
    *,
    middlewares: Iterable[Callable] = (),
    pipes: Iterable[Callable] = (),
) -> Any:
    """
    Class decorator that finalizes a controller's routes.

    Args:
        config: Route prefix, ``ControllerConfig`` or ``{"prefix": ...}``
        middlewares: Class-level middleware merged into every route
        pipes: Class-level argument transforms merged into every route

    Example:
        @controller("api", middlewares=[auth])
        class UsersController:
            @GET("users")
            async def list(self):
                return "ok"

    ``@controller`` may also be used bare, with no prefix.
    """
    if isinstance(config, type):
        ControllerBuilder(config).finalize()
        return config

    prefix = _prefix_of(config)
    middlewares = tuple(middlewares)
    pipes = tuple(pipes)

    def decorator(cls: C) -> C:
        ControllerBuilder(cls).finalize(prefix, middlewares=middlewares, pipes=pipes)
        return cls

    return decorator


def _prefix_of(config: Union[str, ControllerConfig, Mapping[str, Any], None]) -> Optional[str]:
    if config is None or isinstance(config, str):
        return config
    if isinstance(config, ControllerConfig):
        return config.prefix
    if isinstance(config, Mapping):
        return config.get("prefix")
    raise TypeError(f"Invalid controller config: {config!r}")


def Method(*verbs: str) -> Callable[[F], F]:
    """
    Declare the verbs a route answers.

    Verbs are validated when routes are compiled.

    Example:
        @Method("GET", "HEAD")
        @Route("status")
        async def status(self): ...
    """
    delta = MethodsDelta(tuple(verbs))

    def decorator(func: F) -> F:
        return add_delta(func, delta)

    return decorator


def Route(path: str) -> Callable[[F], F]:
    """Declare a route path. Paths without a leading ``/`` get the controller prefix."""
    delta = PathDelta(path)

    def decorator(func: F) -> F:
        return add_delta(func, delta)

    return decorator


def Middleware(*handlers: Callable, merge: bool = True) -> Callable[[F], F]:
    """
    Route middleware.

    With ``merge=True`` the controller's middleware runs first, then these.
    With ``merge=False`` only these run.
    """
    delta = MiddlewareDelta(tuple(handlers), merge)

    def decorator(func: F) -> F:
        return add_delta(func, delta)

    return decorator


def Pipes(*transforms: Callable, merge: bool = True) -> Callable[[F], F]:
    """
    Argument transforms ``pipe(value, param)`` applied to every extracted
    argument before the route method runs. Merge rules match ``Middleware``.
    """
    delta = PipesDelta(tuple(transforms), merge)

    def decorator(func: F) -> F:
        return add_delta(func, delta)

    return decorator


class RouteDecorator:
    """
    Verb + path shortcut.

    ``@GET("users")`` is ``@Method("GET")`` plus ``@Route("users")``.
    """

    method: str = ""

    def __init__(self, path: Optional[str] = None):
        self.path = path

    def __call__(self, func: F) -> F:
        if self.path is not None:
            add_delta(func, PathDelta(self.path))
        return add_delta(func, MethodsDelta((self.method,)))


class GET(RouteDecorator):
    """GET request decorator."""

    method = "GET"


class POST(RouteDecorator):
    """POST request decorator."""

    method = "POST"


class PUT(RouteDecorator):
    """PUT request decorator."""

    method = "PUT"


class DELETE(RouteDecorator):
    """DELETE request decorator."""

    method = "DELETE"


class PATCH(RouteDecorator):
    """PATCH request decorator."""

    method = "PATCH"


class OPTIONS(RouteDecorator):
    """OPTIONS request decorator."""

    method = "OPTIONS"


class HEAD(RouteDecorator):
    """HEAD request decorator."""

    method = "HEAD"
