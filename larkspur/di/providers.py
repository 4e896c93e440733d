"""
Provider implementations for different instantiation strategies.
"""

from typing import Any, List, Optional, Type, TypeVar, get_type_hints, get_origin, get_args, Annotated
from dataclasses import dataclass
import inspect

from .core import ResolutionPass, token_to_key
from .decorators import Inject
from ..faults import ConfigurationError


T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Dependency:
    """One positional constructor dependency."""

    name: str
    token: Any
    key: str
    optional: bool = False
    default: Any = inspect.Parameter.empty


def extract_dependencies(cls: Type) -> List[Dependency]:
    """
    Extract constructor dependencies of ``cls`` in declaration order.

    Each parameter must be annotated with the type (or ``Annotated[T, Inject(key)]``)
    to inject. Unannotated parameters with a default are left to their default.

    Raises:
        ConfigurationError: If a required parameter has no annotation
    """
    init = cls.__init__
    if init is object.__init__:
        return []

    try:
        sig = inspect.signature(init)
    except (TypeError, ValueError):
        return []

    try:
        hints = get_type_hints(init, include_extras=True)
    except Exception:
        hints = {}

    deps: List[Dependency] = []
    for name, param in sig.parameters.items():
        if name in ("self", "cls"):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        annotation = hints.get(name, param.annotation)
        has_default = param.default is not inspect.Parameter.empty

        if annotation is inspect.Parameter.empty:
            if has_default:
                continue
            raise ConfigurationError(
                f"Missing type annotation for parameter '{name}' in {cls.__qualname__}.__init__",
                metadata={"class": cls.__qualname__, "parameter": name},
            )

        token = _parse_annotation(annotation)
        deps.append(Dependency(
            name=name,
            token=token,
            key=token_to_key(token),
            optional=has_default,
            default=param.default,
        ))

    return deps


def _parse_annotation(annotation: Any) -> Any:
    """Return the injection token for a parameter annotation."""
    if get_origin(annotation) is Annotated:
        base, *extras = get_args(annotation)
        for extra in extras:
            if isinstance(extra, Inject) and extra.token is not None:
                return extra.token
        return base
    return annotation


class ClassProvider:
    """
    Provider that instantiates a class by resolving constructor dependencies.
    """

    __slots__ = ("_cls", "_dependencies")

    def __init__(self, cls: Type[T]):
        self._cls = cls
        self._dependencies: Optional[List[Dependency]] = None

    @property
    def target(self) -> Type:
        return self._cls

    @property
    def dependencies(self) -> List[Dependency]:
        if self._dependencies is None:
            self._dependencies = extract_dependencies(self._cls)
        return self._dependencies

    def instantiate(self, container: Any, pass_: ResolutionPass) -> Any:
        """Instantiate class with its dependencies resolved in ``pass_``."""
        args = container.resolve_dependencies(self.dependencies, pass_, requested_by=token_to_key(self._cls))
        return self._cls(*args)

    def __repr__(self) -> str:
        return f"ClassProvider({self._cls.__qualname__})"


class ValueProvider:
    """Provider that returns a pre-bound instance."""

    __slots__ = ("_value",)

    def __init__(self, value: Any):
        self._value = value

    @property
    def target(self) -> Type:
        return type(self._value)

    @property
    def dependencies(self) -> List[Dependency]:
        return []

    def instantiate(self, container: Any, pass_: ResolutionPass) -> Any:
        return self._value

    def __repr__(self) -> str:
        return f"ValueProvider({type(self._value).__qualname__})"


def provider_for(implementation: Any) -> "ClassProvider | ValueProvider":
    """Choose a provider: classes are constructed, anything else is served as-is."""
    if isinstance(implementation, type):
        return ClassProvider(implementation)
    return ValueProvider(implementation)


__all__ = [
    "Dependency",
    "extract_dependencies",
    "ClassProvider",
    "ValueProvider",
    "provider_for",
]

