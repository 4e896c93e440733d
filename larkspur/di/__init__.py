"""
Larkspur Dependency Injection

Two lifetimes:
- singleton: one instance for the container's lifetime
- scoped: one instance per resolution pass (one request)

Dependencies are declared by constructor type annotations and validated
up front by ``Container.complete()``.
"""

from .core import (
    Binding,
    Container,
    ResolutionPass,
    token_to_key,
)

from .providers import (
    ClassProvider,
    ValueProvider,
    Dependency,
    extract_dependencies,
)

from .scopes import Lifetime

from .decorators import (
    Inject,
    inject,
    injectable,
)

from .errors import (
    DIError,
    MissingBindingError,
    CyclicDependencyError,
)

__all__ = [
    "Binding",
    "Container",
    "ResolutionPass",
    "token_to_key",
    "ClassProvider",
    "ValueProvider",
    "Dependency",
    "extract_dependencies",
    "Lifetime",
    "Inject",
    "inject",
    "injectable",
    "DIError",
    "MissingBindingError",
    "CyclicDependencyError",
]
