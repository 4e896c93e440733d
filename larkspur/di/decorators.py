"""
Injection markers and decorators.
"""

from typing import Any, Callable, Optional, Type, TypeVar
from dataclasses import dataclass

from .scopes import Lifetime


T = TypeVar("T")


@dataclass(frozen=True)
class Inject:
    """
    Injection metadata marker.

    Overrides the token inferred from the type hint.

    Usage:
        def __init__(self, repo: Annotated[UserRepo, Inject("users.repo")]):
            ...
    """

    token: Optional[Type | str] = None


def inject(token: Optional[Type | str] = None) -> Inject:
    """
    Create injection metadata.

    Example:
        def __init__(self, cache: Annotated[Cache, inject("cache.primary")]):
            ...
    """
    return Inject(token=token)


def injectable(lifetime: Lifetime | str = Lifetime.SINGLETON) -> Callable[[Type[T]], Type[T]]:
    """
    Mark a class with its default lifetime.

    ``Container.register(cls)`` reads the mark when no explicit lifetime is
    given.

    Example:
        @injectable(Lifetime.SCOPED)
        class RequestAudit:
            ...
    """
    def decorator(cls: Type[T]) -> Type[T]:
        cls.__di_lifetime__ = Lifetime(lifetime)  # type: ignore[attr-defined]
        return cls

    return decorator


def default_lifetime(target: Any) -> Lifetime:
    """Lifetime declared with ``@injectable``, singleton otherwise."""
    return getattr(target, "__di_lifetime__", Lifetime.SINGLETON)
