"""
Core DI types.

Defines the container, its bindings and the resolution pass that bounds
scoped instances to a single request.
"""

from typing import Any, Dict, List, Optional, Type, TypeVar, TYPE_CHECKING
from dataclasses import dataclass
import logging
import threading

from .scopes import Lifetime
from .errors import MissingBindingError, CyclicDependencyError
from ..faults import ConfigurationError

if TYPE_CHECKING:
    from .providers import Dependency


T = TypeVar("T")

# Module-level cache: type -> "module.qualname" string
_type_key_cache: Dict[type, str] = {}

_MISSING = object()


def token_to_key(token: Any) -> str:
    """Convert a type or string token to its registry key."""
    if isinstance(token, str):
        return token

    if isinstance(token, type):
        key = _type_key_cache.get(token)
        if key is None:
            key = f"{token.__module__}.{token.__qualname__}"
            _type_key_cache[token] = key
        return key

    return str(token)


@dataclass(frozen=True, slots=True)
class Binding:
    """A ``token -> implementation`` registration with its lifetime."""

    key: str
    provider: Any
    lifetime: Lifetime


class ResolutionPass:
    """
    One bounded unit of dependency resolution (one inbound request).

    Carries the pass-local scoped cache and the resolution stack used for
    cycle detection. Discarded when the request ends.
    """
    __slots__ = ("container", "stack", "cache", "_closed")

    def __init__(self, container: "Container"):
        self.container = container
        self.stack: List[str] = []
        self.cache: Dict[str, Any] = {}
        self._closed = False

    def push(self, key: str) -> None:
        self.stack.append(key)

    def pop(self) -> None:
        self.stack.pop()

    def in_cycle(self, key: str) -> bool:
        """Check if key is currently being resolved."""
        return key in self.stack

    def cycle_for(self, key: str) -> List[str]:
        """Resolution path from the first occurrence of ``key`` back to itself."""
        start = self.stack.index(key)
        return self.stack[start:] + [key]

    def current(self) -> Optional[str]:
        return self.stack[-1] if self.stack else None

    def resolve(self, token: Type[T] | str) -> T:
        return self.container.resolve(token, self)

    def close(self) -> None:
        """Drop every scoped instance created in this pass."""
        self.cache.clear()
        self.stack.clear()
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "ResolutionPass":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class Container:
    """
    DI Container - owns bindings and singleton instances.

    Singletons are created lazily, once, and kept for the container's
    lifetime. Scoped instances are created once per ``ResolutionPass``.

    A singleton that depends on a scoped service captures the scoped instance
    created in the pass that first built the singleton, and keeps it for the
    rest of the process. Singletons never see per-request scoping.
    """

    def __init__(self):
        self._bindings: Dict[str, Binding] = {}
        self._singletons: Dict[str, Any] = {}
        self._roots: Dict[str, type] = {}
        self._lock = threading.RLock()
        self._completed = False
        self.logger = logging.getLogger("larkspur.di")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        token: Type | str,
        implementation: Any = None,
        lifetime: Optional[Lifetime | str] = None,
    ) -> Binding:
        """
        Register a binding. Re-registering a token overwrites it.

        Args:
            token: Type or string key other services ask for
            implementation: Class to construct, or a ready instance to serve.
                Defaults to ``token`` itself.
            lifetime: ``Lifetime.SINGLETON`` or ``Lifetime.SCOPED``. Defaults to
                the lifetime marked with ``@injectable``, singleton otherwise.

        Raises:
            ConfigurationError: If the token is empty
        """
        from .providers import provider_for
        from .decorators import default_lifetime

        if token is None or token == "":
            raise ConfigurationError(
                "invalid injection registration : the provide key is empty.",
                code="EMPTY_PROVIDE_KEY",
            )
        if implementation is None:
            if isinstance(token, str):
                raise ConfigurationError(
                    f"invalid injection registration : string key '{token}' needs an implementation.",
                    code="MISSING_IMPLEMENTATION",
                )
            implementation = token

        if lifetime is None:
            lifetime = default_lifetime(implementation)

        key = token_to_key(token)
        binding = Binding(key=key, provider=provider_for(implementation), lifetime=Lifetime(lifetime))

        if key in self._bindings:
            self.logger.debug(f"Overwriting binding for '{key}'")
            self._singletons.pop(key, None)
        self._bindings[key] = binding
        self._completed = False

        self.logger.debug(f"Registered {binding.lifetime.value} binding '{key}' -> {binding.provider!r}")
        return binding

    def require(self, cls: type) -> None:
        """
        Declare a class that is constructed through ``resolve_deps`` without
        being bound itself (a controller). ``complete()`` validates its
        dependencies as well.
        """
        self._roots[token_to_key(cls)] = cls
        self._completed = False

    def is_registered(self, token: Type | str) -> bool:
        return token_to_key(token) in self._bindings

    def binding(self, token: Type | str) -> Optional[Binding]:
        return self._bindings.get(token_to_key(token))

    @property
    def completed(self) -> bool:
        return self._completed

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def complete(self) -> None:
        """
        Validate the whole graph before serving traffic.

        Walks every binding and every required root and checks that each
        transitively reachable dependency is bound and that no cycle exists.

        Raises:
            MissingBindingError: Naming the first unresolved key
            CyclicDependencyError: Naming the cycle
        """
        from .providers import extract_dependencies

        visited: set[str] = set()

        def visit(key: str, deps: List["Dependency"], path: List[str]) -> None:
            if key in path:
                raise CyclicDependencyError(path[path.index(key):] + [key])
            if key in visited:
                return
            path.append(key)
            for dep in deps:
                binding = self._bindings.get(dep.key)
                if binding is None:
                    if dep.optional:
                        continue
                    raise MissingBindingError(dep.key, requested_by=key)
                visit(dep.key, binding.provider.dependencies, path)
            path.pop()
            visited.add(key)

        for key, binding in self._bindings.items():
            visit(key, binding.provider.dependencies, [])

        for key, cls in self._roots.items():
            visit(key, extract_dependencies(cls), [])

        self._completed = True
        self.logger.info(
            f"DI container complete: {len(self._bindings)} binding(s), {len(self._roots)} root(s)"
        )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def create_pass(self) -> ResolutionPass:
        """Start a new resolution pass (one per request)."""
        return ResolutionPass(self)

    def resolve(self, token: Type[T] | str, pass_: Optional[ResolutionPass] = None) -> T:
        """
        Resolve one token.

        Args:
            token: Type or string key
            pass_: Resolution pass; a throwaway pass is used when omitted

        Raises:
            MissingBindingError: If no binding exists
            CyclicDependencyError: If the token is already being resolved
        """
        if pass_ is None:
            with self.create_pass() as throwaway:
                return self._resolve_key(token_to_key(token), throwaway, None)
        return self._resolve_key(token_to_key(token), pass_, pass_.current())

    def resolve_deps(self, cls: type, pass_: Optional[ResolutionPass] = None) -> List[Any]:
        """
        Resolve the constructor dependencies of ``cls`` in declaration order.

        The returned list is suitable for ``cls(*deps)``.
        """
        from .providers import extract_dependencies

        deps = extract_dependencies(cls)
        if pass_ is None:
            with self.create_pass() as throwaway:
                return self.resolve_dependencies(deps, throwaway, requested_by=token_to_key(cls))
        return self.resolve_dependencies(deps, pass_, requested_by=token_to_key(cls))

    def instantiate(self, cls: Type[T], pass_: Optional[ResolutionPass] = None) -> T:
        """Construct ``cls`` with its dependencies resolved in ``pass_``."""
        return cls(*self.resolve_deps(cls, pass_))

    def resolve_dependencies(
        self,
        deps: List["Dependency"],
        pass_: ResolutionPass,
        *,
        requested_by: Optional[str] = None,
    ) -> List[Any]:
        values = []
        for dep in deps:
            if dep.optional and dep.key not in self._bindings:
                values.append(dep.default)
                continue
            values.append(self._resolve_key(dep.key, pass_, requested_by))
        return values

    def _resolve_key(self, key: str, pass_: ResolutionPass, requested_by: Optional[str]) -> Any:
        binding = self._bindings.get(key)
        if binding is None:
            raise MissingBindingError(key, requested_by=requested_by)

        if binding.lifetime is Lifetime.SINGLETON:
            cached = self._singletons.get(key, _MISSING)
            if cached is not _MISSING:
                return cached
            with self._lock:
                cached = self._singletons.get(key, _MISSING)
                if cached is not _MISSING:
                    return cached
                instance = self._construct(binding, pass_)
                self._singletons[key] = instance
                return instance

        cached = pass_.cache.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        instance = self._construct(binding, pass_)
        pass_.cache[key] = instance
        return instance

    def _construct(self, binding: Binding, pass_: ResolutionPass) -> Any:
        if pass_.in_cycle(binding.key):
            raise CyclicDependencyError(pass_.cycle_for(binding.key))

        pass_.push(binding.key)
        try:
            return binding.provider.instantiate(self, pass_)
        finally:
            pass_.pop()
