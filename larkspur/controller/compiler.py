"""
Route Compiler

Turns finalized controller metadata into transport registrations:
``[form parser?] + route middleware + [RequestPipeline]`` per route and verb.
"""

from typing import Any, Callable, Dict, List, Set, Tuple
from dataclasses import dataclass
import logging

from ..config import (
    BODY_JSON_PARSER,
    BODY_RAW_PARSER,
    BODY_TEXT_PARSER,
    BODY_URLENCODED_PARSER,
    ConfigContainer,
    ConfigKey,
)
from ..di import Container
from ..faults import AlreadyCompiledError, ConfigurationError, InvalidMethodError, InvalidPathError
from ..metadata import ALLOW_METHODS, ControllerMetadata, FormBinding, FormParser, MetadataState
from ..transport import parsers
from .pipeline import RequestPipeline


logger = logging.getLogger("larkspur.controller.compiler")


_PARSERS: Dict[FormParser, Tuple[Callable[..., Any], Any]] = {
    FormParser.JSON: (parsers.json, BODY_JSON_PARSER),
    FormParser.URL: (parsers.url_encoded, BODY_URLENCODED_PARSER),
    FormParser.TEXT: (parsers.text, BODY_TEXT_PARSER),
    FormParser.RAW: (parsers.raw, BODY_RAW_PARSER),
    FormParser.MULTIPLE: (parsers.multipart.any, None),
    FormParser.FILES: (parsers.multipart.any, None),
}


@dataclass(frozen=True)
class CompiledRoute:
    """One registration handed to the transport."""

    verb: str
    path: str
    handlers: Tuple[Callable[..., Any], ...]
    method_name: str


class RouteCompiler:
    """
    Compiles controllers onto a transport.

    Every route of a controller is validated before any of them is
    registered, so a failing controller leaves the transport untouched.
    """

    def __init__(self, transport: Any, container: Container, configs: ConfigContainer):
        self.transport = transport
        self.container = container
        self.configs = configs
        self._compiled: Set[type] = set()

    def compile(self, meta: ControllerMetadata) -> List[CompiledRoute]:
        """
        Register every route of ``meta`` and freeze it.

        Raises:
            ConfigurationError: If the class was never finalized by ``@controller``
            InvalidMethodError: If a route declares an unknown verb
            InvalidPathError: If a route has no path
            AlreadyCompiledError: If this compiler already registered the controller
        """
        if meta.state is MetadataState.PENDING:
            raise ConfigurationError(
                f"'{meta.name}' is not a controller; decorate it with @controller",
                code="NOT_A_CONTROLLER",
                metadata={"controller": meta.name},
            )

        if meta.controller in self._compiled:
            raise AlreadyCompiledError(meta.name, action="compile")

        compiled = list(self.plan(meta))
        meta.mark_compiled()
        self._compiled.add(meta.controller)

        for entry in compiled:
            register = getattr(self.transport, entry.verb.lower())
            register(entry.path, *entry.handlers)
            logger.info(f"Mapped {entry.verb} {entry.path} -> {meta.name}.{entry.method_name}")
        return compiled

    def plan(self, meta: ControllerMetadata):
        """Validate routes and yield their registrations."""
        for name, route in meta.routes.items():
            for verb in route.allow_methods:
                if verb not in ALLOW_METHODS:
                    raise InvalidMethodError(verb, name)
                if not route.path:
                    raise InvalidPathError(name, meta.name)

                chain: List[Callable[..., Any]] = []
                if route.form is not None:
                    chain.append(self.form_parser(route.form))
                if route.middleware is not None:
                    chain.extend(route.middleware.items)
                chain.append(RequestPipeline(self.container, self.configs, meta, route))

                yield CompiledRoute(verb=verb, path=route.path, handlers=tuple(chain), method_name=name)

    def form_parser(self, form: FormBinding) -> Callable[..., Any]:
        """Body parser middleware for a form binding, with configured defaults."""
        factory, key = _PARSERS[form.parser]
        options = dict(self._options(key))
        options.update(form.options or {})
        return factory(options)

    def _options(self, key: ConfigKey) -> Dict[str, Any]:
        if key is None:
            return {}
        return self.configs.get(key) or {}
