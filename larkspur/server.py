"""
Application - bootstrap for controllers, services and options.

Wires the DI container, the option container, the route compiler and the
ASGI transport together, and hands the transport to uvicorn.

Example:
    app = (
        Application.create()
        .singleton(UserRepo)
        .scoped(RequestAudit)
        .controller(UsersController)
        .listen(8000)
    )
    app.run(lambda: print("ready"))
"""

from typing import Any, Callable, List, Optional, Type, Union
import logging

import uvicorn

from .config import (
    BODY_JSON_PARSER,
    BODY_RAW_PARSER,
    BODY_TEXT_PARSER,
    BODY_URLENCODED_PARSER,
    JSON_RESULT_OPTIONS,
    STATIC_TYPED_RESOLVER,
    ConfigContainer,
    ConfigKey,
    OptionRecord,
    ServerSettings,
    default_json_options,
    default_json_result_options,
    default_raw_options,
    default_text_options,
    default_urlencoded_options,
)
from .controller import RouteCompiler
from .di import Container, Lifetime
from .faults import AlreadyCompiledError, ConfigurationError
from .metadata import Reflection
from .serialization import TypedSerializer
from .transport import Transport


_MISSING = object()


class Application:
    """
    A Larkspur application.

    Registration methods return ``self`` so calls can be chained. Routes are
    compiled once, by ``compile()`` (called from ``run()`` and on first access
    to ``app``); controllers cannot be added afterwards.
    """

    def __init__(self, settings: Optional[ServerSettings] = None):
        self.di = Container()
        self.configs = ConfigContainer()
        self.transport = Transport()
        self.settings = settings
        self.logger = logging.getLogger("larkspur.server")

        self._controllers: List[type] = []
        self._port: Optional[int] = None
        self._compiled = False

        self._init_default_injections()
        self._init_default_options()

    @classmethod
    def create(cls, settings: Optional[ServerSettings] = None) -> "Application":
        """Create a new app."""
        return cls(settings)

    @property
    def app(self) -> Transport:
        """The ASGI application. Compiles routes on first access."""
        if not self._compiled:
            self.compile()
        return self.transport

    @property
    def compiled(self) -> bool:
        return self._compiled

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def controller(self, cls: type) -> "Application":
        """
        Register a controller class.

        Raises:
            AlreadyCompiledError: If routes were already compiled
        """
        if self._compiled:
            raise AlreadyCompiledError(getattr(cls, "__qualname__", repr(cls)), action="register")
        if not isinstance(cls, type):
            raise ConfigurationError(
                f"Controller must be a class, got {cls!r}",
                code="INVALID_CONTROLLER",
            )
        if cls not in self._controllers:
            self._controllers.append(cls)
        return self

    def scoped(self, token: Union[Type, str], implementation: Any = None) -> "Application":
        """
        Register a scoped service: one instance per request.

        Args:
            token: The type (or key) other services ask for
            implementation: Class to construct or instance to serve; defaults to ``token``
        """
        self.di.register(token, implementation, Lifetime.SCOPED)
        return self

    def singleton(self, token: Union[Type, str], implementation: Any = None) -> "Application":
        """
        Register a singleton service, unique for the application's lifetime.

        A singleton's dependencies are resolved once, so a scoped dependency
        is captured by the singleton for good.
        """
        self.di.register(token, implementation, Lifetime.SINGLETON)
        return self

    def use_options(self, key: Union[ConfigKey, OptionRecord], value: Any = _MISSING) -> "Application":
        """
        Add or modify a configuration item.

        Plain dicts are merged into the current value; instances of custom
        classes replace it.

        Example:
            app.use_options(BODY_JSON_PARSER, {"limit": "1mb"})
            app.use_options(create_options(STATIC_TYPED_RESOLVER, MyResolver()))
        """
        if value is _MISSING:
            if not isinstance(key, OptionRecord):
                raise ConfigurationError(
                    "use_options() needs a ConfigKey and a value, or an OptionRecord",
                    code="INVALID_OPTIONS",
                )
            key, value = key.key, key.value
        self.configs.update(key, value)
        return self

    def listen(self, port: Optional[int] = None) -> "Application":
        """Set the port to listen on (3000 when not given)."""
        self._port = port or 3000
        return self

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def compile(self) -> Transport:
        """
        Validate the dependency graph and compile every controller.

        Raises:
            MissingBindingError: If a service or controller dependency is unbound
            CyclicDependencyError: If the dependency graph has a cycle
            ConfigurationError: If a route is misconfigured
        """
        if self._compiled:
            return self.transport

        for cls in self._controllers:
            self.di.require(cls)
        self.di.complete()

        compiler = RouteCompiler(self.transport, self.di, self.configs)
        count = 0
        for cls in self._controllers:
            meta = Reflection.get_controller_metadata(cls)
            count += len(compiler.compile(meta))

        self._compiled = True
        self.logger.info(f"Compiled {len(self._controllers)} controller(s), {count} route(s)")
        return self.transport

    def run(
        self,
        on_ready: Optional[Callable[[], Any]] = None,
        *,
        host: Optional[str] = None,
        log_level: Optional[str] = None,
        env_file: Optional[str] = None,
    ) -> None:
        """
        Compile and serve with uvicorn. Blocks until the server stops.

        Settings precedence: arguments and ``listen()`` > ``LARKSPUR_*``
        environment variables > ``env_file`` > defaults.
        """
        settings = self.settings or ServerSettings.load(
            env_file=env_file,
            overrides={"port": self._port, "host": host, "log_level": log_level},
        )
        if self._port is not None:
            settings.port = self._port
        logging.basicConfig(level=settings.log_level.upper())

        self.compile()
        if on_ready is not None:
            self.transport.on_startup.append(on_ready)

        self.logger.info(f"Listening on http://{settings.host}:{settings.port}")
        uvicorn.run(
            self.transport,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )

    # ------------------------------------------------------------------
    # Defaults
    # ------------------------------------------------------------------

    def _init_default_injections(self) -> None:
        self.singleton(ConfigContainer, self.configs)

    def _init_default_options(self) -> None:
        self.use_options(JSON_RESULT_OPTIONS, default_json_result_options())
        self.use_options(BODY_JSON_PARSER, default_json_options())
        self.use_options(BODY_TEXT_PARSER, default_text_options())
        self.use_options(BODY_RAW_PARSER, default_raw_options())
        self.use_options(BODY_URLENCODED_PARSER, default_urlencoded_options())
        self.use_options(STATIC_TYPED_RESOLVER, TypedSerializer)
