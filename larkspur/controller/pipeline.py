"""
Request Pipeline - the final handler of every compiled route.

Per request:
1. open a resolution pass and construct the controller
2. bind the request/response ``Context``
3. extract arguments (query, path, body) and run the route's pipes
4. invoke the route method
5. dispatch the result: strings verbatim, ``MethodResult`` through
   ``to_string(configs)``, awaitables resolved first
"""

from typing import Any, Awaitable, List, Union
from dataclasses import dataclass
import inspect
import logging

from ..config import ConfigContainer, STATIC_TYPED_RESOLVER
from ..di import Container
from ..faults import BadRequest, InvalidResultTypeError
from ..metadata import ControllerMetadata, FormBinding, FormParser, FuncParam, RouteDefinition
from ..serialization import TypedSerializer
from .base import Context, bind_context
from .results import MethodResult


logger = logging.getLogger("larkspur.controller.pipeline")


# ============================================================================
# Result classification
# ============================================================================

@dataclass(frozen=True)
class StringOutcome:
    value: str


@dataclass(frozen=True)
class StructuredOutcome:
    result: MethodResult


@dataclass(frozen=True)
class AsyncOutcome:
    pending: Awaitable[Any]


Outcome = Union[StringOutcome, StructuredOutcome, AsyncOutcome]


def classify(value: Any, handler: str) -> Outcome:
    """
    Tag a handler's return value.

    Raises:
        InvalidResultTypeError: If the value is outside the result contract
    """
    if isinstance(value, str):
        return StringOutcome(value)
    if inspect.isawaitable(value):
        return AsyncOutcome(value)
    if isinstance(value, MethodResult):
        return StructuredOutcome(value)
    raise InvalidResultTypeError(handler, value)


# ============================================================================
# Pipeline
# ============================================================================

class RequestPipeline:
    """
    Final handler for one controller route.

    Example:
        pipeline = RequestPipeline(container, configs, meta, meta.routes["list"])
        transport.get("/api/users", auth, pipeline)
    """

    def __init__(
        self,
        container: Container,
        configs: ConfigContainer,
        meta: ControllerMetadata,
        route: RouteDefinition,
    ):
        self.container = container
        self.configs = configs
        self.meta = meta
        self.route = route
        self.handler_name = f"{meta.name}.{route.method_name}"

    async def __call__(self, request: Any, response: Any, next: Any = None) -> None:
        with self.container.create_pass() as pass_:
            instance = self.container.instantiate(self.meta.controller, pass_)
            bind_context(instance, Context(request=request, response=response))

            args = self.extract(request)
            args = await self.apply_pipes(args)

            logger.debug(f"Invoking {self.handler_name} with {len(args)} argument(s)")
            result = getattr(instance, self.route.method_name)(*args)
            await self.dispatch(result, response)

    # ------------------------------------------------------------------
    # Argument extraction
    # ------------------------------------------------------------------

    def extract(self, request: Any) -> List[Any]:
        """Build the positional arguments of the route method."""
        form = self.route.form
        args = []
        for index, param in enumerate(self.route.func_params):
            if form is not None and index == form.index:
                args.append(self.extract_body(request, form))
            else:
                args.append(self.extract_param(request, param))
        return args

    def extract_param(self, request: Any, param: FuncParam) -> Any:
        source = "query" if param.is_query else "path"
        try:
            if param.is_query:
                value = request.query(param.key, param.type)
            else:
                value = request.param(param.key, param.type)
        except (TypeError, ValueError) as exc:
            raise BadRequest(
                f"Invalid {source} parameter '{param.key}': {exc}",
                parameter=param.key,
                source=source,
            ) from exc

        if value is None and param.has_default:
            return param.default
        return value

    def extract_body(self, request: Any, form: FormBinding) -> Any:
        body = request.files if form.parser is FormParser.FILES else request.body
        if form.type is None or body is None:
            return body

        resolver = self.configs.get(STATIC_TYPED_RESOLVER) or TypedSerializer
        try:
            return resolver.from_object(body, form.type)
        except (TypeError, ValueError) as exc:
            raise BadRequest(f"Invalid request body: {exc}", handler=self.handler_name) from exc

    async def apply_pipes(self, args: List[Any]) -> List[Any]:
        pipes = self.route.pipes.items if self.route.pipes else ()
        if not pipes:
            return args

        transformed = []
        for value, param in zip(args, self.route.func_params):
            for pipe in pipes:
                value = pipe(value, param)
                if inspect.isawaitable(value):
                    value = await value
            transformed.append(value)
        return transformed

    # ------------------------------------------------------------------
    # Result dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, result: Any, response: Any) -> None:
        outcome = classify(result, self.handler_name)
        if isinstance(outcome, AsyncOutcome):
            resolved = await outcome.pending
            outcome = classify(resolved, self.handler_name)
            if isinstance(outcome, AsyncOutcome):
                raise InvalidResultTypeError(self.handler_name, resolved)

        if isinstance(outcome, StringOutcome):
            await response.send(outcome.value)
            return

        body = outcome.result.to_string(self.configs)
        await response.send(body, content_type=getattr(outcome.result, "content_type", None))
