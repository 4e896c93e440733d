"""
Controller Base Class

Provides the optional ``BaseController`` and the ``Context`` bound to each
controller instance before its route method runs.
"""

from typing import Optional, TYPE_CHECKING
from dataclasses import dataclass

if TYPE_CHECKING:
    from larkspur.transport import Request, Response


@dataclass
class Context:
    """
    Request/response pair of the current invocation.

    Attributes:
        request: The HTTP request
        response: The HTTP response
    """

    request: "Request"
    response: "Response"


class BaseController:
    """
    Base controller class.

    Controllers are constructed once per request with their constructor
    dependencies resolved by the DI container, then bound to the request's
    ``Context``. Subclassing is optional: any class decorated with
    ``@controller`` works, and receives ``context`` as an attribute.

    Example:
        @controller("users")
        class UsersController(BaseController):
            def __init__(self, repo: UserRepo):
                self.repo = repo

            @GET("{id}")
            async def show(self, id: int):
                return JsonResult(self.repo.get(id))
    """

    _context: Optional[Context] = None

    @property
    def context(self) -> Context:
        if self._context is None:
            raise RuntimeError(f"{type(self).__name__} is not bound to a request")
        return self._context

    def bind_context(self, context: Context) -> None:
        self._context = context


def bind_context(instance: object, context: Context) -> None:
    """Attach ``context`` to any controller instance."""
    binder = getattr(instance, "bind_context", None)
    if callable(binder):
        binder(context)
    else:
        instance.context = context
