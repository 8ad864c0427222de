"""Request-scoped context via ContextVar.

Provides:
- ``request_var``: the ``Request`` being dispatched.
- ``container_var``: the request-scoped ``Container`` for that dispatch.

Both are set by the kernel for the duration of ``Kernel.handle`` and
reset afterwards, so code deep in a service can reach them without
having them passed down::

    from wren.context import get_request

    locale = get_request().header("accept-language", "en")

Thread safety:
    ``ContextVar`` is task-local under asyncio and thread-local under
    threads. No locks needed.
"""

from contextvars import ContextVar

from wren.container import Container
from wren.http.request import Request

request_var: ContextVar[Request] = ContextVar("wren_request")
"""The current request. Set by the kernel before matching."""

container_var: ContextVar[Container] = ContextVar("wren_container")
"""The request-scoped container. Set alongside ``request_var``."""


def get_request() -> Request:
    """Return the current request.

    Raises ``LookupError`` if called outside a dispatch.
    """
    return request_var.get()


def get_container() -> Container:
    """Return the container scoped to the current request.

    Raises ``LookupError`` if called outside a dispatch.
    """
    return container_var.get()
