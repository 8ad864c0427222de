"""Middleware protocol and Next type alias.

A middleware is an object with an async ``handle`` method::

    class Timing:
        async def handle(self, request: Request, next: Next) -> Any:
            start = time.monotonic()
            response = await next(request)
            return response.with_header("X-Time", f"{time.monotonic() - start:.3f}")

or a bare ``async def`` with the same ``(request, next)`` shape. No base
class required; the pipeline checks the shape, not the lineage.

A middleware may return without awaiting ``next`` to short-circuit the
chain. Whatever it returns is normalized into a ``Response`` by the
kernel, so returning a string or ``None`` is allowed.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeAlias, runtime_checkable

from wren.http.request import Request
from wren.http.response import Response

# The rest of the chain, as seen by one middleware
Next: TypeAlias = Callable[[Request], Awaitable[Response]]


@runtime_checkable
class Middleware(Protocol):
    """Protocol for class-based middleware."""

    async def handle(self, request: Request, next: Next) -> Any: ...
