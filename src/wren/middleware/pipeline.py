"""Onion-style composition of middleware around a terminal handler.

``compose`` wraps right-to-left, so the first middleware listed is the
outermost: it sees the request first and the response last.

    compose([a, b], terminal)(request)

    a: before -> b: before -> terminal -> b: after -> a: after
"""

import logging
from collections.abc import Callable, Sequence
from typing import Any

from wren._internal.invoke import invoke
from wren.container import Container
from wren.errors import ConfigurationError, UnboundKey, describe_key
from wren.http.request import Request
from wren.http.response import Response
from wren.middleware.protocol import Next
from wren.middleware.refs import Inline, Instance, MiddlewareRef, Named

logger = logging.getLogger("wren.kernel")


class Pipeline:
    """Builds the middleware chain for one request.

    Named references are resolved through *container* each time
    :meth:`compose` runs, so pass the request-scoped container.
    """

    __slots__ = ("_container",)

    def __init__(self, container: Container) -> None:
        self._container = container

    def resolve(self, ref: MiddlewareRef) -> Callable[..., Any]:
        """Turn a reference into an ``(request, next)`` callable."""
        if isinstance(ref, Named):
            try:
                target = self._container.resolve(ref.key)
            except UnboundKey as exc:
                msg = f"Middleware {describe_key(ref.key)!r} is not registered in the container"
                raise ConfigurationError(msg) from exc
        elif isinstance(ref, Inline):
            target = ref.fn
        elif isinstance(ref, Instance):
            target = ref.obj
        else:
            msg = f"Not a middleware reference: {ref!r}"
            raise ConfigurationError(msg)

        handle = getattr(target, "handle", None)
        if callable(handle):
            return handle
        if callable(target):
            return target
        msg = (
            f"Middleware {target!r} is neither callable nor has a callable handle() method"
        )
        raise ConfigurationError(msg)

    def compose(
        self,
        middleware: Sequence[MiddlewareRef],
        terminal: Next,
        finish: Callable[[Any], Response] | None = None,
    ) -> Next:
        """Wrap *terminal* in *middleware*, first entry outermost.

        When *finish* is given, each layer's return value is passed
        through it, so an outer middleware always receives a ``Response``
        even if an inner one short-circuited with a plain value.
        """
        resolved = [self.resolve(ref) for ref in middleware]
        logger.debug("Composing %d middleware", len(resolved))

        dispatch: Next = terminal
        for mw in reversed(resolved):
            # Default args bind the current values into each layer
            async def layer(
                request: Request,
                _mw: Callable[..., Any] = mw,
                _next: Next = dispatch,
            ) -> Any:
                result = await invoke(_mw, request, _next)
                if finish is not None and not isinstance(result, Response):
                    return finish(result)
                return result

            dispatch = layer
        return dispatch
