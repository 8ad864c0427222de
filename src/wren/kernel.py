"""The dispatch kernel — one request in, one response out.

For every request the kernel

1. opens a request-scoped child container with the ``Request`` bound,
2. matches the route,
3. composes global and route middleware around a terminal handler,
4. resolves and invokes the handler with the route parameters,
5. normalizes whatever came back into a ``Response``.

Any exception along the way is handed to the exception renderer exactly
once. Nothing escapes ``handle`` except failures of the renderer itself.

States a dispatch walks through (logged at debug on ``wren.kernel``)::

    IDLE -> MATCHING -> COMPOSING -> RESOLVING -> EXECUTING -> NORMALIZING -> DONE
                                   \\______________ any failure ______________/-> FAILED
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from functools import partial
from typing import Any

from wren._internal.invoke import invoke
from wren.config import AppConfig
from wren.container import Container
from wren.context import container_var, request_var
from wren.errors import ConfigurationError, HandlerFailure, WrenError
from wren.handlers import is_api_handler, resolve_handler
from wren.http.request import Request
from wren.http.response import Response
from wren.middleware.pipeline import Pipeline
from wren.middleware.refs import MiddlewareRef, as_middleware_refs
from wren.routing.route import Route
from wren.routing.router import Router
from wren.server.errors import ExceptionHandler, ExceptionRenderer

logger = logging.getLogger("wren.kernel")


class DispatchState(enum.Enum):
    IDLE = "idle"
    MATCHING = "matching"
    COMPOSING = "composing"
    RESOLVING = "resolving"
    EXECUTING = "executing"
    NORMALIZING = "normalizing"
    DONE = "done"
    FAILED = "failed"


def normalize(result: Any, *, api: bool = False) -> Response:
    """Coerce a handler or middleware result into a ``Response``.

    - ``Response``: returned unchanged
    - ``str``: HTML body
    - ``bytes``: ``application/octet-stream`` body
    - ``None``: empty HTML response
    - ``dict`` / ``list`` / ``tuple``: JSON, only when *api* is true
    - anything else: ``str(result)`` as HTML
    """
    match result:
        case Response():
            return result
        case str():
            return Response(body=result)
        case bytes():
            return Response(body=result, content_type="application/octet-stream")
        case None:
            return Response()
        case dict() | list() | tuple():
            if not api:
                msg = (
                    f"Handler returned {type(result).__name__}, which only API routes "
                    "may return. Mark the route with .api() or return a Response."
                )
                raise ConfigurationError(msg)
            return Response.json(result)
        case _:
            return Response(body=str(result))


class _Dispatch:
    """Mutable bookkeeping for one in-flight request."""

    __slots__ = ("method", "path", "state")

    def __init__(self, request: Request) -> None:
        self.method = request.method
        self.path = request.path
        self.state = DispatchState.IDLE

    def advance(self, state: DispatchState) -> None:
        logger.debug("%s %s: %s -> %s", self.method, self.path, self.state.value, state.value)
        self.state = state


class Kernel:
    """Request dispatcher.

    Usage::

        router = Router()
        router.get("/users/{id}", "app.controllers.UserController@show")
        router.compile()

        kernel = Kernel(Container(), router, middleware=[CorrelationIdMiddleware])
        response = await kernel.handle(Request.build("GET", "/users/7"))
    """

    __slots__ = ("_config", "_container", "_middleware", "_renderer", "_router")

    def __init__(
        self,
        container: Container,
        router: Router,
        *,
        middleware: Sequence[Any] = (),
        renderer: ExceptionHandler | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self._config = config or AppConfig()
        self._container = container
        self._router = router
        self._middleware: tuple[MiddlewareRef, ...] = as_middleware_refs(middleware)
        self._renderer: ExceptionHandler = renderer or ExceptionRenderer(debug=self._config.debug)

    @property
    def container(self) -> Container:
        return self._container

    @property
    def router(self) -> Router:
        return self._router

    @property
    def middleware(self) -> tuple[MiddlewareRef, ...]:
        return self._middleware

    def is_api_target(self, route: Route, path: str) -> bool:
        """True when structured results of *route* may be sent as JSON."""
        if route.api or is_api_handler(route.handler):
            return True
        for prefix in self._config.api_prefixes:
            base = "/" + prefix.strip("/")
            if path == base or path.startswith(base.rstrip("/") + "/"):
                return True
        return False

    async def handle(self, request: Request) -> Response:
        """Dispatch *request* and always return a response."""
        dispatch = _Dispatch(request)
        scope = self._container.scope()
        scope.instance(Container, scope)
        scope.instance(Request, request)
        request_token = request_var.set(request)
        container_token = container_var.set(scope)
        try:
            response = await self._dispatch(request, scope, dispatch)
        except Exception as exc:
            dispatch.advance(DispatchState.FAILED)
            return await self._fail(exc, request)
        finally:
            container_var.reset(container_token)
            request_var.reset(request_token)
        dispatch.advance(DispatchState.DONE)
        logger.debug("%s %s -> %d", request.method, request.path, response.status)
        return response

    async def _dispatch(self, request: Request, scope: Container, dispatch: _Dispatch) -> Response:
        dispatch.advance(DispatchState.MATCHING)
        match = self._router.match(request.method, request.path)
        route = match.route
        request = request.with_path_params(match.params)
        scope.instance(Request, request)
        request_var.set(request)

        dispatch.advance(DispatchState.COMPOSING)
        finish = partial(normalize, api=self.is_api_target(route, request.path))

        async def terminal(current: Request) -> Response:
            dispatch.advance(DispatchState.RESOLVING)
            if current is not request:
                scope.instance(Request, current)
            fn = resolve_handler(route.handler, scope)
            dispatch.advance(DispatchState.EXECUTING)
            result = await invoke(fn, *match.params.values())
            dispatch.advance(DispatchState.NORMALIZING)
            return finish(result)

        chain = Pipeline(scope).compose((*self._middleware, *route.middleware), terminal, finish)
        result = await chain(request)
        if not isinstance(result, Response):
            result = finish(result)
        return result

    async def _fail(self, exc: Exception, request: Request) -> Response:
        if isinstance(exc, WrenError):
            failure: WrenError = exc
        else:
            failure = HandlerFailure(exc, method=request.method, path=request.path)
            failure.__cause__ = exc
        logger.debug("%s %s failed: %s", request.method, request.path, failure)
        response = await invoke(self._renderer.render, failure)
        return normalize(response)
