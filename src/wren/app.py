"""Wren application class.

Mutable during setup (routes, middleware, bindings, providers).
Frozen on the first dispatch, or explicitly through ``freeze()``.
"""

import logging
import threading
from collections.abc import Callable
from typing import Any, TypeAlias

import anyio

from wren._internal.asgi import Receive, Scope, Send
from wren.config import AppConfig
from wren.container import Container
from wren.errors import ConfigurationError
from wren.http.request import Request
from wren.http.response import Response
from wren.kernel import Kernel
from wren.middleware.refs import MiddlewareRef, as_middleware_refs
from wren.providers import ServiceProvider
from wren.routing.router import Router
from wren.server.errors import ExceptionHandler, ExceptionRenderer
from wren.server.sender import send_response

logger = logging.getLogger("wren.kernel")

RouteCallback: TypeAlias = Callable[[Router], Any]


class App:
    """The wren application.

    Setup happens through plain calls or decorators::

        app = App(AppConfig(debug=True))
        app.singleton(UserRepository, SqlUserRepository)
        app.add_middleware(CorrelationIdMiddleware)

        @app.routes
        def web(router: Router) -> None:
            router.get("/users/{id}", "app.controllers.UserController@show").name("users.show")

        @app.route("/health")
        def health() -> str:
            return "ok"

    The app freezes on the first request: route callbacks run, the table
    compiles, providers boot, and every further setup call raises.

    Thread safety:
        The freeze transition uses a Lock + double-check so exactly one
        thread compiles the app even if several workers receive their
        first request concurrently.
    """

    __slots__ = (
        "_freeze_lock",
        "_frozen",
        "_kernel",
        "_middleware",
        "_providers",
        "_renderer",
        "_route_callbacks",
        "_router",
        "config",
        "container",
    )

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        container: Container | None = None,
        renderer: ExceptionHandler | None = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self.container: Container = container or Container()
        self.container.instance(Container, self.container)
        self.container.instance(AppConfig, self.config)
        self._renderer: ExceptionHandler = renderer or ExceptionRenderer(debug=self.config.debug)
        self._router = Router()
        self._route_callbacks: list[RouteCallback] = []
        self._middleware: list[MiddlewareRef] = []
        self._providers: list[ServiceProvider] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Compiled state — set during _freeze()
        self._kernel: Kernel | None = None

        if self.config.log_level:
            logging.getLogger("wren").setLevel(self.config.log_level.upper())

    # -- Route registration --

    def routes(self, callback: RouteCallback) -> RouteCallback:
        """Register a route configuration callback.

        Called once with the router when the app freezes. Usable as a
        decorator.
        """
        self._check_not_frozen()
        self._route_callbacks.append(callback)
        return callback

    def route(
        self,
        path: str,
        *,
        methods: list[str] | None = None,
        name: str | None = None,
        api: bool = False,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register an inline route handler via decorator.

        Args:
            path: URL pattern. Use ``{param}`` and ``{param?}`` for parameters.
            methods: HTTP methods. Defaults to ``config.default_methods``.
            name: Optional route name for URL generation.
            api: Allow structured (dict/list) results, sent as JSON.
        """

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._check_not_frozen()
            pending = self._router.add_route(methods or self.config.default_methods, path, func)
            if name is not None:
                pending.name(name)
            if api:
                pending.api()
            return func

        return decorator

    @property
    def router(self) -> Router:
        """The router. Routes can be added directly until the app freezes."""
        return self._router

    # -- Middleware --

    def add_middleware(self, *middleware: Any) -> None:
        """Append global middleware, run before any route middleware."""
        self._check_not_frozen()
        self._middleware.extend(as_middleware_refs(middleware))

    # -- Container shortcuts --

    def bind(self, key: Any, producer: Any = None) -> None:
        self._check_not_frozen()
        self.container.bind(key, producer)

    def singleton(self, key: Any, producer: Any = None) -> None:
        self._check_not_frozen()
        self.container.singleton(key, producer)

    def instance(self, key: Any, value: Any) -> None:
        self._check_not_frozen()
        self.container.instance(key, value)

    def register(self, provider: type[ServiceProvider] | ServiceProvider) -> ServiceProvider:
        """Add a service provider and run its ``register()`` hook now."""
        self._check_not_frozen()
        if isinstance(provider, type):
            if not issubclass(provider, ServiceProvider):
                msg = f"{provider.__qualname__} is not a ServiceProvider"
                raise ConfigurationError(msg)
            provider = provider(self.container)
        elif not isinstance(provider, ServiceProvider):
            msg = f"{provider!r} is not a ServiceProvider"
            raise ConfigurationError(msg)
        provider.register()
        self._providers.append(provider)
        logger.debug("Registered provider %s", type(provider).__qualname__)
        return provider

    # -- URL generation --

    def url_for(self, name: str, **params: Any) -> str:
        """Build the path of the route named *name*."""
        self._ensure_frozen()
        return self._router.url(name, params)

    # -- Dispatch --

    @property
    def kernel(self) -> Kernel:
        self._ensure_frozen()
        assert self._kernel is not None
        return self._kernel

    async def handle(self, request: Request) -> Response:
        """Dispatch *request* through the kernel."""
        return await self.kernel.handle(request)

    def dispatch(self, request: Request) -> Response:
        """Dispatch *request* synchronously, running the kernel to completion.

        For one-request-per-invocation entrypoints (CGI-style scripts,
        CLIs). Must not be called from inside a running event loop.
        """
        return anyio.run(self.handle, request)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point. Only HTTP and lifespan scopes are handled."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        if scope["type"] != "http":
            return

        self._ensure_frozen()
        body = bytearray()
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            body.extend(message.get("body", b""))
            if not message.get("more_body", False):
                break
        request = Request.from_asgi(scope, bytes(body))
        response = await self.handle(request)
        await send_response(response, send)

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                try:
                    self._ensure_frozen()
                except Exception as exc:
                    logger.exception("Startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def freeze(self) -> None:
        """Compile the app now instead of on the first request."""
        self._ensure_frozen()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        # 1. Route configuration callbacks, then compile
        for callback in self._route_callbacks:
            callback(self._router)
        self._router.compile()
        self.container.instance(Router, self._router)

        # 2. Boot providers now that every binding is in place
        for provider in self._providers:
            provider.boot()

        # 3. Kernel over the immutable middleware tuple
        self._kernel = Kernel(
            self.container,
            self._router,
            middleware=tuple(self._middleware),
            renderer=self._renderer,
            config=self.config,
        )
        self._frozen = True
        logger.info(
            "App frozen: %d route(s), %d global middleware, %d provider(s)",
            len(self._router.routes),
            len(self._middleware),
            len(self._providers),
        )

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, middleware, and bindings before the first dispatch."
            )
            raise RuntimeError(msg)
