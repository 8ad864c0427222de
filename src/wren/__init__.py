"""Wren — a small request-dispatch kernel for MVC web applications.

A dependency container with autowiring, a router with groups and named
routes, and an onion middleware pipeline, tied together by a kernel
that turns one request into one response.

Basic usage::

    from wren import App, Request, Router

    app = App()

    @app.routes
    def web(router: Router) -> None:
        router.get("/users/{id}", "app.controllers.UserController@show")

    response = app.dispatch(Request.build("GET", "/users/7"))
"""

import importlib

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "CORSConfig",
    "CORSMiddleware",
    "ConfigurationError",
    "Container",
    "CorrelationIdMiddleware",
    "ExceptionRenderer",
    "HTTPError",
    "HandlerFailure",
    "HttpsRedirectMiddleware",
    "Kernel",
    "Middleware",
    "Next",
    "NotFound",
    "Request",
    "RequestSizeLimitMiddleware",
    "Response",
    "Router",
    "SecurityHeadersMiddleware",
    "ServiceProvider",
    "URLBuildError",
    "ViewRenderer",
    "WrenError",
    "get_request",
]

_LAZY: dict[str, str] = {
    "App": "wren.app",
    "AppConfig": "wren.config",
    "CORSConfig": "wren.middleware",
    "CORSMiddleware": "wren.middleware",
    "ConfigurationError": "wren.errors",
    "Container": "wren.container",
    "CorrelationIdMiddleware": "wren.middleware",
    "ExceptionRenderer": "wren.server.errors",
    "HTTPError": "wren.errors",
    "HandlerFailure": "wren.errors",
    "HttpsRedirectMiddleware": "wren.middleware",
    "Kernel": "wren.kernel",
    "Middleware": "wren.middleware.protocol",
    "Next": "wren.middleware.protocol",
    "NotFound": "wren.errors",
    "Request": "wren.http.request",
    "RequestSizeLimitMiddleware": "wren.middleware",
    "Response": "wren.http.response",
    "Router": "wren.routing.router",
    "SecurityHeadersMiddleware": "wren.middleware",
    "ServiceProvider": "wren.providers",
    "URLBuildError": "wren.errors",
    "ViewRenderer": "wren.views",
    "WrenError": "wren.errors",
    "get_request": "wren.context",
}


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import wren`` fast while providing a clean top-level API.
    """
    module = _LAZY.get(name)
    if module is None:
        msg = f"module 'wren' has no attribute {name!r}"
        raise AttributeError(msg)
    return getattr(importlib.import_module(module), name)
