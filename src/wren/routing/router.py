"""Route registration, grouping, matching, and URL generation.

Routes are registered during setup and compiled into an immutable,
ordered table when the app freezes. Matching walks the table in
registration order; the first route whose method, shape, and
constraints all fit wins.

Groups are plain values threaded through callbacks rather than a
mutable stack on the router::

    router = Router()

    def admin(group):
        group.get("/users", "app.controllers.UserController@index")

    router.group(admin, prefix="/admin", middleware=["auth"])
    router.compile()
    router.match("GET", "/admin/users")
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any
from urllib.parse import urlencode

from wren.errors import ConfigurationError, NotFound, URLBuildError
from wren.middleware.refs import MiddlewareRef, as_middleware_refs
from wren.routing.pattern import build_path, join_paths, match_segments, satisfies, split_path
from wren.routing.route import PendingRoute, Route, RouteMatch

logger = logging.getLogger("wren.routing")

ANY_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE")

_GROUP_ATTRIBUTES = frozenset({"prefix", "middleware", "api"})


class RouteGroup:
    """Registration surface carrying inherited group attributes.

    Every route added through a group gets the group's prefix joined
    onto its pattern, the group's middleware ahead of its own, and the
    group's API flag. Groups share their root's route list.
    """

    __slots__ = ("_api", "_middleware", "_prefix", "_root")

    def __init__(
        self,
        root: Router | None,
        *,
        prefix: str = "",
        middleware: tuple[MiddlewareRef, ...] = (),
        api: bool = False,
    ) -> None:
        self._root = root
        self._prefix = prefix
        self._middleware = middleware
        self._api = api

    @property
    def prefix(self) -> str:
        return join_paths(self._prefix)

    @property
    def group_middleware(self) -> tuple[MiddlewareRef, ...]:
        return self._middleware

    def _router(self) -> Router:
        assert self._root is not None
        return self._root

    # -- Registration --

    def add_route(self, methods: Iterable[str] | str, pattern: str, handler: Any) -> PendingRoute:
        """Register *handler* for *methods* on *pattern* (relative to the group prefix)."""
        if isinstance(methods, str):
            methods = (methods,)
        pending = PendingRoute(
            methods,
            join_paths(self._prefix, pattern),
            handler,
            middleware=self._middleware,
            api=self._api,
        )
        self._router()._append(pending)
        return pending

    def get(self, pattern: str, handler: Any) -> PendingRoute:
        return self.add_route(("GET",), pattern, handler)

    def post(self, pattern: str, handler: Any) -> PendingRoute:
        return self.add_route(("POST",), pattern, handler)

    def put(self, pattern: str, handler: Any) -> PendingRoute:
        return self.add_route(("PUT",), pattern, handler)

    def patch(self, pattern: str, handler: Any) -> PendingRoute:
        return self.add_route(("PATCH",), pattern, handler)

    def delete(self, pattern: str, handler: Any) -> PendingRoute:
        return self.add_route(("DELETE",), pattern, handler)

    def options(self, pattern: str, handler: Any) -> PendingRoute:
        return self.add_route(("OPTIONS",), pattern, handler)

    def any(self, pattern: str, handler: Any) -> PendingRoute:
        """Register for GET, POST, PUT, PATCH, and DELETE."""
        return self.add_route(ANY_METHODS, pattern, handler)

    def group(
        self,
        callback: Callable[[RouteGroup], Any] | Mapping[str, Any] | None = None,
        routes: Callable[[RouteGroup], Any] | None = None,
        *,
        prefix: str = "",
        middleware: Iterable[Any] = (),
        api: bool = False,
    ) -> RouteGroup:
        """Open a nested group and run *callback* with it.

        Attributes can be given as keywords or as a mapping::

            router.group(register, prefix="/api", api=True)
            router.group({"prefix": "/api", "middleware": ["auth"]}, register)

        Returns the child group so it can also be used directly.
        """
        if isinstance(callback, Mapping):
            attributes = callback
            unknown = set(attributes) - _GROUP_ATTRIBUTES
            if unknown:
                msg = f"Unknown route group attributes: {', '.join(sorted(unknown))}"
                raise ConfigurationError(msg)
            callback = routes
            prefix = attributes.get("prefix", prefix)
            middleware = attributes.get("middleware", middleware)
            api = attributes.get("api", api)
        elif routes is not None:
            msg = "Pass the group callback once, either first or after an attributes mapping"
            raise ConfigurationError(msg)

        child = RouteGroup(
            self._router(),
            prefix=join_paths(self._prefix, prefix),
            middleware=(*self._middleware, *as_middleware_refs(middleware)),
            api=self._api or bool(api),
        )
        if callback is not None:
            callback(child)
        return child


class Router(RouteGroup):
    """The root route collector.

    Usage::

        router = Router()
        router.get("/users/{id}", show_user).where("id", r"\\d+").name("users.show")
        router.compile()
        match = router.match("GET", "/users/42")
        router.url("users.show", id=42)   # "/users/42"
    """

    __slots__ = ("_by_name", "_compiled", "_pending", "_table")

    def __init__(self) -> None:
        super().__init__(None)
        self._pending: list[PendingRoute] = []
        self._table: tuple[Route, ...] = ()
        self._by_name: dict[str, Route] = {}
        self._compiled = False

    def _router(self) -> Router:
        return self

    def _append(self, pending: PendingRoute) -> None:
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)
        self._pending.append(pending)

    # -- Compilation --

    def compile(self) -> None:
        """Freeze registered routes into the matching table."""
        if self._compiled:
            return
        table = tuple(pending.build() for pending in self._pending)
        by_name: dict[str, Route] = {}
        for route in table:
            if route.name is None:
                continue
            if route.name in by_name:
                msg = (
                    f"Duplicate route name {route.name!r}: "
                    f"{by_name[route.name].pattern!r} and {route.pattern!r}"
                )
                raise ConfigurationError(msg)
            by_name[route.name] = route
        self._table = table
        self._by_name = by_name
        self._pending.clear()
        self._compiled = True
        for route in table:
            logger.debug(
                "Route %s %s -> %s",
                ",".join(sorted(route.methods)),
                route.pattern,
                route.handler.describe(),
            )
        logger.info("Compiled %d route(s)", len(table))

    @property
    def compiled(self) -> bool:
        return self._compiled

    @property
    def routes(self) -> tuple[Route, ...]:
        """The compiled table, in registration order."""
        self._require_compiled()
        return self._table

    def _require_compiled(self) -> None:
        if not self._compiled:
            msg = "Router must be compiled before matching or generating URLs."
            raise RuntimeError(msg)

    # -- Matching --

    def match(self, method: str, path: str) -> RouteMatch:
        """Find the first route matching *method* and *path*.

        Raises ``NotFound`` when nothing matches, including when the path
        fits a route that does not accept *method*.
        """
        self._require_compiled()
        method = method.upper()
        parts = split_path(path)
        for route in self._table:
            if method not in route.methods:
                continue
            params = match_segments(route.segments, parts)
            if params is None or not satisfies(params, route.constraints):
                continue
            return RouteMatch(route=route, params=params)
        msg = f"No route for {method} {path}"
        raise NotFound(msg)

    # -- URL generation --

    def has_route(self, name: str) -> bool:
        self._require_compiled()
        return name in self._by_name

    def url(self, name: str, params: Mapping[str, Any] | None = None, **kwargs: Any) -> str:
        """Generate the path for route *name*.

        Values are stringified and percent-quoted. Parameters the pattern
        does not name are appended as a query string.
        """
        self._require_compiled()
        route = self._by_name.get(name)
        if route is None:
            msg = f"No route named {name!r}"
            raise URLBuildError(msg)
        values = {**(params or {}), **kwargs}
        path = build_path(route.segments, values, route.constraints, route_name=name)
        names = set(route.param_names)
        extra = [(key, str(value)) for key, value in values.items() if key not in names and value is not None]
        if extra:
            path = f"{path}?{urlencode(extra)}"
        return path
