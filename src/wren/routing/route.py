"""Route definitions.

``PendingRoute`` is the mutable builder returned by registration calls so
middleware, a name, constraints, and the API flag can be chained on.
``Router.compile()`` turns each one into a frozen ``Route``.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from wren.errors import ConfigurationError
from wren.handlers import HandlerRef, parse_handler
from wren.middleware.refs import MiddlewareRef, as_middleware_refs


class SegmentKind(enum.Enum):
    LITERAL = "literal"
    REQUIRED = "required"
    OPTIONAL = "optional"


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route pattern.

    Literal:   ``/users``  (kind=LITERAL)
    Required:  ``/{id}``   (kind=REQUIRED, param_name="id")
    Optional:  ``/{id?}``  (kind=OPTIONAL, param_name="id")
    """

    value: str
    kind: SegmentKind = SegmentKind.LITERAL
    param_name: str = ""

    @property
    def is_param(self) -> bool:
        return self.kind is not SegmentKind.LITERAL


@dataclass(frozen=True, slots=True, eq=False)
class Route:
    """A frozen route definition. Compared by identity."""

    methods: frozenset[str]
    pattern: str
    handler: HandlerRef
    segments: tuple[PathSegment, ...]
    middleware: tuple[MiddlewareRef, ...] = ()
    name: str | None = None
    constraints: Mapping[str, re.Pattern[str]] = field(default_factory=dict)
    api: bool = False

    @property
    def param_names(self) -> tuple[str, ...]:
        return tuple(seg.param_name for seg in self.segments if seg.is_param)


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match. Params keep pattern order."""

    route: Route
    params: dict[str, str | None]


class PendingRoute:
    """A route being registered. Every setter returns ``self`` for chaining::

        router.get("/posts/{id}", show).where("id", r"\\d+").name("posts.show")
    """

    __slots__ = (
        "_api",
        "_constraints",
        "_handler",
        "_methods",
        "_middleware",
        "_name",
        "_pattern",
        "_segments",
    )

    def __init__(
        self,
        methods: Iterable[str],
        pattern: str,
        handler: Any,
        *,
        middleware: tuple[MiddlewareRef, ...] = (),
        api: bool = False,
    ) -> None:
        from wren.routing.pattern import join_paths, parse_pattern

        upper = frozenset(m.upper() for m in methods)
        if not upper:
            msg = f"Route {pattern!r} must accept at least one HTTP method"
            raise ConfigurationError(msg)
        self._methods = upper
        self._pattern = join_paths(pattern)
        self._segments = parse_pattern(self._pattern)
        self._handler = parse_handler(handler)
        self._middleware: list[MiddlewareRef] = list(middleware)
        self._name: str | None = None
        self._constraints: dict[str, re.Pattern[str]] = {}
        self._api = api

    # -- Chainable setters --

    def middleware(self, *refs: Any) -> PendingRoute:
        """Append route middleware (after any inherited group middleware)."""
        self._middleware.extend(as_middleware_refs(refs))
        return self

    def name(self, name: str) -> PendingRoute:
        """Name the route for reverse URL generation."""
        self._name = name
        return self

    def where(self, param: str | Mapping[str, str], regex: str | None = None) -> PendingRoute:
        """Constrain parameter values with anchored regexes.

        Accepts ``where("id", r"\\d+")`` or ``where({"id": r"\\d+", ...})``.
        """
        pairs = param.items() if isinstance(param, Mapping) else [(param, regex)]
        names = {seg.param_name for seg in self._segments if seg.is_param}
        for param_name, expression in pairs:
            if param_name not in names:
                msg = f"Constraint on unknown parameter {param_name!r} for route {self._pattern!r}"
                raise ConfigurationError(msg)
            if expression is None:
                msg = f"Constraint for {param_name!r} on route {self._pattern!r} needs a regex"
                raise ConfigurationError(msg)
            try:
                self._constraints[param_name] = re.compile(expression)
            except re.error as exc:
                msg = f"Invalid constraint {expression!r} for {param_name!r}: {exc}"
                raise ConfigurationError(msg) from exc
        return self

    def api(self, enabled: bool = True) -> PendingRoute:
        """Mark the route as an API target (structured results become JSON)."""
        self._api = enabled
        return self

    # -- Introspection --

    @property
    def pattern(self) -> str:
        return self._pattern

    @property
    def route_name(self) -> str | None:
        return self._name

    def build(self) -> Route:
        """Freeze into a ``Route``."""
        return Route(
            methods=self._methods,
            pattern=self._pattern,
            handler=self._handler,
            segments=self._segments,
            middleware=tuple(self._middleware),
            name=self._name,
            constraints=dict(self._constraints),
            api=self._api,
        )
