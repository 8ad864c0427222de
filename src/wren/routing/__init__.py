"""Route registration, matching, and URL generation."""

from wren.routing.pattern import join_paths, parse_pattern
from wren.routing.route import PathSegment, PendingRoute, Route, RouteMatch, SegmentKind
from wren.routing.router import RouteGroup, Router

__all__ = [
    "PathSegment",
    "PendingRoute",
    "Route",
    "RouteGroup",
    "RouteMatch",
    "Router",
    "SegmentKind",
    "join_paths",
    "parse_pattern",
]
