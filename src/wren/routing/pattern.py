"""Route pattern parsing, matching, and reverse building.

A pattern is a ``/``-separated list of segments:

    ``users``    literal, must equal the path segment exactly
    ``{id}``     required parameter, consumes one path segment
    ``{id?}``    optional parameter, consumes one segment if present,
                 otherwise captures ``None``

Optional parameters may only appear at the end of a pattern, so a
pattern walk never has to guess which segment an optional one owns.
"""

import re
from collections.abc import Mapping
from urllib.parse import quote

from wren.errors import ConfigurationError, URLBuildError
from wren.routing.route import PathSegment, SegmentKind

_PARAM_RE = re.compile(r"^\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?P<optional>\?)?\}$")


def split_path(path: str) -> list[str]:
    """Non-empty ``/``-delimited segments of a path."""
    return [part for part in path.split("/") if part]


def join_paths(*parts: str) -> str:
    """Path-join *parts*, collapsing redundant slashes.

    ``join_paths("/a/", "b", "/c")`` -> ``"/a/b/c"``; the empty join is ``"/"``.
    """
    segments: list[str] = []
    for part in parts:
        segments.extend(split_path(part))
    return "/" + "/".join(segments)


def parse_pattern(pattern: str) -> tuple[PathSegment, ...]:
    """Parse a route pattern into segments.

    Examples::

        "/posts"          -> (PathSegment("posts"),)
        "/posts/{id}"     -> (PathSegment("posts"), PathSegment("{id}", REQUIRED, "id"))
        "/posts/{id?}"    -> (PathSegment("posts"), PathSegment("{id?}", OPTIONAL, "id"))

    Raises ``ConfigurationError`` for malformed parameter tokens, duplicate
    parameter names, and optional parameters followed by other segments.
    """
    segments: list[PathSegment] = []
    seen: set[str] = set()
    for part in split_path(pattern):
        if "<" in part and ">" in part:
            msg = (
                f"Route pattern {pattern!r} uses <param> syntax. "
                "Use {param} or {param?} instead."
            )
            raise ConfigurationError(msg)
        if "{" not in part and "}" not in part:
            segments.append(PathSegment(value=part))
            continue
        match = _PARAM_RE.match(part)
        if match is None:
            msg = (
                f"Invalid parameter segment {part!r} in route pattern {pattern!r}. "
                "A parameter must fill the whole segment: {name} or {name?}."
            )
            raise ConfigurationError(msg)
        name = match.group("name")
        if name in seen:
            msg = f"Duplicate parameter {name!r} in route pattern {pattern!r}"
            raise ConfigurationError(msg)
        seen.add(name)
        kind = SegmentKind.OPTIONAL if match.group("optional") else SegmentKind.REQUIRED
        segments.append(PathSegment(value=part, kind=kind, param_name=name))

    optional_seen = False
    for seg in segments:
        if seg.kind is SegmentKind.OPTIONAL:
            optional_seen = True
        elif optional_seen:
            msg = (
                f"Route pattern {pattern!r} has segment {seg.value!r} after an "
                "optional parameter. Optional parameters must come last."
            )
            raise ConfigurationError(msg)
    return tuple(segments)


def match_segments(
    segments: tuple[PathSegment, ...],
    parts: list[str],
) -> dict[str, str | None] | None:
    """Walk pattern *segments* against path *parts*.

    Returns the captured parameters in pattern order, or None when the
    path does not fit. The path must be exactly exhausted.
    """
    params: dict[str, str | None] = {}
    index = 0
    for seg in segments:
        if seg.kind is SegmentKind.LITERAL:
            if index >= len(parts) or parts[index] != seg.value:
                return None
            index += 1
        elif seg.kind is SegmentKind.REQUIRED:
            if index >= len(parts):
                return None
            params[seg.param_name] = parts[index]
            index += 1
        elif index < len(parts):
            params[seg.param_name] = parts[index]
            index += 1
        else:
            params[seg.param_name] = None
    if index != len(parts):
        return None
    return params


def satisfies(
    params: Mapping[str, str | None],
    constraints: Mapping[str, re.Pattern[str]],
) -> bool:
    """True if every non-None constrained value fully matches its regex."""
    for name, regex in constraints.items():
        value = params.get(name)
        if value is not None and regex.fullmatch(value) is None:
            return False
    return True


def build_path(
    segments: tuple[PathSegment, ...],
    params: Mapping[str, object],
    constraints: Mapping[str, re.Pattern[str]],
    *,
    route_name: str,
) -> str:
    """Substitute *params* into *segments*.

    Missing required values raise ``URLBuildError``; missing optional
    values end the path, so a later optional value given after a missing
    one raises ``URLBuildError`` instead of being dropped. Values are
    percent-quoted.
    """
    parts: list[str] = []
    for index, seg in enumerate(segments):
        if seg.kind is SegmentKind.LITERAL:
            parts.append(seg.value)
            continue
        raw = params.get(seg.param_name)
        if raw is None:
            if seg.kind is SegmentKind.REQUIRED:
                msg = f"Missing required parameter {seg.param_name!r} for route {route_name!r}"
                raise URLBuildError(msg)
            stranded = [
                later.param_name
                for later in segments[index + 1 :]
                if later.is_param and params.get(later.param_name) is not None
            ]
            if stranded:
                msg = (
                    f"Parameter {stranded[0]!r} of route {route_name!r} needs "
                    f"{seg.param_name!r}, which is missing"
                )
                raise URLBuildError(msg)
            break
        value = str(raw)
        regex = constraints.get(seg.param_name)
        if regex is not None and regex.fullmatch(value) is None:
            msg = (
                f"Value {value!r} for parameter {seg.param_name!r} of route "
                f"{route_name!r} does not match {regex.pattern!r}"
            )
            raise URLBuildError(msg)
        parts.append(quote(value, safe=""))
    return "/" + "/".join(parts)
