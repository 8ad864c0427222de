"""Wren exception hierarchy.

Shared across Container, Router, Pipeline, and Kernel so every module
raises and catches the same types. Only the kernel's dispatch boundary
converts these into responses; everything below it raises.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any


class WrenError(Exception):
    """Base for all wren-specific errors."""


class ConfigurationError(WrenError):
    """Raised when routes, middleware, or bindings are misconfigured.

    Fatal: raised at registration, composition, or resolution time and
    never retried.
    """


class URLBuildError(WrenError):
    """Raised when a URL cannot be generated for a named route."""


# -- Container --


def describe_key(key: Any) -> str:
    """Human-readable name for a container key (type or string)."""
    if isinstance(key, type):
        return f"{key.__module__}.{key.__qualname__}"
    return str(key)


class ContainerError(WrenError):
    """Base for dependency resolution failures."""


class UnboundKey(ContainerError):  # noqa: N818 — reads as a condition, not an event
    """Nothing is bound under *key* and it is not a constructible class."""

    def __init__(self, key: Any) -> None:
        self.key = key
        super().__init__(f"Unable to resolve {describe_key(key)!r}: no binding found")


class UnresolvableDependency(ContainerError):  # noqa: N818
    """A constructor parameter could not be supplied."""

    def __init__(self, param: str, owner: Any, reason: str = "") -> None:
        self.param = param
        self.owner = owner
        msg = f"Cannot resolve parameter {param!r} of {describe_key(owner)}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class CircularDependency(ContainerError):  # noqa: N818
    """Resolution re-entered a key that is already being resolved."""

    def __init__(self, path: Sequence[Any]) -> None:
        self.path = tuple(path)
        chain = " -> ".join(describe_key(k) for k in self.path)
        super().__init__(f"Circular dependency detected: {chain}")


class NotInstantiable(ContainerError):  # noqa: N818
    """The target is abstract, a protocol, or otherwise not constructible."""

    def __init__(self, target: Any) -> None:
        self.target = target
        super().__init__(f"{describe_key(target)} is not instantiable")


# -- HTTP --


@dataclass(frozen=True, slots=True)
class HTTPError(WrenError):
    """An error that maps directly to an HTTP status code.

    Raised by the router, middleware, or handlers. The default exception
    renderer turns it into a response with the same status.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """404 — no route matched the request."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class HandlerFailure(WrenError):  # noqa: N818
    """Wraps an exception raised by handler or middleware business logic.

    The kernel attaches the original exception as ``original`` (and as
    ``__cause__``) before handing it to the exception renderer.
    """

    def __init__(self, original: BaseException, *, method: str = "", path: str = "") -> None:
        self.original = original
        self.method = method
        self.path = path
        where = f" during {method} {path}" if method else ""
        super().__init__(f"{type(original).__name__}{where}: {original}")
