"""Middleware references — what a route or app stores before composition.

A reference is one of three tagged variants:

    Named(key)      resolved through the container at composition time
    Inline(fn)      an ``async def fn(request, next)`` callable
    Instance(obj)   a pre-built object exposing ``handle(request, next)``

Plain values are tagged by :func:`as_middleware_ref`: strings and classes
become ``Named``, objects with a ``handle`` attribute become ``Instance``,
other callables become ``Inline``. Anything else raises
``ConfigurationError`` when the middleware is registered.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeAlias

from wren.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class Named:
    key: Any


@dataclass(frozen=True, slots=True)
class Inline:
    fn: Callable[..., Any]


@dataclass(frozen=True, slots=True)
class Instance:
    obj: Any


MiddlewareRef: TypeAlias = Named | Inline | Instance


def is_middleware_value(value: Any) -> bool:
    """True for a single middleware value, as opposed to a collection of them."""
    return (
        isinstance(value, (Named, Inline, Instance, str, type))
        or hasattr(value, "handle")
        or callable(value)
    )


def as_middleware_ref(value: Any) -> MiddlewareRef:
    """Tag a raw middleware value.

    Raises:
        ConfigurationError: *value* is none of the accepted forms.
    """
    if isinstance(value, (Named, Inline, Instance)):
        return value
    if isinstance(value, (str, type)):
        return Named(value)
    if hasattr(value, "handle"):
        return Instance(value)
    if callable(value):
        return Inline(value)
    msg = (
        f"Middleware must be a container key, a class, a callable, or an object "
        f"with handle(); got {value!r}"
    )
    raise ConfigurationError(msg)


def as_middleware_refs(values: Any) -> tuple[MiddlewareRef, ...]:
    """Tag every value, flattening one level of nested collections.

    A single middleware value is accepted in place of a collection.
    """
    if is_middleware_value(values):
        return (as_middleware_ref(values),)
    if not isinstance(values, Iterable):
        return (as_middleware_ref(values),)
    refs: list[MiddlewareRef] = []
    for value in values:
        if is_middleware_value(value) or not isinstance(value, Iterable):
            refs.append(as_middleware_ref(value))
        else:
            refs.extend(as_middleware_ref(v) for v in value)
    return tuple(refs)
