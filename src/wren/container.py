"""Dependency container — bindings, autowiring, singleton caching.

Keys are strings or types. A binding's producer is one of:

- a class: auto-constructed, its constructor parameters resolved in turn
- a dotted ``"package.module.Class"`` string naming such a class; a
  dotted string that does not import raises ``ConfigurationError``
- any other callable: a factory, called with the container
- anything else: a literal value, returned as-is (use ``instance`` for
  literal strings that contain dots)

Unbound keys that denote a concrete class are auto-constructed directly.

Per-request use::

    root = Container()
    root.singleton(Settings)

    request_container = root.scope()
    request_container.instance(Request, request)
    controller = request_container.resolve(PostController)

A child scope sees every binding of its parent. Singletons bound on the
parent are built by and cached on the parent, so they are shared by all
requests; bindings made on the child live and die with the child.

Thread safety:
    The resolution path used for cycle detection is a ``ContextVar``
    (task-local under asyncio, thread-local under threads). Singleton
    construction runs under a per-container re-entrant lock, so a
    singleton is built at most once even when first requested
    concurrently.
"""

from __future__ import annotations

import enum
import importlib
import inspect
import logging
import sys
import threading
import types
import typing
from collections.abc import Callable
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, TypeVar

from wren.errors import (
    CircularDependency,
    ConfigurationError,
    ContainerError,
    NotInstantiable,
    UnboundKey,
    UnresolvableDependency,
    describe_key,
)

logger = logging.getLogger("wren.container")

T = TypeVar("T")

_resolution_path: ContextVar[tuple[Any, ...]] = ContextVar("wren_resolution_path", default=())

_empty = inspect.Parameter.empty


class Lifetime(enum.Enum):
    TRANSIENT = "transient"
    SINGLETON = "singleton"
    INSTANCE = "instance"


@dataclass(frozen=True, slots=True)
class Binding:
    """How to produce a value for one key."""

    key: Any
    producer: Any
    lifetime: Lifetime


def is_abstract(cls: type) -> bool:
    """True for ABCs with abstract members and for ``typing.Protocol`` classes."""
    return inspect.isabstract(cls) or bool(cls.__dict__.get("_is_protocol", False))


def load_class(key: Any) -> type | None:
    """Return the class *key* denotes, or None.

    Builtin scalar types (``str``, ``int``, ...) never count: they are
    configuration values, not services, and must be bound explicitly.
    """
    if isinstance(key, str):
        key = _find_dotted(key)
    if not isinstance(key, type):
        return None
    if key.__module__ == "builtins":
        return None
    return key


def is_dotted(value: str) -> bool:
    """True for ``"pkg.mod.Name"`` / ``"pkg.mod:Name"`` shaped strings."""
    return "." in value or ":" in value


def _split_dotted(path: str) -> tuple[str, str]:
    if ":" in path:
        module_path, _, attr = path.partition(":")
    else:
        module_path, _, attr = path.rpartition(".")
    return module_path, attr


def import_class(path: str) -> type:
    """Import the class named by ``"pkg.mod.Name"`` or ``"pkg.mod:Name"``.

    Raises:
        ConfigurationError: the module cannot be imported, lacks the
            attribute, or the attribute is not a class.
    """
    module_path, attr = _split_dotted(path)
    if not module_path or not attr:
        msg = f"{path!r} does not name a class; expected 'package.module.Class'"
        raise ConfigurationError(msg)
    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        msg = f"Cannot import {path!r}: {exc}"
        raise ConfigurationError(msg) from exc
    try:
        target = getattr(module, attr)
    except AttributeError as exc:
        msg = f"Cannot import {path!r}: module {module_path!r} has no attribute {attr!r}"
        raise ConfigurationError(msg) from exc
    if not isinstance(target, type):
        msg = f"{path!r} names a {type(target).__name__}, not a class"
        raise ConfigurationError(msg)
    return target


def _find_dotted(path: str) -> Any:
    """Look up a dotted name for an unbound key; None when the module or name is absent.

    A module that exists but fails to import raises ``ConfigurationError``.
    """
    module_path, attr = _split_dotted(path)
    if not module_path or not attr:
        return None
    try:
        module = importlib.import_module(module_path)
    except ModuleNotFoundError as exc:
        # Only the named module (or one of its parents) being absent means "not a class"
        if exc.name and (module_path == exc.name or module_path.startswith(f"{exc.name}.")):
            return None
        msg = f"Cannot import {path!r}: {exc}"
        raise ConfigurationError(msg) from exc
    except ImportError as exc:
        msg = f"Cannot import {path!r}: {exc}"
        raise ConfigurationError(msg) from exc
    return getattr(module, attr, None)


def _candidate_keys(annotation: Any) -> list[Any]:
    """Keys to try for a parameter annotation, unwrapping ``X | None``."""
    if annotation is _empty or annotation is None:
        return []
    origin = typing.get_origin(annotation)
    if origin is typing.Annotated:
        return _candidate_keys(typing.get_args(annotation)[0])
    if origin is typing.Union or origin is types.UnionType:
        keys: list[Any] = []
        for arg in typing.get_args(annotation):
            if arg is not type(None):
                keys.extend(_candidate_keys(arg))
        return keys
    if origin is not None:
        # Parametrized generics (list[int], dict[str, X]) are not services
        return []
    return [annotation]


def _constructor_hints(cls: type) -> dict[str, Any]:
    """Evaluated constructor annotations; string annotations that cannot be
    evaluated are left as strings and later tried as string keys."""
    init = cls.__init__
    module = sys.modules.get(cls.__module__)
    try:
        return typing.get_type_hints(init, globalns=vars(module) if module else None)
    except (NameError, TypeError):
        return dict(getattr(init, "__annotations__", {}))


class Container:
    """Binding registry with autowiring.

    ``bind`` registers a transient producer, ``singleton`` a cached one,
    ``instance`` a literal value. Rebinding a key always discards the
    singleton cached for it.
    """

    __slots__ = ("_bindings", "_instances", "_lock", "_parent")

    def __init__(self, parent: Container | None = None) -> None:
        self._parent = parent
        self._bindings: dict[Any, Binding] = {}
        self._instances: dict[Any, Any] = {}
        self._lock = threading.RLock()

    # -- Registration --

    def bind(self, key: Any, producer: Any = None) -> None:
        """Register (or replace) a transient producer for *key*.

        With no producer, *key* itself must be a class to auto-construct.
        """
        self._register(key, producer, Lifetime.TRANSIENT)

    def singleton(self, key: Any, producer: Any = None) -> None:
        """Register a producer whose first result is cached for this container."""
        self._register(key, producer, Lifetime.SINGLETON)

    def instance(self, key: Any, value: Any) -> None:
        """Register a ready-made value, returned as-is on every resolve."""
        with self._lock:
            self._bindings[key] = Binding(key, value, Lifetime.INSTANCE)
            self._instances.pop(key, None)
        logger.debug("Bound instance for %s", describe_key(key))

    def _register(self, key: Any, producer: Any, lifetime: Lifetime) -> None:
        if producer is None:
            producer = key
        # Plain strings are literals; dotted names, self-bindings and
        # strings bound to a type key must name a class.
        if isinstance(producer, str) and (
            is_dotted(producer) or producer is key or isinstance(key, type)
        ):
            producer = import_class(producer)
        if isinstance(producer, type):
            target = load_class(producer)
            if target is None:
                msg = f"Cannot bind {describe_key(key)} to builtin type {producer.__name__}"
                raise ConfigurationError(msg)
            if is_abstract(target):
                msg = (
                    f"Cannot bind {describe_key(key)} to {describe_key(target)}: "
                    "abstract classes and protocols are not instantiable"
                )
                raise ConfigurationError(msg)
        with self._lock:
            self._bindings[key] = Binding(key, producer, lifetime)
            if self._instances.pop(key, None) is not None:
                logger.debug("Discarded cached singleton for %s", describe_key(key))
        logger.debug("Bound %s for %s", lifetime.value, describe_key(key))

    def flush(self) -> None:
        """Drop every binding and cached singleton owned by this container."""
        with self._lock:
            self._bindings.clear()
            self._instances.clear()

    # -- Scoping --

    def scope(self) -> Container:
        """Create a child container that falls back to this one."""
        return Container(parent=self)

    @property
    def parent(self) -> Container | None:
        return self._parent

    # -- Lookup --

    def _lookup(self, key: Any) -> tuple[Container, Binding] | None:
        container: Container | None = self
        while container is not None:
            binding = container._bindings.get(key)
            if binding is not None:
                return container, binding
            container = container._parent
        return None

    def bound(self, key: Any) -> bool:
        """True if *key* has a binding here or in a parent."""
        return self._lookup(key) is not None

    def has(self, key: Any) -> bool:
        """True if *key* is bound or denotes a directly constructible class."""
        if self.bound(key):
            return True
        target = load_class(key)
        return target is not None and not is_abstract(target)

    __contains__ = has

    # -- Resolution --

    def resolve(self, key: type[T] | Any) -> T | Any:
        """Produce the value for *key*.

        Raises:
            UnboundKey: nothing is bound and *key* is not a class.
            UnresolvableDependency: a constructor parameter has no value.
            CircularDependency: *key* is already being resolved.
            NotInstantiable: the target class is abstract.
        """
        path = _resolution_path.get()
        if key in path:
            raise CircularDependency((*path, key))
        token = _resolution_path.set((*path, key))
        try:
            return self._resolve(key)
        finally:
            _resolution_path.reset(token)

    make = resolve

    def _resolve(self, key: Any) -> Any:
        found = self._lookup(key)
        if found is None:
            target = load_class(key)
            if target is None:
                raise UnboundKey(key)
            return self.build(target)

        owner, binding = found
        if binding.lifetime is Lifetime.INSTANCE:
            return binding.producer
        if binding.lifetime is Lifetime.TRANSIENT:
            return self._produce(binding.producer)

        # Singletons are built by their owner so a parent-scoped singleton
        # never captures request-scoped bindings of a child.
        with owner._lock:
            if key in owner._instances:
                return owner._instances[key]
            value = owner._produce(binding.producer)
            owner._instances[key] = value
        logger.debug("Created singleton %s", describe_key(key))
        return value

    def _produce(self, producer: Any) -> Any:
        if isinstance(producer, type):
            return self.build(producer)
        if callable(producer):
            return producer(self)
        return producer

    def build(self, cls: type[T]) -> T:
        """Construct *cls*, resolving its constructor parameters in order."""
        if is_abstract(cls):
            raise NotInstantiable(cls)
        if cls.__init__ is object.__init__:
            return cls()
        try:
            signature = inspect.signature(cls)
        except (TypeError, ValueError) as exc:
            raise NotInstantiable(cls) from exc

        hints = _constructor_hints(cls)
        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for name, param in signature.parameters.items():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            annotation = hints.get(name, param.annotation)
            value = self._resolve_parameter(cls, name, param, annotation)
            if param.kind is param.POSITIONAL_ONLY:
                args.append(value)
            else:
                kwargs[name] = value
        return cls(*args, **kwargs)

    def _resolve_parameter(
        self,
        owner: type,
        name: str,
        param: inspect.Parameter,
        annotation: Any,
    ) -> Any:
        has_default = param.default is not _empty
        candidates = _candidate_keys(annotation)
        if not candidates:
            if has_default:
                return param.default
            raise UnresolvableDependency(name, owner, "no type annotation and no default")

        failure: ContainerError | None = None
        for candidate in candidates:
            try:
                return self.resolve(candidate)
            except CircularDependency:
                raise
            except ContainerError as exc:
                failure = exc
        if has_default:
            return param.default
        raise UnresolvableDependency(name, owner, str(failure)) from failure

    # -- Introspection --

    def keys(self) -> tuple[Any, ...]:
        """Keys bound directly on this container (parents excluded)."""
        return tuple(self._bindings)

    def factory(self, key: Any) -> Callable[[], Any]:
        """A zero-argument callable that resolves *key* when called."""
        return lambda: self.resolve(key)

    def __repr__(self) -> str:
        scope = "child" if self._parent is not None else "root"
        return f"<Container {scope} bindings={len(self._bindings)}>"
