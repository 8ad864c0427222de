"""Handler references and their resolution through the container.

A route handler is either

- an inline callable, invoked with the route parameters positionally, or
- an action on a target: ``"package.module.Target@action"``, or
  ``(Target, "action")``. The target is resolved through the container
  (so its constructor dependencies are injected), then ``action`` is
  looked up on the instance and invoked with the route parameters.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeAlias

from wren.container import Container
from wren.errors import ConfigurationError, describe_key


@dataclass(frozen=True, slots=True)
class InlineHandler:
    fn: Callable[..., Any]

    def describe(self) -> str:
        return getattr(self.fn, "__qualname__", repr(self.fn))


@dataclass(frozen=True, slots=True)
class ActionHandler:
    target: Any
    action: str

    def describe(self) -> str:
        return f"{describe_key(self.target)}@{self.action}"


HandlerRef: TypeAlias = InlineHandler | ActionHandler


def parse_handler(handler: Any) -> HandlerRef:
    """Validate and tag a handler reference at registration time."""
    if isinstance(handler, (InlineHandler, ActionHandler)):
        return handler
    if isinstance(handler, str):
        target, sep, action = handler.rpartition("@")
        if not sep or not target or not action.isidentifier():
            msg = f"Handler string {handler!r} must look like 'package.module.Target@action'"
            raise ConfigurationError(msg)
        return ActionHandler(target, action)
    if isinstance(handler, tuple):
        if len(handler) != 2 or not isinstance(handler[1], str):
            msg = f"Handler tuple {handler!r} must be (Target, 'action')"
            raise ConfigurationError(msg)
        return ActionHandler(handler[0], handler[1])
    if callable(handler):
        return InlineHandler(handler)
    msg = f"Route handler must be callable, 'Target@action', or (Target, 'action'); got {handler!r}"
    raise ConfigurationError(msg)


def resolve_handler(ref: HandlerRef, container: Container) -> Callable[..., Any]:
    """Turn a handler reference into the callable to invoke."""
    if isinstance(ref, InlineHandler):
        return ref.fn
    target = container.resolve(ref.target)
    method = getattr(target, ref.action, None)
    if method is None or not callable(method):
        msg = f"{type(target).__qualname__} has no callable action {ref.action!r}"
        raise ConfigurationError(msg)
    return method


def is_api_handler(ref: HandlerRef) -> bool:
    """True when the handler's target lives in an ``api`` package.

    ``"app.controllers.api.PostController@index"`` and a class defined in
    ``app.api.posts`` both qualify. Inline handlers never do.
    """
    if isinstance(ref, InlineHandler):
        return False
    target = ref.target
    if isinstance(target, str):
        module_path = target.replace(":", ".").rpartition(".")[0]
    else:
        module_path = getattr(target, "__module__", None) or ""
    return "api" in (part.lower() for part in module_path.split("."))
