"""Invoke helpers — call sync or async callables uniformly.

Handlers, middleware, and exception renderers can be ``def`` or
``async def``. This module holds the one place that tells them apart.

Usage::

    from wren._internal.invoke import invoke

    result = await invoke(handler, *params)
"""

import inspect
from typing import Any


async def invoke(fn: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *fn* and await the result if it is awaitable."""
    result = fn(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
