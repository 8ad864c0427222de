"""View rendering contract.

The kernel never renders templates itself. Applications bind a
``ViewRenderer`` in the container and controllers ask for it::

    app.singleton(ViewRenderer, lambda c: TemplateViews(env))

    class PostController:
        def __init__(self, views: ViewRenderer) -> None:
            self.views = views

        def show(self, id: str) -> str:
            return self.views.render("posts/show.html", {"id": id})
"""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ViewRenderer(Protocol):
    """Render a named view with a context mapping into HTML."""

    def render(self, name: str, context: Mapping[str, Any]) -> str: ...
