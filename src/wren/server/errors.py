"""Default exception rendering for failed dispatches.

The kernel hands every failure to an exception renderer exactly once.
This module provides the default one: HTTP errors keep their status,
everything else becomes a 500 and is logged with its traceback.
"""

import html
import logging
import traceback
from typing import Any, Protocol

from wren.context import request_var
from wren.errors import HandlerFailure, HTTPError
from wren.http.response import Response

logger = logging.getLogger("wren.server")


class ExceptionHandler(Protocol):
    """What the kernel calls with a failure. May be sync or async."""

    def render(self, error: Exception) -> Any: ...


def _http_error(error: BaseException) -> HTTPError | None:
    if isinstance(error, HTTPError):
        return error
    if isinstance(error, HandlerFailure) and isinstance(error.original, HTTPError):
        return error.original
    return None


def render_debug_page(error: BaseException) -> str:
    """Minimal self-contained HTML page with the escaped traceback."""
    original = error.original if isinstance(error, HandlerFailure) else error
    trace = "".join(traceback.format_exception(original))
    title = html.escape(f"{type(original).__name__}: {original}")
    where = ""
    if isinstance(error, HandlerFailure) and error.method:
        where = f"<p>{html.escape(error.method)} {html.escape(error.path)}</p>"
    return (
        "<!doctype html><html><head><meta charset=\"utf-8\">"
        f"<title>{title}</title></head><body>"
        f"<h1>{title}</h1>{where}<pre>{html.escape(trace)}</pre>"
        "</body></html>"
    )


class ExceptionRenderer:
    """Turn a failure into a response.

    - ``HTTPError`` (or a ``HandlerFailure`` wrapping one) renders with
      its own status, detail, and headers.
    - Anything else is a 500. With ``debug=True`` the body is a page
      showing the traceback; otherwise a generic message.
    """

    __slots__ = ("debug",)

    def __init__(self, debug: bool = False) -> None:
        self.debug = debug

    def render(self, error: Exception) -> Response:
        http_error = _http_error(error)
        if http_error is not None:
            return self._render_http_error(http_error)
        return self._render_internal_error(error)

    def _render_http_error(self, error: HTTPError) -> Response:
        request = request_var.get(None)
        if request is not None:
            logger.debug("%d %s %s — %s", error.status, request.method, request.path, error.detail)
        detail = error.detail or f"Error {error.status}"
        if self.debug and error.detail:
            detail = f"{error.status}: {error.detail}"
        response = Response(body=html.escape(detail), status=error.status)
        for name, value in error.headers:
            response = response.with_header(name, value)
        return response

    def _render_internal_error(self, error: Exception) -> Response:
        original = error.original if isinstance(error, HandlerFailure) else error
        logger.error(
            "500 %s",
            error,
            exc_info=(type(original), original, original.__traceback__),
        )
        if self.debug:
            return Response(body=render_debug_page(error), status=500)
        return Response(body="Internal Server Error", status=500)
