"""Reject request bodies larger than a configured limit.

The limit comes from the constructor or, when omitted, from
``AppConfig.max_content_length`` resolved in the request container.
Oversized requests get a ``413`` JSON response and never reach the
handler.
"""

import logging

from wren.config import AppConfig, parse_size
from wren.context import get_container
from wren.http.request import Request
from wren.http.response import Response
from wren.middleware.protocol import Next

logger = logging.getLogger("wren.kernel")

REJECT_HEADER = "X-Request-Rejected"


def request_size(request: Request) -> int:
    """Declared Content-Length, or the buffered body size when absent."""
    declared = request.content_length
    if declared is not None and declared > 0:
        return declared
    return len(request.body)


class RequestSizeLimitMiddleware:
    """Reject requests whose body exceeds *limit* bytes.

    Usage::

        app.add_middleware(RequestSizeLimitMiddleware("2M"))

    A limit of ``0`` disables the check.
    """

    __slots__ = ("limit",)

    def __init__(self, limit: int | str | None = None) -> None:
        self.limit = None if limit is None else parse_size(limit)

    def _limit(self) -> int:
        if self.limit is not None:
            return self.limit
        return get_container().resolve(AppConfig).max_content_length

    async def handle(self, request: Request, next: Next) -> Response:
        limit = self._limit()
        size = request_size(request)
        if limit > 0 and size > limit:
            logger.info(
                "Rejected %s %s: body of %d bytes exceeds %d",
                request.method,
                request.path,
                size,
                limit,
            )
            response = Response.json(
                {"message": "Request payload too large.", "limit_bytes": limit}, status=413
            )
            return response.with_header(REJECT_HEADER, "size-limit-exceeded")
        return await next(request)
