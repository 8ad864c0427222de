"""Correlation-id middleware.

Every request gets an id that follows it through logs and back to the
client. A well-formed incoming ``X-Request-ID`` (or ``X-Correlation-ID``)
is reused; otherwise a fresh 32-hex-digit id is generated.

The id is bound in the request-scoped container under ``"request_id"``
so services can ask for it, and echoed on the response.
"""

import logging
import re
import secrets

from wren.context import get_container
from wren.http.request import Request
from wren.http.response import Response
from wren.middleware.protocol import Next

logger = logging.getLogger("wren.kernel")

REQUEST_ID_HEADER = "X-Request-ID"
INCOMING_HEADERS = ("x-request-id", "x-correlation-id")

_VALID_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9\-_.]{7,63}$")


def generate_request_id() -> str:
    return secrets.token_hex(16)


def incoming_request_id(request: Request) -> str | None:
    """The first well-formed id supplied by the client, if any."""
    for name in INCOMING_HEADERS:
        value = request.header(name)
        if value and _VALID_ID.match(value.strip()):
            return value.strip()
    return None


class CorrelationIdMiddleware:
    """Assign a request id and echo it as ``X-Request-ID``.

    Usage::

        app.add_middleware(CorrelationIdMiddleware)
    """

    __slots__ = ()

    async def handle(self, request: Request, next: Next) -> Response:
        request_id = incoming_request_id(request) or generate_request_id()
        get_container().instance("request_id", request_id)
        logger.debug("Request %s %s assigned id %s", request.method, request.path, request_id)
        response = await next(request)
        return response.with_header(REQUEST_ID_HEADER, request_id)
