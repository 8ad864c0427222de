"""Redirect plain-HTTP requests to HTTPS."""

from wren.http.request import Request
from wren.http.response import Response
from wren.middleware.protocol import Next


class HttpsRedirectMiddleware:
    """Answer insecure requests with a redirect to the same URL over HTTPS.

    Requests that arrived over HTTPS, directly or through a proxy setting
    ``X-Forwarded-Proto``, pass through. Paths starting with one of
    *except_paths* are never redirected (health checks, ACME challenges).

    Usage::

        app.add_middleware(HttpsRedirectMiddleware(except_paths=("/health",)))
    """

    __slots__ = ("except_paths", "status")

    def __init__(self, except_paths: tuple[str, ...] = (), *, status: int = 301) -> None:
        self.except_paths = except_paths
        self.status = status

    def should_redirect(self, request: Request) -> bool:
        if request.is_secure:
            return False
        return not any(request.path.startswith(prefix) for prefix in self.except_paths)

    async def handle(self, request: Request, next: Next) -> Response:
        if not self.should_redirect(request) or not request.host:
            return await next(request)
        return Response.redirect(f"https://{request.host}{request.url}", status=self.status)
