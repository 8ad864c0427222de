"""Security headers middleware — X-Frame-Options, X-Content-Type-Options, Referrer-Policy.

Adds common security headers to HTML responses (clickjacking, MIME
sniffing, referrer leakage). JSON and binary responses are left alone.
"""

from dataclasses import dataclass

from wren.http.request import Request
from wren.http.response import Response
from wren.middleware.protocol import Next


@dataclass(frozen=True, slots=True)
class SecurityHeadersConfig:
    """Configuration for security headers.

    All values are applied as-is. Use standard header values.
    """

    x_frame_options: str = "DENY"
    x_content_type_options: str = "nosniff"
    referrer_policy: str = "strict-origin-when-cross-origin"
    content_security_policy: str | None = None
    strict_transport_security: str | None = None


def _is_html(response: Response) -> bool:
    return (response.content_type or "").startswith("text/html")


class SecurityHeadersMiddleware:
    """Add security headers to HTML responses.

    Usage::

        app.add_middleware(SecurityHeadersMiddleware())

    Or with custom config::

        app.add_middleware(SecurityHeadersMiddleware(SecurityHeadersConfig(
            x_frame_options="SAMEORIGIN",
            content_security_policy="default-src 'self'",
        )))
    """

    __slots__ = ("config",)

    def __init__(self, config: SecurityHeadersConfig | None = None) -> None:
        self.config = config or SecurityHeadersConfig()

    async def handle(self, request: Request, next: Next) -> Response:
        response = await next(request)
        if not _is_html(response):
            return response
        config = self.config
        secured = (
            response.with_header("X-Frame-Options", config.x_frame_options)
            .with_header("X-Content-Type-Options", config.x_content_type_options)
            .with_header("Referrer-Policy", config.referrer_policy)
        )
        if config.content_security_policy:
            secured = secured.with_header("Content-Security-Policy", config.content_security_policy)
        if config.strict_transport_security:
            secured = secured.with_header(
                "Strict-Transport-Security", config.strict_transport_security
            )
        return secured
