"""Built-in middleware: CORS.

Answers preflight requests and adds CORS headers to responses for
allowed origins.
"""

import re
from dataclasses import dataclass

from wren.http.request import Request
from wren.http.response import Response
from wren.middleware.protocol import Next


@dataclass(frozen=True, slots=True)
class CORSConfig:
    """CORS middleware configuration.

    All fields have secure defaults (nothing is allowed).
    Override what you need::

        CORSConfig(
            allow_origins=("https://example.com", "https://*.example.org"),
            allow_methods=("GET", "POST"),
        )

    An origin entry may contain ``*`` wildcards; ``"*"`` alone allows
    every origin.
    """

    allow_origins: tuple[str, ...] = ()
    allow_methods: tuple[str, ...] = ("GET", "HEAD", "OPTIONS")
    allow_headers: tuple[str, ...] = ()
    expose_headers: tuple[str, ...] = ()
    allow_credentials: bool = False
    max_age: int = 600  # 10 minutes


def _origin_pattern(entry: str) -> re.Pattern[str]:
    return re.compile(".*".join(re.escape(part) for part in entry.split("*")))


class CORSMiddleware:
    """Standards-compliant CORS middleware.

    Handles:
    - Preflight ``OPTIONS`` requests (returns 204 with CORS headers)
    - Simple and actual requests (adds CORS headers to the response)
    - Credential support (``Access-Control-Allow-Credentials``)
    - Wildcard origins (``"*"``) when credentials are disabled

    Requests from origins that are not allowed pass through untouched.
    Middleware runs for matched routes only, so preflight handling needs
    a route that accepts ``OPTIONS``::

        router.add_route(["GET", "OPTIONS"], "/api/posts", (PostController, "index"))

    Usage::

        app.add_middleware(CORSMiddleware(CORSConfig(
            allow_origins=("https://example.com",),
            allow_methods=("GET", "POST", "PUT"),
            allow_headers=("Content-Type", "Authorization"),
        )))
    """

    __slots__ = ("_patterns", "config")

    def __init__(self, config: CORSConfig | None = None) -> None:
        self.config = config or CORSConfig()
        self._patterns = tuple(
            _origin_pattern(entry) for entry in self.config.allow_origins if "*" in entry
        )

    def _is_allowed_origin(self, origin: str) -> bool:
        if origin in self.config.allow_origins:
            return True
        return any(pattern.fullmatch(origin) for pattern in self._patterns)

    def _add_cors_headers(self, response: Response, origin: str) -> Response:
        cfg = self.config
        if "*" in cfg.allow_origins and not cfg.allow_credentials:
            response = response.with_header("Access-Control-Allow-Origin", "*")
        else:
            response = response.with_header("Access-Control-Allow-Origin", origin)
            response = response.with_header("Vary", "Origin")
        if cfg.allow_credentials:
            response = response.with_header("Access-Control-Allow-Credentials", "true")
        if cfg.expose_headers:
            response = response.with_header(
                "Access-Control-Expose-Headers", ", ".join(cfg.expose_headers)
            )
        return response

    def _preflight_response(self, origin: str, request_method: str | None) -> Response:
        cfg = self.config
        response = self._add_cors_headers(Response(body="", status=204), origin)
        if request_method:
            response = response.with_header(
                "Access-Control-Allow-Methods", ", ".join(cfg.allow_methods)
            )
        if cfg.allow_headers:
            response = response.with_header(
                "Access-Control-Allow-Headers", ", ".join(cfg.allow_headers)
            )
        return response.with_header("Access-Control-Max-Age", str(cfg.max_age))

    async def handle(self, request: Request, next: Next) -> Response:
        origin = request.header("origin")

        # No Origin header: not a CORS request
        if origin is None or not self._is_allowed_origin(origin):
            return await next(request)

        if request.method == "OPTIONS":
            return self._preflight_response(
                origin, request.header("access-control-request-method")
            )

        response = await next(request)
        return self._add_cors_headers(response, origin)
