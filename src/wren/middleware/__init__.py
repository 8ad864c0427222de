"""Middleware — Protocol-based, no inheritance required.

A middleware is an object with ``async def handle(request, next)`` or a
bare callable of the same shape.

Built-in middleware:
    CORSMiddleware -- Cross-Origin Resource Sharing headers and preflight
    CorrelationIdMiddleware -- Assign and echo an X-Request-ID
    HttpsRedirectMiddleware -- Redirect plain HTTP to HTTPS
    RequestSizeLimitMiddleware -- Reject oversized request bodies with 413
    SecurityHeadersMiddleware -- X-Frame-Options, X-Content-Type-Options, Referrer-Policy
"""

from wren.middleware.builtin import CORSConfig, CORSMiddleware
from wren.middleware.correlation import CorrelationIdMiddleware
from wren.middleware.https_redirect import HttpsRedirectMiddleware
from wren.middleware.pipeline import Pipeline
from wren.middleware.protocol import Middleware, Next
from wren.middleware.refs import Inline, Instance, MiddlewareRef, Named
from wren.middleware.security_headers import (
    SecurityHeadersConfig,
    SecurityHeadersMiddleware,
)
from wren.middleware.size_limit import RequestSizeLimitMiddleware

__all__ = [
    "CORSConfig",
    "CORSMiddleware",
    "CorrelationIdMiddleware",
    "HttpsRedirectMiddleware",
    "Inline",
    "Instance",
    "Middleware",
    "MiddlewareRef",
    "Named",
    "Next",
    "Pipeline",
    "RequestSizeLimitMiddleware",
    "SecurityHeadersConfig",
    "SecurityHeadersMiddleware",
]
