"""Immutable HTTP request.

The kernel consumes an already-parsed request: method, path, headers,
query and body parameters, uploaded files. Nothing in the dispatch path
mutates it; derived requests are built with ``dataclasses.replace``.
"""

from __future__ import annotations

import json as json_module
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from wren.http.headers import Headers
from wren.http.query import QueryParams


@dataclass(frozen=True, slots=True)
class UploadedFile:
    """A file received in a multipart body, already buffered by the server."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Build one directly, through :meth:`build` for plain-dict inputs, or
    through :meth:`from_asgi` from a server scope.
    """

    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    query: QueryParams = field(default_factory=QueryParams)
    form: QueryParams = field(default_factory=QueryParams)
    files: Mapping[str, UploadedFile] = field(default_factory=dict)
    body: bytes = b""
    path_params: Mapping[str, str | None] = field(default_factory=dict)
    client: tuple[str, int] | None = None
    scheme: str = "http"

    # -- Factories --

    @classmethod
    def build(
        cls,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
        query: Mapping[str, str] | str | None = None,
        form: Mapping[str, str] | None = None,
        files: Mapping[str, UploadedFile] | None = None,
        body: bytes = b"",
        scheme: str = "http",
    ) -> Request:
        """Create a request from plain Python values.

        ``query`` accepts either a mapping or a raw query string.
        """
        if isinstance(query, str):
            query_params = QueryParams.parse(query)
        else:
            query_params = QueryParams(query)
        return cls(
            method=method.upper(),
            path=path or "/",
            headers=Headers(headers or ()),
            query=query_params,
            form=QueryParams(form),
            files=dict(files or {}),
            body=body,
            scheme=scheme,
        )

    @classmethod
    def from_asgi(cls, scope: Mapping[str, Any], body: bytes = b"") -> Request:
        """Create a Request from an ASGI HTTP scope and its full body.

        URL-encoded and JSON object bodies are exposed through ``form``.
        """
        headers = Headers.from_raw(scope.get("headers", ()))
        content_type = (headers.get("content-type") or "").lower()
        form = QueryParams()
        if body and content_type.startswith("application/x-www-form-urlencoded"):
            form = QueryParams.parse(body)
        elif body and "json" in content_type:
            try:
                payload = json_module.loads(body)
            except ValueError:
                payload = None
            if isinstance(payload, dict):
                form = QueryParams({str(k): str(v) for k, v in payload.items()})
        client = scope.get("client")
        return cls(
            method=scope["method"].upper(),
            path=scope.get("path") or "/",
            headers=headers,
            query=QueryParams.parse(scope.get("query_string", b"")),
            form=form,
            body=body,
            client=tuple(client) if client else None,
            scheme=scope.get("scheme") or "http",
        )

    # -- Accessors --

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        return self.headers.get(name, default)

    def input(self, key: str, default: str | None = None) -> str | None:
        """Look up *key* in the body parameters, then the query string."""
        value = self.form.get(key)
        if value is None:
            value = self.query.get(key, default)
        return value

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def content_length(self) -> int | None:
        """The Content-Length header as int."""
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def host(self) -> str | None:
        """The Host header value."""
        return self.headers.get("host")

    @property
    def is_secure(self) -> bool:
        """True for HTTPS, directly or behind a proxy setting X-Forwarded-Proto."""
        if self.scheme == "https":
            return True
        forwarded = self.headers.get("x-forwarded-proto") or ""
        return forwarded.split(",")[0].strip().lower() == "https"

    @property
    def url(self) -> str:
        """Path plus query string."""
        qs = self.query.encode()
        if qs:
            return f"{self.path}?{qs}"
        return self.path

    def json(self) -> Any:
        """Parse the raw body as JSON."""
        return json_module.loads(self.body)

    def with_path_params(self, params: Mapping[str, str | None]) -> Request:
        """Return a copy carrying the matched route parameters."""
        return replace(self, path_params=dict(params))
