"""Request and response value types consumed and produced by the kernel."""

from wren.http.headers import Headers
from wren.http.query import QueryParams
from wren.http.request import Request, UploadedFile
from wren.http.response import Response

__all__ = ["Headers", "QueryParams", "Request", "Response", "UploadedFile"]
