"""Server-side collaborators: exception rendering and ASGI response sending."""

from wren.server.errors import ExceptionHandler, ExceptionRenderer
from wren.server.sender import send_response

__all__ = ["ExceptionHandler", "ExceptionRenderer", "send_response"]
