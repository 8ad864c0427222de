"""Tests for wren.server.sender — Response to ASGI messages."""

from wren.http.response import Response
from wren.server.sender import send_response


class TestSendResponse:
    async def test_start_and_body(self) -> None:
        sent: list[dict] = []

        async def send(message):
            sent.append(message)

        await send_response(Response("hello").with_header("X-Custom", "1"), send)
        start, body = sent
        assert start["status"] == 200
        assert (b"content-type", b"text/html; charset=utf-8") in start["headers"]
        assert (b"x-custom", b"1") in start["headers"]
        assert (b"content-length", b"5") in start["headers"]
        assert body["body"] == b"hello"

    async def test_no_body_for_204(self) -> None:
        sent: list[dict] = []

        async def send(message):
            sent.append(message)

        await send_response(Response("ignored", status=204), send)
        assert sent[1]["body"] == b""
        assert (b"content-length", b"0") in sent[0]["headers"]
