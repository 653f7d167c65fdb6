"""
Tests for the aiohttp upload transport.

Runs against a local aiohttp test server, so no network access is needed.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest
from aiohttp import test_utils, web

from telemetry_spool.exceptions import TransportError
from telemetry_spool.transport import AiohttpUploadTransport


class RecordingApp:
    """Minimal upload endpoint recording what it receives."""

    def __init__(self) -> None:
        self.status = 200
        self.delay = 0.0
        self.bodies: list[bytes] = []
        self.content_types: list[str] = []
        self.paths: list[str] = []

    async def handle(self, request: web.Request) -> web.Response:
        self.bodies.append(await request.read())
        self.content_types.append(request.headers.get("Content-Type", ""))
        self.paths.append(request.path)
        if self.delay:
            await asyncio.sleep(self.delay)
        return web.Response(status=self.status, text="ok")

    def build(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/{app_key}/uploads", self.handle)
        return app


class TestAiohttpUploadTransport:
    """Tests for AiohttpUploadTransport."""

    @pytest.fixture
    def endpoint(self) -> RecordingApp:
        return RecordingApp()

    @pytest.fixture
    async def server(self, endpoint: RecordingApp) -> AsyncIterator[test_utils.TestServer]:
        async with test_utils.TestServer(endpoint.build()) as server:
            yield server

    async def test_success_response(self, server: test_utils.TestServer, endpoint: RecordingApp) -> None:
        transport = AiohttpUploadTransport()
        url = str(server.make_url("/abc/uploads"))

        accepted = await transport.send(url, b'{"dt":"h"}\n{"dt":"s"}\n')

        assert accepted is True
        assert endpoint.bodies == [b'{"dt":"h"}\n{"dt":"s"}\n']
        assert endpoint.paths == ["/abc/uploads"]
        assert endpoint.content_types == ["application/x-ndjson"]

    async def test_custom_content_type_and_headers(
        self, server: test_utils.TestServer, endpoint: RecordingApp
    ) -> None:
        transport = AiohttpUploadTransport(content_type="application/json", headers={"X-Test": "1"})

        await transport.send(str(server.make_url("/abc/uploads")), b"{}\n")

        assert endpoint.content_types == ["application/json"]

    @pytest.mark.parametrize("status", [400, 404, 500, 503])
    async def test_error_status_is_not_accepted(
        self, server: test_utils.TestServer, endpoint: RecordingApp, status: int
    ) -> None:
        endpoint.status = status
        transport = AiohttpUploadTransport()

        accepted = await transport.send(str(server.make_url("/abc/uploads")), b"{}\n")

        assert accepted is False

    async def test_timeout_raises_transport_error(
        self, server: test_utils.TestServer, endpoint: RecordingApp
    ) -> None:
        endpoint.delay = 1.0
        transport = AiohttpUploadTransport(timeout=0.1)
        url = str(server.make_url("/abc/uploads"))

        with pytest.raises(TransportError) as exc_info:
            await transport.send(url, b"{}\n")

        assert exc_info.value.endpoint == url

    async def test_connection_failure_raises_transport_error(self) -> None:
        transport = AiohttpUploadTransport(timeout=2.0)

        with pytest.raises(TransportError) as exc_info:
            await transport.send("http://127.0.0.1:1/abc/uploads", b"{}\n")

        assert exc_info.value.cause is not None
