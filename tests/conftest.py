"""
Shared test configuration and fixtures.

Provides spool stores (on disk and in memory), fixed device attributes, and a
stub transport whose outcome and timing tests can control.
"""

from __future__ import annotations

import asyncio
import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest

from telemetry_spool.device import DeviceAttributes
from telemetry_spool.metadata import MetadataStore
from telemetry_spool.rotator import Rotator
from telemetry_spool.storage import LocalSpoolStore, MemorySpoolStore
from telemetry_spool.transport import UploadTransport
from telemetry_spool.upload import UploadPipeline

UPLOAD_URL = "http://analytics.test/api/v2/applications/abc/uploads"


class StubTransport(UploadTransport):
    """
    Transport double for pipeline tests.

    Records every payload it is given. ``accept`` decides the outcome,
    ``error`` makes ``send`` raise, and ``gate`` (if set) holds the send open
    until the test releases it.
    """

    def __init__(self, accept: bool = True, error: Exception | None = None):
        self.accept = accept
        self.error = error
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()
        self.sends: list[tuple[str, bytes]] = []
        self.closed = False

    async def send(self, url: str, payload: bytes) -> bool:
        self.sends.append((url, payload))
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.accept

    async def close(self) -> None:
        self.closed = True

    @property
    def payloads(self) -> list[str]:
        return [payload.decode("utf-8") for _, payload in self.sends]


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def local_store(temp_dir: Path) -> LocalSpoolStore:
    return LocalSpoolStore(temp_dir / "spool")


@pytest.fixture
def memory_store() -> MemorySpoolStore:
    return MemorySpoolStore()


@pytest.fixture
def device() -> DeviceAttributes:
    return DeviceAttributes(
        device_hash="d" * 128,
        platform="linux",
        locale="en",
        model="x86_64",
        os_version="6.1.0",
        library_version="python_0.1.0",
        app_version="1.2.3",
    )


@pytest.fixture
def transport() -> StubTransport:
    return StubTransport()


@pytest.fixture
def make_pipeline(device: DeviceAttributes):
    """Factory wiring a pipeline around a store and a transport."""

    def _make(store, transport: UploadTransport) -> UploadPipeline:
        rotator = Rotator(store, MetadataStore(store), "abc", device)
        return UploadPipeline(store, rotator, transport, UPLOAD_URL)

    return _make
