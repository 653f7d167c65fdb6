"""
Single-flight upload pipeline.

An upload attempt runs these steps in order, never overlapping:

1. acquire the in-flight guard (or return immediately if it is held)
2. rotate all current session logs into a blob
3. concatenate every pending blob into one payload
4. send the payload over the transport
5. on success, delete exactly the blobs that were sent
6. on failure, leave every file untouched

The guard is released on every path. Because blobs are only deleted after
the endpoint accepted them, a crash or failure leaves them in place for the
next attempt; the backend deduplicates on blob id and sequence number.
"""

from __future__ import annotations

import asyncio
import logging
import threading

from .exceptions import TransportError
from .results import OperationResult
from .rotator import Rotator
from .storage.base import SpoolStore
from .transport import UploadTransport

logger = logging.getLogger(__name__)


class UploadGuard:
    """Non-blocking in-flight flag.

    ``try_acquire`` is an atomic test-and-set: exactly one caller wins until
    ``release`` is called. Safe to share between threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        if self._lock.locked():
            self._lock.release()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()


class UploadPipeline:
    """Rotates, sends and cleans up pending uploads, one attempt at a time.

    Share one pipeline between every client writing to the same store; the
    guard is what keeps two rotations from running at once.
    """

    def __init__(
        self,
        store: SpoolStore,
        rotator: Rotator,
        transport: UploadTransport,
        url: str,
        guard: UploadGuard | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            store: Spool store holding session logs and blobs
            rotator: Rotator folding session logs into blobs
            transport: Transport delivering the payload
            url: Upload endpoint
            guard: In-flight guard (a fresh one by default)
        """
        self.store = store
        self.rotator = rotator
        self.transport = transport
        self.url = url
        self.guard = guard or UploadGuard()
        self.last_result: OperationResult | None = None
        self._task: asyncio.Task[OperationResult] | None = None

    @property
    def in_flight(self) -> bool:
        return self.guard.in_flight

    def upload(self) -> bool:
        """Start an upload in the background and return immediately.

        Must be called from a running event loop.

        Returns:
            True if an upload was started, False if one was already in flight
            or it could not be scheduled
        """
        if not self.guard.try_acquire():
            logger.debug("Upload already in flight; skipping")
            return False

        try:
            self._task = asyncio.get_running_loop().create_task(self._run())
        except RuntimeError as e:
            self.guard.release()
            logger.warning(f"Upload not started: {e}")
            return False

        logger.info("Beginning upload.")
        return True

    async def run_once(self) -> OperationResult:
        """Run one upload attempt inline and return its result."""
        if not self.guard.try_acquire():
            result = OperationResult.skip("Upload already in flight")
            logger.debug(result.message)
            return result
        return await self._run()

    async def wait(self) -> OperationResult | None:
        """Wait for the background upload, if any, and return its result."""
        task = self._task
        if task is None:
            return None
        return await task

    async def _run(self) -> OperationResult:
        """One attempt. Expects the guard to be held; always releases it."""
        try:
            result = await self._upload()
        except Exception as e:
            result = OperationResult.failure(f"Upload failed, pending files kept: {e}", e)
        finally:
            self.guard.release()

        if result.ok:
            logger.info(result.message)
        else:
            logger.warning(result.message, exc_info=result.error)
        self.last_result = result
        return result

    async def _upload(self) -> OperationResult:
        await self.rotator.rotate()

        included: list[str] = []
        parts: list[str] = []
        for blob_id in await self.store.list_blobs():
            contents = await self.store.read_blob(blob_id)
            if contents is None:
                continue
            included.append(blob_id)
            parts.append(contents)

        if not included:
            return OperationResult.success("Nothing to upload")

        payload = "".join(parts).encode("utf-8")
        logger.info(f"Uploading {len(included)} blob(s) to: {self.url}")

        if not await self.transport.send(self.url, payload):
            error = TransportError(self.url)
            return OperationResult.failure(f"Upload not accepted, pending files kept: {error.message}", error)

        for blob_id in included:
            await self.store.delete_blob(blob_id)

        return OperationResult.success(f"Upload complete: {len(included)} blob(s), {len(payload)} bytes")
