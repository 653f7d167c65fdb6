"""
Client facade for host applications.

Usage:

    >>> client = TelemetryClient("my-app-key")
    >>> await client.open()
    >>> await client.tag_event("login", {"method": "email"})
    >>> await client.close()
    >>> await client.upload()        # returns as soon as the upload is scheduled

None of the public methods raise. Failures are logged and reported as a
False return value; the host application never sees an exception from here.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .config import TelemetryConfig
from .device import DeviceAttributes
from .logging_utils import TelemetryLoggerAdapter
from .metadata import MetadataStore
from .rotator import Rotator
from .session import SessionLifecycle, SessionState
from .storage.base import SpoolStore
from .storage.local import LocalSpoolStore
from .transport import AiohttpUploadTransport, UploadTransport
from .upload import UploadPipeline

logger = logging.getLogger(__name__)

# One pipeline per spool directory, so every client writing to a directory
# shares its store manifest and its in-flight guard.
_shared_lock = threading.Lock()
_shared_pipelines: dict[Path, UploadPipeline] = {}


def build_pipeline(
    config: TelemetryConfig,
    *,
    store: SpoolStore | None = None,
    transport: UploadTransport | None = None,
    device: DeviceAttributes | None = None,
) -> UploadPipeline:
    """Wire a store, metadata store, rotator and transport into a pipeline."""
    store = store or LocalSpoolStore(config.resolved_storage_path)
    transport = transport or AiohttpUploadTransport(
        timeout=config.upload_timeout,
        content_type=config.content_type,
    )
    device = device or DeviceAttributes.collect(config.library_version, config.app_version)
    rotator = Rotator(store, MetadataStore(store), config.app_key, device)
    return UploadPipeline(store, rotator, transport, config.upload_url)


def shared_pipeline(config: TelemetryConfig) -> UploadPipeline:
    """Return the process-wide pipeline for the config's spool directory.

    Raises:
        ValueError: If the directory is already spooling for another upload
            URL (a different app key or base URL)
    """
    path = config.resolved_storage_path
    with _shared_lock:
        pipeline = _shared_pipelines.get(path)
        if pipeline is None:
            pipeline = build_pipeline(config)
            _shared_pipelines[path] = pipeline
        elif pipeline.url != config.upload_url:
            raise ValueError(
                f"Spool directory {path} is already in use for {pipeline.url}; "
                f"configure a separate storage_path for {config.upload_url}"
            )
        return pipeline


class TelemetryClient:
    """Records one session of events and uploads spooled data on request.

    A client covers a single session: once closed it cannot be reopened;
    create a new client for the next session.
    """

    def __init__(
        self,
        app_key: str | None = None,
        config: TelemetryConfig | None = None,
        *,
        store: SpoolStore | None = None,
        transport: UploadTransport | None = None,
        pipeline: UploadPipeline | None = None,
        device: DeviceAttributes | None = None,
    ) -> None:
        """Create a client.

        Args:
            app_key: Application key; overrides ``config.app_key`` if both given
            config: Full configuration (built from ``app_key`` if omitted)
            store: Spool store to use instead of the configured directory
            transport: Transport to use instead of aiohttp
            pipeline: Existing pipeline to share with other clients; its store
                is used for this client's session log
            device: Device attributes instead of the collected ones

        An invalid configuration does not raise: the client is created
        disabled and every operation is a logged no-op.
        """
        self.config: TelemetryConfig | None = None
        self.pipeline: UploadPipeline | None = None
        self.session: SessionLifecycle | None = None
        self._log_context: dict[str, Any] = {"app_key": app_key or (config.app_key if config else "")}
        self._log = TelemetryLoggerAdapter(logger, self._log_context)
        self._owns_pipeline = False

        try:
            if config is None:
                config = TelemetryConfig(app_key=app_key or "")
            elif app_key and app_key != config.app_key:
                config = dataclasses.replace(config, app_key=app_key)
            self.config = config
            self._log_context["app_key"] = config.app_key

            if pipeline is None:
                if store is not None or transport is not None or device is not None:
                    pipeline = build_pipeline(config, store=store, transport=transport, device=device)
                    self._owns_pipeline = True
                else:
                    pipeline = shared_pipeline(config)
            self.pipeline = pipeline

            self.session = SessionLifecycle(
                pipeline.store,
                max_stored_sessions=config.max_stored_sessions,
                max_name_length=config.max_name_length,
                log=self._log,
            )
        except Exception as e:
            self._log.error(f"Telemetry client disabled: {e}", exc_info=True)

    @property
    def enabled(self) -> bool:
        return self.session is not None and self.pipeline is not None

    @property
    def state(self) -> SessionState:
        return self.session.state if self.session else SessionState.UNOPENED

    @property
    def session_id(self) -> str | None:
        return self.session.session_id if self.session else None

    def _disabled(self, operation: str) -> bool:
        self._log.debug(f"{operation} ignored: client is disabled")
        return False

    async def open(self) -> bool:
        """Open the session. Returns True if it was opened by this call."""
        if self.session is None:
            return self._disabled("open")
        try:
            result = await self.session.open()
        except Exception as e:
            self._log.warning(f"Swallowing exception in open: {e}", exc_info=True)
            return False
        if result.ok:
            self._log_context["session_id"] = self.session.session_id
        return result.ok

    async def close(self) -> bool:
        """Close the session. Returns True if it was closed by this call."""
        if self.session is None:
            return self._disabled("close")
        try:
            return (await self.session.close()).ok
        except Exception as e:
            self._log.warning(f"Swallowing exception in close: {e}", exc_info=True)
            return False

    async def tag_event(self, name: str, attributes: Mapping[Any, Any] | None = None) -> bool:
        """Record an event in the open session.

        Should not be called in tight loops, and should not carry personally
        identifiable information. Returns True if the event was recorded.
        """
        if self.session is None:
            return self._disabled("tag_event")
        try:
            return (await self.session.tag_event(name, attributes)).ok
        except Exception as e:
            self._log.warning(f"Swallowing exception in tag_event: {e}", exc_info=True)
            return False

    async def upload(self) -> bool:
        """Start a background upload of everything spooled so far.

        Returns immediately. False means no upload was started, usually
        because one is already in flight.
        """
        if self.pipeline is None:
            return self._disabled("upload")
        try:
            return self.pipeline.upload()
        except Exception as e:
            self._log.warning(f"Swallowing exception in upload: {e}", exc_info=True)
            return False

    async def wait_for_upload(self) -> bool | None:
        """Wait for the background upload started last, if any.

        Returns:
            True/False for the upload outcome, None if none was started
        """
        if self.pipeline is None:
            return None
        try:
            result = await self.pipeline.wait()
        except Exception as e:
            self._log.warning(f"Swallowing exception while waiting for upload: {e}", exc_info=True)
            return False
        return None if result is None else result.ok

    async def aclose(self) -> None:
        """Wait for an in-flight upload and release resources this client owns."""
        await self.wait_for_upload()
        if self.pipeline is not None and self._owns_pipeline:
            try:
                await self.pipeline.transport.close()
                await self.pipeline.store.close()
            except Exception as e:
                self._log.warning(f"Swallowing exception in aclose: {e}", exc_info=True)

    async def __aenter__(self) -> TelemetryClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Close the session if it is still open, then release resources."""
        if self.state is SessionState.OPEN:
            await self.close()
        await self.aclose()
