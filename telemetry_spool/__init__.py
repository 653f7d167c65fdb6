"""
Telemetry Spool

Embedded telemetry client: records application events into durable local
session logs, folds them into upload blobs, and uploads the blobs to an
analytics endpoint without ever blocking or crashing the host.

Provides:
- Append-only session logs with open/event/close records
- Install metadata with a monotonic upload sequence number
- Rotation of session logs into pending upload blobs
- A single-flight upload pipeline that only deletes what the endpoint accepted

Usage:

    >>> from telemetry_spool import TelemetryClient
    >>> async with TelemetryClient("my-app-key") as client:
    ...     await client.open()
    ...     await client.tag_event("login", {"method": "email"})
    ...     await client.close()
    ...     await client.upload()
"""

from .client import TelemetryClient, build_pipeline, shared_pipeline
from .config import TelemetryConfig
from .device import DeviceAttributes
from .exceptions import (
    CapacityExceededError,
    InvalidStateError,
    MetadataCorruptError,
    StorageUnavailableError,
    TelemetryError,
    TransportError,
)
from .logging_utils import configure_structured_logging
from .metadata import InstallMetadata, MetadataStore
from .results import OperationResult
from .rotator import Rotator
from .session import SessionLifecycle, SessionState
from .storage import LocalSpoolStore, MemorySpoolStore, SpoolStore
from .transport import AiohttpUploadTransport, UploadTransport
from .upload import UploadGuard, UploadPipeline

__all__ = [
    # Facade
    "TelemetryClient",
    "TelemetryConfig",
    "build_pipeline",
    "shared_pipeline",
    # Components
    "SessionLifecycle",
    "SessionState",
    "MetadataStore",
    "InstallMetadata",
    "Rotator",
    "UploadPipeline",
    "UploadGuard",
    "OperationResult",
    "DeviceAttributes",
    # Storage
    "SpoolStore",
    "LocalSpoolStore",
    "MemorySpoolStore",
    # Transport
    "UploadTransport",
    "AiohttpUploadTransport",
    # Exceptions
    "TelemetryError",
    "StorageUnavailableError",
    "MetadataCorruptError",
    "TransportError",
    "CapacityExceededError",
    "InvalidStateError",
    # Logging
    "configure_structured_logging",
]

__version__ = "0.1.0"
