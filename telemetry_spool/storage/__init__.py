"""
Spool storage backends.

Provides local directory storage and an in-memory store with the same
interface.

Example:
    >>> from telemetry_spool.storage import LocalSpoolStore
    >>> store = LocalSpoolStore(Path("~/.myapp/telemetry"))
    >>> await store.append_session("3f2a...", '{"dt":"s","ct":1700000000,"u":"3f2a..."}\\n')
"""

from .base import MetadataFile, SpoolManifest, SpoolStore
from .local import (
    METADATA_FILE_NAME,
    SESSION_FILE_PREFIX,
    UPLOAD_FILE_PREFIX,
    LocalSpoolStore,
)
from .memory import MemorySpoolStore

__all__ = [
    # Interface
    "SpoolStore",
    "SpoolManifest",
    "MetadataFile",
    # Implementations
    "LocalSpoolStore",
    "MemorySpoolStore",
    # File naming
    "SESSION_FILE_PREFIX",
    "UPLOAD_FILE_PREFIX",
    "METADATA_FILE_NAME",
]
