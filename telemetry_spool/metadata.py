"""
Install metadata store.

Owns the install id and the upload sequence counter, persisted as two lines
in one small file:

    <install uuid>
    <next sequence number>

The file is created lazily the first time any value is requested. Every
getter goes through the same initialization path, so "first access" is
decided in exactly one place no matter which value is asked for first.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from .exceptions import MetadataCorruptError
from .storage.base import SpoolStore

logger = logging.getLogger(__name__)

INITIAL_SEQUENCE = 1


@dataclass(frozen=True)
class InstallMetadata:
    """Snapshot of the persisted install metadata."""

    install_id: str
    next_sequence: int
    created_at: datetime


def format_metadata(install_id: str, sequence: int) -> str:
    return f"{install_id}\n{sequence}"


def parse_metadata(content: str, created_at: datetime, source: str = "metadata") -> InstallMetadata:
    """Parse the two-line metadata file.

    Raises:
        MetadataCorruptError: If the content doesn't have the expected shape
    """
    lines = content.strip().splitlines()
    if len(lines) != 2:
        raise MetadataCorruptError(source, f"expected 2 lines, found {len(lines)}")

    raw_id, raw_sequence = (line.strip() for line in lines)
    try:
        install_id = str(uuid.UUID(raw_id))
    except ValueError:
        raise MetadataCorruptError(source, f"invalid install id {raw_id!r}") from None

    try:
        sequence = int(raw_sequence)
    except ValueError:
        raise MetadataCorruptError(source, f"invalid sequence number {raw_sequence!r}") from None
    if sequence < INITIAL_SEQUENCE:
        raise MetadataCorruptError(source, f"sequence number {sequence} is below {INITIAL_SEQUENCE}")

    return InstallMetadata(install_id=install_id, next_sequence=sequence, created_at=created_at)


class MetadataStore:
    """Reads and updates the install metadata held by a spool store.

    Errors from the underlying store (``StorageUnavailableError``) and
    malformed files (``MetadataCorruptError``) propagate to the caller, which
    is expected to skip its current operation.
    """

    def __init__(self, store: SpoolStore) -> None:
        self.store = store
        self._lock = asyncio.Lock()

    async def _read(self) -> InstallMetadata | None:
        raw = await self.store.read_metadata()
        if raw is None or not raw.content.strip():
            return None
        return parse_metadata(raw.content, raw.created_at)

    async def _ensure_initialized(self) -> InstallMetadata:
        """Return the current metadata, creating it on first access.

        Idempotent: an existing, non-empty file is never overwritten here.
        """
        metadata = await self._read()
        if metadata is not None:
            return metadata

        install_id = str(uuid.uuid4())
        await self.store.write_metadata(format_metadata(install_id, INITIAL_SEQUENCE))
        logger.info(f"Created install metadata for install {install_id}")

        metadata = await self._read()
        if metadata is None:
            raise MetadataCorruptError("metadata", "file is empty right after creation")
        return metadata

    async def load(self) -> InstallMetadata:
        """Return the full metadata record."""
        async with self._lock:
            return await self._ensure_initialized()

    async def get_sequence_number(self) -> int:
        """Sequence number the next upload header will use."""
        return (await self.load()).next_sequence

    async def set_sequence_number(self, number: int) -> None:
        """Persist a new next-sequence value, keeping the install id.

        The whole file is replaced atomically rather than patched in place.
        """
        if number < INITIAL_SEQUENCE:
            raise ValueError(f"sequence number must be >= {INITIAL_SEQUENCE}, got {number}")
        async with self._lock:
            metadata = await self._ensure_initialized()
            await self.store.write_metadata(format_metadata(metadata.install_id, number))

    async def next_sequence_number(self) -> int:
        """Consume a sequence number for a new upload header.

        Returns the current value and persists value + 1 in one locked step,
        so no number is handed out twice.
        """
        async with self._lock:
            metadata = await self._ensure_initialized()
            sequence = metadata.next_sequence
            await self.store.write_metadata(format_metadata(metadata.install_id, sequence + 1))
        return sequence

    async def get_install_id(self) -> str:
        return (await self.load()).install_id

    async def get_store_creation_time(self) -> datetime:
        """When the metadata file was first created."""
        return (await self.load()).created_at
