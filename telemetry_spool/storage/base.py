"""
Abstract spool storage interface.

Defines the contract that all spool stores must implement. A store holds
three kinds of items:

- session logs: append-only, keyed by session id
- upload blobs: written by rotation, keyed by blob id
- the install metadata file

Stores keep an explicit manifest of session ids and blob ids instead of
treating a directory listing as the source of truth.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class MetadataFile:
    """Raw contents of the metadata file plus its creation time."""

    content: str
    created_at: datetime


class SpoolManifest:
    """Ordered index of the session logs and blobs a store holds.

    Insertion order is creation order. Ids are only ever added by the store
    that created the item and removed by the store that deleted it.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, None] = {}
        self._blobs: dict[str, None] = {}

    @property
    def sessions(self) -> list[str]:
        return list(self._sessions)

    @property
    def blobs(self) -> list[str]:
        return list(self._blobs)

    def add_session(self, session_id: str) -> None:
        self._sessions.setdefault(session_id, None)

    def discard_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def has_session(self, session_id: str) -> bool:
        return session_id in self._sessions

    def add_blob(self, blob_id: str) -> None:
        self._blobs.setdefault(blob_id, None)

    def discard_blob(self, blob_id: str) -> None:
        self._blobs.pop(blob_id, None)

    def has_blob(self, blob_id: str) -> bool:
        return blob_id in self._blobs

    def clear(self) -> None:
        self._sessions.clear()
        self._blobs.clear()


class SpoolStore(ABC):
    """Abstract interface for spool storage.

    Every method raises ``StorageUnavailableError`` when the underlying
    storage cannot be accessed.
    """

    @abstractmethod
    async def append_session(self, session_id: str, text: str) -> None:
        """Append text to a session log, creating the log if needed.

        Args:
            session_id: The session ID
            text: One or more whole newline-terminated records
        """
        ...

    @abstractmethod
    async def list_sessions(self) -> list[str]:
        """Session ids currently stored, in creation order."""
        ...

    async def count_sessions(self) -> int:
        """Number of stored (unrotated) session logs."""
        return len(await self.list_sessions())

    @abstractmethod
    async def read_session(self, session_id: str) -> str | None:
        """Full contents of a session log, or None if it doesn't exist."""
        ...

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        """Delete a session log. Missing logs are ignored."""
        ...

    @abstractmethod
    async def take_session(self, session_id: str) -> str | None:
        """Claim a session log for rotation and return its contents.

        The log is detached from its session id in one step, so an append
        that arrives afterwards starts a fresh log for the next rotation
        instead of landing in the claimed copy. The claimed copy is kept
        until ``release_session`` or ``restore_session`` is called.

        Returns:
            The claimed contents, or None if the log doesn't exist
        """
        ...

    @abstractmethod
    async def release_session(self, session_id: str) -> None:
        """Delete the claimed copy once its contents are safely in a blob."""
        ...

    @abstractmethod
    async def restore_session(self, session_id: str) -> None:
        """Put a claimed copy back, ahead of anything appended since the claim."""
        ...

    @abstractmethod
    async def append_blob(self, blob_id: str, text: str) -> None:
        """Append text to an upload blob, creating the blob if needed."""
        ...

    @abstractmethod
    async def list_blobs(self) -> list[str]:
        """Pending blob ids, in creation order."""
        ...

    @abstractmethod
    async def read_blob(self, blob_id: str) -> str | None:
        """Full contents of a blob, or None if it doesn't exist."""
        ...

    @abstractmethod
    async def delete_blob(self, blob_id: str) -> None:
        """Delete a blob. Missing blobs are ignored."""
        ...

    @abstractmethod
    async def read_metadata(self) -> MetadataFile | None:
        """Read the metadata file.

        Returns:
            The file contents and creation time, or None if absent
        """
        ...

    @abstractmethod
    async def write_metadata(self, content: str) -> None:
        """Replace the metadata file in one atomic step.

        The creation time reported by ``read_metadata`` is preserved across
        replacements; a newly created file reports the current time.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the store."""
        return None
