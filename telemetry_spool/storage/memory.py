"""In-memory spool storage, for tests and for hosts without a writable disk."""

from __future__ import annotations

from datetime import UTC, datetime

from .base import MetadataFile, SpoolManifest, SpoolStore


class MemorySpoolStore(SpoolStore):
    """Spool store keeping every item in process memory."""

    def __init__(self) -> None:
        self.manifest = SpoolManifest()
        self.sessions: dict[str, str] = {}
        self.blobs: dict[str, str] = {}
        self.claimed: dict[str, str] = {}
        self.metadata: MetadataFile | None = None

    async def append_session(self, session_id: str, text: str) -> None:
        self.sessions[session_id] = self.sessions.get(session_id, "") + text
        self.manifest.add_session(session_id)

    async def list_sessions(self) -> list[str]:
        return self.manifest.sessions

    async def read_session(self, session_id: str) -> str | None:
        return self.sessions.get(session_id)

    async def delete_session(self, session_id: str) -> None:
        self.sessions.pop(session_id, None)
        self.manifest.discard_session(session_id)

    async def take_session(self, session_id: str) -> str | None:
        self.manifest.discard_session(session_id)
        contents = self.sessions.pop(session_id, None)
        if contents is not None:
            self.claimed[session_id] = contents
        return contents

    async def release_session(self, session_id: str) -> None:
        self.claimed.pop(session_id, None)

    async def restore_session(self, session_id: str) -> None:
        contents = self.claimed.pop(session_id, None)
        if contents is None:
            return
        self.sessions[session_id] = contents + self.sessions.get(session_id, "")
        self.manifest.add_session(session_id)

    async def append_blob(self, blob_id: str, text: str) -> None:
        self.blobs[blob_id] = self.blobs.get(blob_id, "") + text
        self.manifest.add_blob(blob_id)

    async def list_blobs(self) -> list[str]:
        return self.manifest.blobs

    async def read_blob(self, blob_id: str) -> str | None:
        return self.blobs.get(blob_id)

    async def delete_blob(self, blob_id: str) -> None:
        self.blobs.pop(blob_id, None)
        self.manifest.discard_blob(blob_id)

    async def read_metadata(self) -> MetadataFile | None:
        return self.metadata

    async def write_metadata(self, content: str) -> None:
        created_at = self.metadata.created_at if self.metadata else datetime.now(UTC)
        self.metadata = MetadataFile(content=content, created_at=created_at)
