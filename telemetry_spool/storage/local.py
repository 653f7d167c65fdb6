"""
Local file-based spool storage.

All items live in one directory:

{base_path}/
  m_meta             install id + next sequence number
  s_{session_id}     active session logs
  .rot_{session_id}  session logs claimed by a rotation in progress
  u_{blob_id}        pending upload blobs

The manifest is rebuilt from one directory scan the first time the store is
used and is then kept current by the store's own create and delete calls.
Several clients writing to the same directory should share one store: appends
and rotation claims on one session are serialized through the store.

A claimed log left behind by an interrupted rotation is put back in front of
its session log on the next manifest rebuild, so its records are uploaded
again rather than lost.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import UTC, datetime
from pathlib import Path

from . import file_ops
from .base import MetadataFile, SpoolManifest, SpoolStore

logger = logging.getLogger(__name__)

SESSION_FILE_PREFIX = "s_"
UPLOAD_FILE_PREFIX = "u_"
CLAIMED_FILE_PREFIX = ".rot_"
METADATA_FILE_NAME = "m_meta"


class LocalSpoolStore(SpoolStore):
    """Spool store backed by a single local directory."""

    def __init__(self, base_path: Path) -> None:
        """Initialize local storage.

        Args:
            base_path: Spool directory; created on first write
        """
        self.base_path = Path(base_path).expanduser()
        self.manifest = SpoolManifest()
        self._manifest_loaded = False
        # Alive only while some operation holds or waits on the lock
        self._session_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _session_file(self, session_id: str) -> Path:
        return self.base_path / f"{SESSION_FILE_PREFIX}{session_id}"

    def _claimed_file(self, session_id: str) -> Path:
        return self.base_path / f"{CLAIMED_FILE_PREFIX}{session_id}"

    def _blob_file(self, blob_id: str) -> Path:
        return self.base_path / f"{UPLOAD_FILE_PREFIX}{blob_id}"

    @property
    def metadata_path(self) -> Path:
        return self.base_path / METADATA_FILE_NAME

    async def _ensure_manifest(self) -> None:
        if self._manifest_loaded:
            return
        await self.refresh()

    def _session_lock(self, session_id: str) -> asyncio.Lock:
        lock = self._session_locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._session_locks[session_id] = lock
        return lock

    async def refresh(self) -> None:
        """Rebuild the manifest from the directory contents.

        Claimed logs from an interrupted rotation are restored first.
        """
        for name in await file_ops.list_files(self.base_path, CLAIMED_FILE_PREFIX):
            session_id = name[len(CLAIMED_FILE_PREFIX) :]
            logger.warning(f"Restoring session log {session_id} from an interrupted rotation")
            await self._restore_claimed(session_id)

        sessions = await file_ops.list_files(self.base_path, SESSION_FILE_PREFIX)
        blobs = await file_ops.list_files(self.base_path, UPLOAD_FILE_PREFIX)

        self.manifest.clear()
        for name in sessions:
            self.manifest.add_session(name[len(SESSION_FILE_PREFIX) :])
        for name in blobs:
            self.manifest.add_blob(name[len(UPLOAD_FILE_PREFIX) :])
        self._manifest_loaded = True

        if sessions or blobs:
            logger.debug(
                f"Recovered {len(sessions)} session log(s) and {len(blobs)} blob(s) "
                f"from {self.base_path}"
            )

    async def append_session(self, session_id: str, text: str) -> None:
        await self._ensure_manifest()
        async with self._session_lock(session_id):
            await file_ops.append_text(self._session_file(session_id), text)
            self.manifest.add_session(session_id)

    async def list_sessions(self) -> list[str]:
        await self._ensure_manifest()
        return self.manifest.sessions

    async def read_session(self, session_id: str) -> str | None:
        return await file_ops.read_text(self._session_file(session_id))

    async def delete_session(self, session_id: str) -> None:
        await self._ensure_manifest()
        await file_ops.remove_file(self._session_file(session_id))
        self.manifest.discard_session(session_id)

    async def take_session(self, session_id: str) -> str | None:
        await self._ensure_manifest()
        async with self._session_lock(session_id):
            self.manifest.discard_session(session_id)
            claimed = self._claimed_file(session_id)
            if not await file_ops.move_file(self._session_file(session_id), claimed):
                return None
            return await file_ops.read_text(claimed)

    async def release_session(self, session_id: str) -> None:
        await file_ops.remove_file(self._claimed_file(session_id))

    async def restore_session(self, session_id: str) -> None:
        await self._ensure_manifest()
        async with self._session_lock(session_id):
            await self._restore_claimed(session_id)

    async def _restore_claimed(self, session_id: str) -> None:
        claimed = self._claimed_file(session_id)
        contents = await file_ops.read_text(claimed)
        if contents is None:
            return

        session_file = self._session_file(session_id)
        appended = await file_ops.read_text(session_file)
        if appended is None:
            await file_ops.move_file(claimed, session_file)
        else:
            await file_ops.write_text_atomic(session_file, contents + appended)
            await file_ops.remove_file(claimed)
        self.manifest.add_session(session_id)

    async def append_blob(self, blob_id: str, text: str) -> None:
        await self._ensure_manifest()
        await file_ops.append_text(self._blob_file(blob_id), text)
        self.manifest.add_blob(blob_id)

    async def list_blobs(self) -> list[str]:
        await self._ensure_manifest()
        return self.manifest.blobs

    async def read_blob(self, blob_id: str) -> str | None:
        return await file_ops.read_text(self._blob_file(blob_id))

    async def delete_blob(self, blob_id: str) -> None:
        await self._ensure_manifest()
        await file_ops.remove_file(self._blob_file(blob_id))
        self.manifest.discard_blob(blob_id)

    async def read_metadata(self) -> MetadataFile | None:
        path = self.metadata_path
        times = await file_ops.file_times(path)
        if times is None:
            return None
        content = await file_ops.read_text(path)
        if content is None:
            return None
        return MetadataFile(
            content=content,
            created_at=datetime.fromtimestamp(times[1], UTC),
        )

    async def write_metadata(self, content: str) -> None:
        path = self.metadata_path
        # Carry the original timestamps over so mtime keeps meaning "created at"
        times = await file_ops.file_times(path)
        await file_ops.write_text_atomic(path, content, times=times)
