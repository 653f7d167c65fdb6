"""
Rotation of active session logs into upload blobs.

One pass snapshots the stored session ids, then for each one claims its log
from the store, copies the claimed contents into a single new blob and
releases the claim. The blob starts with exactly one upload header, written
together with the first session's contents. Sessions opened after the
snapshot are left for a later pass.

Claiming detaches a log from its session id, so events recorded while a
rotation runs go to a fresh log for that session and are rotated next time.
Rotation never rewrites session records; it only copies them verbatim
behind the header. If a copy fails the claimed log is restored.
"""

from __future__ import annotations

import logging
from typing import Any

from .device import DeviceAttributes
from .metadata import MetadataStore
from .records import encode_record, new_uuid, unix_time, upload_header_record
from .storage.base import SpoolStore

logger = logging.getLogger(__name__)


class Rotator:
    """Folds all current session logs into one pending upload blob."""

    def __init__(
        self,
        store: SpoolStore,
        metadata: MetadataStore,
        app_key: str,
        device: DeviceAttributes,
    ) -> None:
        self.store = store
        self.metadata = metadata
        self.app_key = app_key
        self.device = device

    async def build_header(self, blob_id: str) -> dict[str, Any]:
        """Build the header for a new blob, consuming one sequence number."""
        created_at = await self.metadata.get_store_creation_time()
        sequence = await self.metadata.next_sequence_number()
        install_id = await self.metadata.get_install_id()
        return upload_header_record(
            blob_id=blob_id,
            sequence=sequence,
            store_created=unix_time(created_at),
            install_id=install_id,
            app_key=self.app_key,
            device=self.device,
        )

    async def _restore(self, session_id: str) -> None:
        try:
            await self.store.restore_session(session_id)
        except Exception as e:
            logger.warning(f"Could not restore claimed session log {session_id}: {e}", exc_info=True)

    async def rotate(self) -> str | None:
        """Move every stored session log into a new blob.

        Returns:
            The new blob id, or None if there was nothing to rotate

        Raises:
            StorageUnavailableError: If the store fails mid-rotation. Sessions
                already folded stay in the blob; the session being copied is
                restored and, with the rest, picked up by the next pass.
            MetadataCorruptError: If the header cannot be built
        """
        session_ids = await self.store.list_sessions()
        if not session_ids:
            return None

        blob_id: str | None = None
        rotated = 0
        for session_id in session_ids:
            contents = await self.store.take_session(session_id)
            if contents is None:
                # Gone since the snapshot
                continue

            if contents and not contents.endswith("\n"):
                contents += "\n"
            try:
                if blob_id is None:
                    blob_id = new_uuid()
                    header = await self.build_header(blob_id)
                    await self.store.append_blob(blob_id, encode_record(header) + contents)
                else:
                    await self.store.append_blob(blob_id, contents)
            except Exception:
                await self._restore(session_id)
                raise
            await self.store.release_session(session_id)
            rotated += 1

        if blob_id is not None:
            logger.info(
                f"Rotated {rotated} session log(s) into blob {blob_id}", extra={"blob_id": blob_id}
            )
        return blob_id
