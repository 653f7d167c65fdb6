"""Tests for spool stores and file operations."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from telemetry_spool.exceptions import StorageUnavailableError
from telemetry_spool.storage import (
    METADATA_FILE_NAME,
    LocalSpoolStore,
    MemorySpoolStore,
    SpoolManifest,
)
from telemetry_spool.storage import file_ops


class TestFileOps:
    """Tests for the low-level async file helpers."""

    async def test_append_creates_directory_and_file(self, temp_dir: Path) -> None:
        path = temp_dir / "nested" / "log"

        await file_ops.append_text(path, "one\n")
        await file_ops.append_text(path, "two\n")

        assert path.read_text() == "one\ntwo\n"

    async def test_read_missing_returns_none(self, temp_dir: Path) -> None:
        assert await file_ops.read_text(temp_dir / "missing") is None

    async def test_write_atomic_replaces_content(self, temp_dir: Path) -> None:
        path = temp_dir / "meta"
        path.write_text("old")

        await file_ops.write_text_atomic(path, "new")

        assert path.read_text() == "new"
        # No temp files left behind
        assert [p.name for p in temp_dir.iterdir()] == ["meta"]

    async def test_write_atomic_applies_times(self, temp_dir: Path) -> None:
        path = temp_dir / "meta"

        await file_ops.write_text_atomic(path, "x", times=(1_000_000_000.0, 1_000_000_000.0))

        assert path.stat().st_mtime == pytest.approx(1_000_000_000.0)

    async def test_remove_file(self, temp_dir: Path) -> None:
        path = temp_dir / "victim"
        path.write_text("x")

        assert await file_ops.remove_file(path) is True
        assert await file_ops.remove_file(path) is False
        assert not path.exists()

    async def test_list_files_filters_prefix(self, temp_dir: Path) -> None:
        (temp_dir / "s_1").write_text("")
        (temp_dir / "u_1").write_text("")
        (temp_dir / ".tmp_s_x").write_text("")
        (temp_dir / "s_dir").mkdir()

        assert await file_ops.list_files(temp_dir, "s_") == ["s_1"]

    async def test_list_files_orders_by_mtime(self, temp_dir: Path) -> None:
        for name, mtime in (("s_b", 300), ("s_a", 200), ("s_c", 100)):
            path = temp_dir / name
            path.write_text("")
            os.utime(path, (mtime, mtime))

        assert await file_ops.list_files(temp_dir, "s_") == ["s_c", "s_a", "s_b"]

    async def test_list_missing_directory(self, temp_dir: Path) -> None:
        assert await file_ops.list_files(temp_dir / "missing", "s_") == []

    async def test_append_failure_raises_storage_unavailable(self, temp_dir: Path) -> None:
        blocker = temp_dir / "blocker"
        blocker.write_text("a file, not a directory")

        with pytest.raises(StorageUnavailableError) as exc_info:
            await file_ops.append_text(blocker / "log", "x\n")

        assert exc_info.value.operation in ("create_directory", "append")


class TestSpoolManifest:
    def test_keeps_insertion_order(self) -> None:
        manifest = SpoolManifest()
        manifest.add_session("b")
        manifest.add_session("a")
        manifest.add_session("b")

        assert manifest.sessions == ["b", "a"]

    def test_discard_is_idempotent(self) -> None:
        manifest = SpoolManifest()
        manifest.add_blob("x")
        manifest.discard_blob("x")
        manifest.discard_blob("x")

        assert manifest.blobs == []
        assert not manifest.has_blob("x")


class TestLocalSpoolStore:
    """Tests for LocalSpoolStore."""

    async def test_session_lifecycle_on_disk(self, local_store: LocalSpoolStore) -> None:
        await local_store.append_session("abc", "line1\n")
        await local_store.append_session("abc", "line2\n")

        assert (local_store.base_path / "s_abc").read_text() == "line1\nline2\n"
        assert await local_store.list_sessions() == ["abc"]
        assert await local_store.count_sessions() == 1
        assert await local_store.read_session("abc") == "line1\nline2\n"

        await local_store.delete_session("abc")

        assert not (local_store.base_path / "s_abc").exists()
        assert await local_store.list_sessions() == []

    async def test_blob_lifecycle_on_disk(self, local_store: LocalSpoolStore) -> None:
        await local_store.append_blob("b1", "header\n")
        await local_store.append_blob("b1", "body\n")

        assert (local_store.base_path / "u_b1").read_text() == "header\nbody\n"
        assert await local_store.list_blobs() == ["b1"]

        await local_store.delete_blob("b1")

        assert await local_store.list_blobs() == []
        assert await local_store.read_blob("b1") is None

    async def test_manifest_rebuilt_from_directory(self, temp_dir: Path) -> None:
        """A new store picks up logs and blobs left by a previous process."""
        spool = temp_dir / "spool"
        spool.mkdir()
        (spool / "s_old").write_text('{"dt":"s"}\n')
        (spool / "u_pending").write_text('{"dt":"h"}\n')
        (spool / METADATA_FILE_NAME).write_text("x\n1")

        store = LocalSpoolStore(spool)

        assert await store.list_sessions() == ["old"]
        assert await store.list_blobs() == ["pending"]

    async def test_manifest_is_source_of_truth(self, local_store: LocalSpoolStore) -> None:
        """Files dropped in behind the store's back are only seen after refresh."""
        await local_store.append_session("known", "x\n")
        (local_store.base_path / "s_stray").write_text("y\n")

        assert await local_store.list_sessions() == ["known"]

        await local_store.refresh()

        assert sorted(await local_store.list_sessions()) == ["known", "stray"]

    async def test_metadata_missing(self, local_store: LocalSpoolStore) -> None:
        assert await local_store.read_metadata() is None

    async def test_metadata_preserves_creation_time(self, local_store: LocalSpoolStore) -> None:
        await local_store.write_metadata("id\n1")
        os.utime(local_store.metadata_path, (1_000_000_000, 1_000_000_000))

        await local_store.write_metadata("id\n2")
        raw = await local_store.read_metadata()

        assert raw is not None
        assert raw.content == "id\n2"
        assert raw.created_at.timestamp() == pytest.approx(1_000_000_000, abs=1)


class TestMemorySpoolStore:
    """The in-memory store behaves like the local one."""

    async def test_sessions_and_blobs(self, memory_store: MemorySpoolStore) -> None:
        await memory_store.append_session("s1", "a\n")
        await memory_store.append_session("s2", "b\n")
        await memory_store.append_blob("b1", "h\n")

        assert await memory_store.list_sessions() == ["s1", "s2"]
        assert await memory_store.read_session("s2") == "b\n"
        assert await memory_store.list_blobs() == ["b1"]

        await memory_store.delete_session("s1")
        await memory_store.delete_blob("b1")

        assert await memory_store.list_sessions() == ["s2"]
        assert await memory_store.list_blobs() == []

    async def test_metadata_keeps_creation_time(self, memory_store: MemorySpoolStore) -> None:
        await memory_store.write_metadata("id\n1")
        first = await memory_store.read_metadata()

        await memory_store.write_metadata("id\n2")
        second = await memory_store.read_metadata()

        assert first is not None and second is not None
        assert second.content == "id\n2"
        assert second.created_at == first.created_at


class TestSessionClaims:
    """take/release/restore on both store implementations."""

    @pytest.fixture(params=["local", "memory"])
    def store(self, request, temp_dir: Path):
        if request.param == "local":
            return LocalSpoolStore(temp_dir / "spool")
        return MemorySpoolStore()

    async def test_take_detaches_log(self, store) -> None:
        await store.append_session("s1", "one\n")

        assert await store.take_session("s1") == "one\n"
        assert await store.list_sessions() == []
        assert await store.read_session("s1") is None

    async def test_take_missing(self, store) -> None:
        assert await store.take_session("missing") is None

    async def test_append_after_take_starts_new_log(self, store) -> None:
        await store.append_session("s1", "one\n")
        await store.take_session("s1")

        await store.append_session("s1", "two\n")
        await store.release_session("s1")

        assert await store.list_sessions() == ["s1"]
        assert await store.read_session("s1") == "two\n"

    async def test_restore_puts_claim_in_front(self, store) -> None:
        await store.append_session("s1", "one\n")
        await store.take_session("s1")
        await store.append_session("s1", "two\n")

        await store.restore_session("s1")

        assert await store.list_sessions() == ["s1"]
        assert await store.read_session("s1") == "one\ntwo\n"

    async def test_restore_without_newer_records(self, store) -> None:
        await store.append_session("s1", "one\n")
        await store.take_session("s1")

        await store.restore_session("s1")

        assert await store.read_session("s1") == "one\n"
        # A second restore has nothing left to put back
        await store.restore_session("s1")
        assert await store.read_session("s1") == "one\n"

    async def test_claimed_file_on_disk(self, local_store: LocalSpoolStore) -> None:
        await local_store.append_session("s1", "one\n")

        await local_store.take_session("s1")
        assert sorted(p.name for p in local_store.base_path.iterdir()) == [".rot_s1"]

        await local_store.release_session("s1")
        assert list(local_store.base_path.iterdir()) == []

    async def test_claimed_log_never_listed(self, local_store: LocalSpoolStore) -> None:
        await local_store.append_session("s1", "one\n")
        await local_store.take_session("s1")

        await local_store.refresh()

        # Rebuilding the manifest restores the claim instead of listing it
        assert await local_store.list_sessions() == ["s1"]
        assert not (local_store.base_path / ".rot_s1").exists()
