"""
Async file operations for the spool directory.

Provides:
- Single-write appends of newline-terminated records
- Atomic replace using temp file + rename, and plain atomic renames
- Whole-file reads
- Prefix listings used to rebuild the manifest on startup
"""

import os
import tempfile
from pathlib import Path

import aiofiles
import aiofiles.os

from ..exceptions import StorageUnavailableError

TEMP_PREFIX = ".tmp_"


async def ensure_directory(path: Path) -> None:
    """Ensure directory exists, creating if necessary.

    Args:
        path: Directory path to ensure exists
    """
    try:
        await aiofiles.os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise StorageUnavailableError("create_directory", str(path), e) from e


async def read_text(path: Path) -> str | None:
    """Read a whole text file.

    Args:
        path: Path to read

    Returns:
        File contents, or None if the file doesn't exist
    """
    try:
        async with aiofiles.open(path, encoding="utf-8", newline="") as f:
            return await f.read()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise StorageUnavailableError("read", str(path), e) from e


async def append_text(path: Path, text: str) -> None:
    """Append text to a file with a single write.

    The file is created if missing. The write is flushed and fsynced before
    returning so a record is either fully on disk or not at all reported.

    Args:
        path: Path to append to
        text: Text to append (callers pass whole, newline-terminated records)
    """
    await ensure_directory(path.parent)

    try:
        async with aiofiles.open(path, "a", encoding="utf-8", newline="") as f:
            await f.write(text)
            await f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        raise StorageUnavailableError("append", str(path), e) from e


async def write_text_atomic(
    path: Path,
    text: str,
    times: tuple[float, float] | None = None,
) -> None:
    """Replace a file atomically using temp file + rename.

    Args:
        path: Target path
        text: Full new contents
        times: Optional (atime, mtime) to stamp on the new file before it
            replaces the old one
    """
    await ensure_directory(path.parent)

    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=TEMP_PREFIX)
    try:
        os.close(fd)
        async with aiofiles.open(temp_path, "w", encoding="utf-8", newline="") as f:
            await f.write(text)
            await f.flush()
            os.fsync(f.fileno())

        if times is not None:
            await aiofiles.os.wrap(os.utime)(temp_path, times)

        await aiofiles.os.replace(temp_path, path)
    except Exception as e:
        # Clean up temp file on error
        try:
            await aiofiles.os.remove(temp_path)
        except OSError:
            pass
        raise StorageUnavailableError("write", str(path), e) from e


async def file_times(path: Path) -> tuple[float, float] | None:
    """Return (atime, mtime) of a file, or None if it doesn't exist."""
    try:
        stat_result = await aiofiles.os.stat(path)
    except FileNotFoundError:
        return None
    except OSError as e:
        raise StorageUnavailableError("stat", str(path), e) from e
    return (stat_result.st_atime, stat_result.st_mtime)


async def remove_file(path: Path) -> bool:
    """Remove a file if it exists.

    Args:
        path: Path to remove

    Returns:
        True if file was removed, False if it didn't exist
    """
    try:
        await aiofiles.os.remove(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StorageUnavailableError("remove", str(path), e) from e


async def move_file(source: Path, target: Path) -> bool:
    """Rename a file in one atomic step, replacing ``target`` if it exists.

    Returns:
        True if the file was moved, False if ``source`` didn't exist
    """
    try:
        await aiofiles.os.replace(source, target)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StorageUnavailableError("move", str(source), e) from e


async def list_files(path: Path, prefix: str) -> list[str]:
    """List file names in a directory starting with ``prefix``.

    Names are ordered by modification time, then name, so that a rebuilt
    manifest follows creation order as closely as the filesystem allows.

    Args:
        path: Directory to list
        prefix: File name prefix to match

    Returns:
        Matching file names (without directory)
    """
    try:
        if not await aiofiles.os.path.exists(path):
            return []

        entries: list[tuple[float, str]] = []
        for name in await aiofiles.os.listdir(path):
            if not name.startswith(prefix):
                continue
            entry_path = path / name
            if not await aiofiles.os.path.isfile(entry_path):
                continue
            try:
                stat_result = await aiofiles.os.stat(entry_path)
            except FileNotFoundError:
                # Deleted between listdir and stat
                continue
            entries.append((stat_result.st_mtime, name))
        return [name for _, name in sorted(entries)]
    except OSError as e:
        raise StorageUnavailableError("list", str(path), e) from e
