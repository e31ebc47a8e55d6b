"""
layered-config — filesystem utilities

File: src/layered_config/utils/fs.py

Purpose
- Provide the scoped file primitives the materializer builds on: atomic writes,
  an advisory inter-process lock, optional reads and backups.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- Concurrent writers to the same path serialize on a sibling ``.<name>.lock`` file.
- Handles are never held open beyond the call that needs them.
"""

from __future__ import annotations

import contextlib
import os
import stat
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from filelock import FileLock

from layered_config.constants import BACKUP_SUFFIX, LOCK_FILE_SUFFIX

if TYPE_CHECKING:
    from collections.abc import Iterator

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "backup_path",
    "exclusive_lock",
    "lock_path",
    "read_optional_bytes",
    "rename_to_backup",
]


def atomic_write(
    path: PathLike,
    data: bytes | str,
    *,
    encoding: str = "utf-8",
    mode: int | None = None,
) -> None:
    """Replace ``path`` with ``data`` so readers see the old or the new file, never a mix.

    The payload goes to a hidden temp file beside the target, is fsynced, then
    renamed over the target. The temp file is removed if anything fails.
    Permission bits come from ``mode`` or else from the file being replaced.
    """

    target = Path(path)
    directory = target.parent.resolve(strict=True)
    payload = data if isinstance(data, bytes) else data.encode(encoding)

    with tempfile.NamedTemporaryFile(
        "wb", dir=directory, prefix=f".{target.name}.", suffix=".tmp", delete=False
    ) as staging:
        staged = Path(staging.name)
        try:
            staging.write(payload)
            staging.flush()
            os.fsync(staging.fileno())
        except BaseException:
            staging.close()
            staged.unlink(missing_ok=True)
            raise
    try:
        if mode is not None:
            os.chmod(staged, mode)
        else:
            with contextlib.suppress(FileNotFoundError):
                os.chmod(staged, stat.S_IMODE(os.stat(target).st_mode))
        os.replace(staged, target)
    except BaseException:
        with contextlib.suppress(OSError):
            staged.unlink(missing_ok=True)
        raise
    _sync_directory(directory)


def read_optional_bytes(path: PathLike) -> bytes | None:
    """Return file contents, or ``None`` when the file does not exist."""

    try:
        with Path(path).open("rb") as handle:
            return handle.read()
    except FileNotFoundError:
        return None


def lock_path(path: PathLike) -> Path:
    target = Path(path)
    return target.parent / f".{target.name}{LOCK_FILE_SUFFIX}"


@contextmanager
def exclusive_lock(path: PathLike, *, timeout: float = -1) -> Iterator[Path]:
    """Hold an advisory lock guarding read-modify-write cycles on ``path``.

    ``timeout=-1`` blocks until the lock is available.
    """

    lock_file = lock_path(path)
    with FileLock(str(lock_file), timeout=timeout):
        yield lock_file


def backup_path(path: PathLike) -> Path:
    target = Path(path)
    return target.with_name(target.name + BACKUP_SUFFIX)


def rename_to_backup(path: PathLike) -> Path:
    """Move ``path`` to ``<path>~`` (replacing an older backup) and return the backup path."""

    backup = backup_path(path)
    os.replace(Path(path), backup)
    return backup


def _sync_directory(directory: Path) -> None:
    # Persists the rename itself; skipped where directories cannot be opened.
    if not hasattr(os, "O_DIRECTORY"):
        return
    try:
        descriptor = os.open(directory, os.O_RDONLY | os.O_DIRECTORY)
    except OSError:
        return
    with contextlib.suppress(OSError):
        os.fsync(descriptor)
    os.close(descriptor)
