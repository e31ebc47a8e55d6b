"""Utility exports for filesystem helpers."""

from layered_config.utils.fs import (
    atomic_write,
    backup_path,
    exclusive_lock,
    lock_path,
    read_optional_bytes,
    rename_to_backup,
)

__all__ = [
    "atomic_write",
    "backup_path",
    "exclusive_lock",
    "lock_path",
    "read_optional_bytes",
    "rename_to_backup",
]
