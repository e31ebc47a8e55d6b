"""
layered-config — configuration file materializer.

File: src/layered_config/materializer.py

Purpose
- Keep the persisted configuration file in step with the schema: create it with
  documented defaults when absent, append newly-introduced fields when present.

What should be included in this file
- ``ensure_current`` (Created / Migrated / Untouched state machine).
- ``load_document`` shared with the file source.
- ``write_effective_config`` which persists a resolved configuration with a backup.

Functional requirements
- User-set values are never changed; schema-foreign entries stay in place unless
  ``prune=True`` is requested.
- A file that needs no change is left byte-identical.
- The read-modify-write cycle runs under an advisory lock and writes atomically.

Non-functional requirements
- Sensitive values are never logged.
"""

from __future__ import annotations

import enum
import logging
import stat
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from layered_config.codecs import FormatCodec, resolve_codec
from layered_config.codecs.base import join_path
from layered_config.encryption import EncryptionAdapter
from layered_config.errors import ConfigIoError, DecodeError
from layered_config.schema import REQUIRED, SchemaRegistry
from layered_config.utils.fs import (
    atomic_write,
    backup_path,
    exclusive_lock,
    read_optional_bytes,
    rename_to_backup,
)
from layered_config.values import EffectiveConfig

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

logger = logging.getLogger(__name__)


class MaterializeStatus(str, enum.Enum):
    CREATED = "created"
    MIGRATED = "migrated"
    UNTOUCHED = "untouched"


@dataclass(frozen=True, slots=True)
class FileEntry:
    """One persisted leaf with the documentation attached from its descriptor."""

    path: str
    value: object
    doc: str
    known: bool


@dataclass(frozen=True, slots=True)
class FileState:
    """Outcome of ``ensure_current``: the document as persisted and what changed."""

    path: Path
    status: MaterializeStatus
    document: Mapping[str, Any]
    added: tuple[str, ...] = ()
    foreign: tuple[str, ...] = ()
    pruned: tuple[str, ...] = ()
    entries: tuple[FileEntry, ...] = ()

    @property
    def changed(self) -> bool:
        return self.status is not MaterializeStatus.UNTOUCHED


@dataclass(slots=True)
class _Reconciliation:
    added: list[str] = field(default_factory=list)
    foreign: list[str] = field(default_factory=list)
    pruned: list[str] = field(default_factory=list)


def ensure_current(
    schema: SchemaRegistry,
    path: str | Path,
    codec: FormatCodec | str | None = None,
    encryption: EncryptionAdapter | None = None,
    *,
    prune: bool = False,
    header: str | None = None,
) -> FileState:
    """Create or migrate the configuration file at ``path`` and describe the result."""

    target = Path(path)
    selected = resolve_codec(target, codec)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with exclusive_lock(target):
            raw = read_optional_bytes(target)
            if raw is None:
                return _create(schema, target, selected, encryption, header)
            document = decode_bytes(raw, target, selected, encryption)
            return _migrate(schema, target, document, selected, encryption, prune, header)
    except OSError as exc:
        raise ConfigIoError(f"cannot update config file {target}: {exc}", path=target) from exc


def load_document(
    path: str | Path,
    codec: FormatCodec | str | None = None,
    encryption: EncryptionAdapter | None = None,
) -> dict[str, Any] | None:
    """Read, open and decode the file at ``path``; ``None`` when it does not exist."""

    target = Path(path)
    selected = resolve_codec(target, codec)
    try:
        raw = read_optional_bytes(target)
    except OSError as exc:
        raise ConfigIoError(f"cannot read config file {target}: {exc}", path=target) from exc
    if raw is None:
        return None
    return decode_bytes(raw, target, selected, encryption)


def decode_bytes(
    raw: bytes,
    path: Path,
    codec: FormatCodec,
    encryption: EncryptionAdapter | None,
) -> dict[str, Any]:
    payload = encryption.open(raw) if encryption is not None else raw
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"{path}: config file is not valid UTF-8 text", path=path) from exc
    try:
        return codec.decode(text)
    except DecodeError as exc:
        raise DecodeError(f"{path}: {exc}", path=path, issues=exc.issues) from exc


def write_effective_config(
    schema: SchemaRegistry,
    path: str | Path,
    effective: EffectiveConfig,
    codec: FormatCodec | str | None = None,
    encryption: EncryptionAdapter | None = None,
) -> Path:
    """Persist ``effective`` at ``path`` after moving the current file to ``<path>~``.

    Returns the path written. The previous file, if any, survives as the backup.
    """

    target = Path(path)
    selected = resolve_codec(target, codec)
    backup = backup_path(target)
    stamp = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
    header = f"Effective configuration written {stamp}."
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with exclusive_lock(target):
            exists = target.exists()
            if exists:
                header += f"\nPrevious file saved as {backup.name}."
            # Encoding happens before the backup rename.
            payload = _serialize(effective.as_dict(), schema, selected, encryption, header)
            mode = stat.S_IMODE(target.stat().st_mode) if exists else None
            if exists:
                rename_to_backup(target)
            atomic_write(target, payload, mode=mode)
    except OSError as exc:
        raise ConfigIoError(f"cannot write config file {target}: {exc}", path=target) from exc

    logger.info(
        "config_effective_written",
        extra={"path": str(target), "backup": str(backup) if exists else None},
    )
    return target


def _create(
    schema: SchemaRegistry,
    target: Path,
    codec: FormatCodec,
    encryption: EncryptionAdapter | None,
    header: str | None,
) -> FileState:
    rendered = schema.default_document(include_required=True)
    atomic_write(target, _serialize(rendered, schema, codec, encryption, header))
    document = schema.default_document()
    logger.info(
        "config_file_created",
        extra={"path": str(target), "format": codec.name, "encrypted": encryption is not None},
    )
    return FileState(
        path=target,
        status=MaterializeStatus.CREATED,
        document=document,
        entries=_entries(schema, document),
    )


def _migrate(
    schema: SchemaRegistry,
    target: Path,
    document: dict[str, Any],
    codec: FormatCodec,
    encryption: EncryptionAdapter | None,
    prune: bool,
    header: str | None,
) -> FileState:
    report = _Reconciliation()
    rendered = _reconcile(schema, document, "", prune, report)

    if not report.added and not report.pruned:
        logger.debug("config_file_untouched", extra={"path": str(target)})
        return FileState(
            path=target,
            status=MaterializeStatus.UNTOUCHED,
            document=document,
            foreign=tuple(report.foreign),
            entries=_entries(schema, document),
        )

    atomic_write(target, _serialize(rendered, schema, codec, encryption, header))
    persisted = _strip_placeholders(rendered)
    logger.info(
        "config_file_migrated",
        extra={
            "path": str(target),
            "added": list(report.added),
            "pruned": list(report.pruned),
            "foreign": list(report.foreign),
        },
    )
    return FileState(
        path=target,
        status=MaterializeStatus.MIGRATED,
        document=persisted,
        added=tuple(report.added),
        foreign=tuple(report.foreign),
        pruned=tuple(report.pruned),
        entries=_entries(schema, persisted),
    )


def _reconcile(
    registry: SchemaRegistry,
    document: Mapping[Any, Any],
    prefix: str,
    prune: bool,
    report: _Reconciliation,
) -> dict[Any, Any]:
    """Return ``document`` with missing fields appended at the end of their section.

    Missing required leaves are carried as ``REQUIRED`` so codecs keep rendering
    their commented placeholders; they do not count as additions.
    """

    result: dict[Any, Any] = {}
    for key, value in document.items():
        path = join_path(prefix, key)
        if not isinstance(key, str) or key not in registry:
            if prune:
                report.pruned.append(path)
            else:
                report.foreign.append(path)
                result[key] = value
            continue
        descriptor = registry.field(key)
        if descriptor.fields is not None and (value is None or isinstance(value, Mapping)):
            # A bare `section:` line decodes as None and counts as an empty section.
            result[key] = _reconcile(descriptor.fields, value or {}, path, prune, report)
        else:
            result[key] = value

    for descriptor in registry.iter_fields():
        if descriptor.name in document:
            continue
        path = join_path(prefix, descriptor.name)
        if descriptor.fields is not None:
            section = descriptor.fields.default_document(include_required=True)
            if section:
                result[descriptor.name] = section
                report.added.extend(_defaulted_paths(section, path))
        elif descriptor.has_default:
            default = descriptor.default
            result[descriptor.name] = list(default) if isinstance(default, tuple) else default
            report.added.append(path)
        else:
            result[descriptor.name] = REQUIRED
    return result


def _defaulted_paths(section: Mapping[str, Any], prefix: str) -> list[str]:
    paths: list[str] = []
    for key, value in section.items():
        path = join_path(prefix, key)
        if isinstance(value, Mapping) and value:
            paths.extend(_defaulted_paths(value, path))
        elif value is not REQUIRED:
            paths.append(path)
    return paths


def _strip_placeholders(document: Mapping[Any, Any]) -> dict[Any, Any]:
    stripped: dict[Any, Any] = {}
    for key, value in document.items():
        if value is REQUIRED:
            continue
        if isinstance(value, Mapping):
            nested = _strip_placeholders(value)
            if nested or not value:
                stripped[key] = nested
            continue
        stripped[key] = value
    return stripped


def _serialize(
    document: Mapping[str, Any],
    schema: SchemaRegistry,
    codec: FormatCodec,
    encryption: EncryptionAdapter | None,
    header: str | None,
) -> bytes:
    payload = codec.encode(document, schema.docs(), header=header).encode("utf-8")
    if encryption is not None:
        payload = encryption.seal(payload)
    return payload


def _entries(schema: SchemaRegistry, document: Mapping[Any, Any]) -> tuple[FileEntry, ...]:
    entries: list[FileEntry] = []
    _collect_entries(schema, document, "", entries)
    return tuple(entries)


def _collect_entries(
    schema: SchemaRegistry,
    document: Mapping[Any, Any],
    prefix: str,
    entries: list[FileEntry],
) -> None:
    for key, value in document.items():
        path = join_path(prefix, key)
        known = isinstance(key, str) and schema.has_field(path)
        if isinstance(value, Mapping) and value and not schema.is_leaf(path):
            _collect_entries(schema, value, path, entries)
            continue
        doc = schema.field(path).doc if known else ""
        entries.append(FileEntry(path=path, value=value, doc=doc, known=known))


__all__ = [
    "FileEntry",
    "FileState",
    "MaterializeStatus",
    "decode_bytes",
    "ensure_current",
    "load_document",
    "write_effective_config",
]
