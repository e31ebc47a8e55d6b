"""
layered-config — source adapters.

File: src/layered_config/sources.py

Purpose
- Turn each configuration source (persisted file, process environment, parsed
  command-line overrides) into a sparse ``PartialConfig`` of typed values.

What should be included in this file
- ``FileSource``, ``EnvSource`` and ``CliSource``, each exposing ``collect(schema)``.
- ``parse_text`` which converts environment-style text into a field's type.

Functional requirements
- File and environment sources report every bad value in one error.
- Absent inputs contribute nothing; they are never errors.
- Raw values of sensitive fields never appear in errors or logs.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

from layered_config.codecs import FormatCodec
from layered_config.codecs.base import join_path
from layered_config.constants import (
    BOOLEAN_FALSE,
    BOOLEAN_TRUE,
    LIST_ITEM_SEPARATOR,
    NULL_TOKENS,
    REDACTED_VALUE,
)
from layered_config.encryption import EncryptionAdapter
from layered_config.errors import (
    DecodeError,
    EnvFailure,
    EnvParseError,
    FieldIssue,
    FieldTypeError,
)
from layered_config.materializer import FileState, load_document
from layered_config.schema import FieldDescriptor, SchemaRegistry, SemanticType
from layered_config.values import PartialConfig, Provenance, SourcedValue, TypedValue

logger = logging.getLogger(__name__)


class ConfigSource(Protocol):
    """Anything that contributes a partial configuration for one resolution."""

    def collect(self, schema: SchemaRegistry) -> PartialConfig: ...


def parse_text(descriptor: FieldDescriptor, text: str) -> object:
    """Parse environment-style ``text`` into a value of ``descriptor``'s type.

    Raises ``ValueError`` describing the expected form.
    """

    value = text.strip()
    if descriptor.nullable and value.lower() in NULL_TOKENS:
        return None
    kind = descriptor.semantic_type
    if kind is SemanticType.LIST:
        assert descriptor.item_type is not None
        if not value:
            return []
        items: list[object] = []
        for index, item in enumerate(value.split(LIST_ITEM_SEPARATOR)):
            try:
                items.append(_parse_scalar(descriptor.item_type, item.strip(), descriptor))
            except ValueError as exc:
                raise ValueError(f"item {index}: {exc}") from exc
        return items
    if kind is SemanticType.OBJECT:
        raise ValueError("object sections cannot be set from text")
    return _parse_scalar(kind, value, descriptor)


def _parse_scalar(kind: SemanticType, value: str, descriptor: FieldDescriptor) -> object:
    if kind is SemanticType.STRING:
        return value
    if kind is SemanticType.INTEGER:
        try:
            return int(value)
        except ValueError:
            raise ValueError("expected an integer") from None
    if kind is SemanticType.FLOAT:
        try:
            return float(value)
        except ValueError:
            raise ValueError("expected a float") from None
    if kind is SemanticType.BOOLEAN:
        lowered = value.lower()
        if lowered in BOOLEAN_TRUE:
            return True
        if lowered in BOOLEAN_FALSE:
            return False
        raise ValueError("expected a boolean (1/0, true/false, yes/no, on/off)")
    if kind is SemanticType.ENUM:
        for choice in descriptor.choices:
            if str(choice) == value:
                return choice
        allowed = ", ".join(str(choice) for choice in descriptor.choices)
        raise ValueError(f"expected one of [{allowed}]")
    raise ValueError(f"unsupported field type {kind.value}")


class FileSource:
    """Values persisted in the configuration file (provenance FILE)."""

    def __init__(
        self,
        path: str | Path,
        codec: FormatCodec | str | None = None,
        encryption: EncryptionAdapter | None = None,
    ) -> None:
        self.path = Path(path)
        self._codec = codec
        self._encryption = encryption
        self._document: Mapping[str, Any] | None = None

    @classmethod
    def from_file_state(cls, state: FileState) -> FileSource:
        """Reuse the document the materializer already read and decoded."""

        source = cls(state.path)
        source._document = state.document
        return source

    def collect(self, schema: SchemaRegistry) -> PartialConfig:
        document = self._document
        if document is None:
            document = load_document(self.path, self._codec, self._encryption)
        if document is None:
            return PartialConfig.empty(Provenance.FILE)

        origin = str(self.path)
        entries: dict[str, SourcedValue] = {}
        unknown: list[str] = []
        issues: list[FieldIssue] = []
        _collect_document(schema, document, "", origin, entries, unknown, issues)
        if issues:
            raise DecodeError(
                f"{self.path}: configuration values have the wrong type",
                path=self.path,
                issues=issues,
            )
        if unknown:
            logger.info(
                "config_file_unknown_fields",
                extra={"path": origin, "unknown": list(unknown)},
            )
        return PartialConfig(Provenance.FILE, entries, tuple(unknown))


def _collect_document(
    schema: SchemaRegistry,
    document: Mapping[Any, Any],
    prefix: str,
    origin: str,
    entries: dict[str, SourcedValue],
    unknown: list[str],
    issues: list[FieldIssue],
) -> None:
    for key, value in document.items():
        path = join_path(prefix, key)
        if not isinstance(key, str) or not schema.has_field(path):
            unknown.append(path)
            continue
        descriptor = schema.field(path)
        if not descriptor.is_leaf:
            if value is None:
                continue
            if isinstance(value, Mapping):
                _collect_document(schema, value, path, origin, entries, unknown, issues)
            else:
                issues.append(FieldIssue(path, f"expected a section, got {type(value).__name__}"))
            continue
        try:
            typed = TypedValue.of(descriptor, value, path=path)
        except FieldTypeError as exc:
            issues.extend(exc.issues)
            continue
        entries[path] = SourcedValue(typed, Provenance.FILE, origin)


class EnvSource:
    """Values bound to environment variables through each leaf's ``env_key``."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ

    def collect(self, schema: SchemaRegistry) -> PartialConfig:
        env = os.environ if self._environ is None else self._environ
        entries: dict[str, SourcedValue] = {}
        failures: list[EnvFailure] = []
        for path, descriptor in schema.iter_leaves():
            if descriptor.env_key is None:
                continue
            raw = env.get(descriptor.env_key)
            if raw is None:
                continue
            try:
                typed = TypedValue.of(descriptor, parse_text(descriptor, raw), path=path)
            except FieldTypeError as exc:
                message = "; ".join(issue.message for issue in exc.issues)
            except ValueError as exc:
                message = str(exc)
            else:
                entries[path] = SourcedValue(typed, Provenance.ENV, descriptor.env_key)
                continue
            shown = REDACTED_VALUE if schema.is_sensitive(path) else raw
            failures.append(EnvFailure(descriptor.env_key, shown, path, message))

        if failures:
            raise EnvParseError(failures)
        if entries:
            logger.debug(
                "config_env_overrides",
                extra={"env_keys": sorted(item.origin for item in entries.values())},
            )
        return PartialConfig(Provenance.ENV, entries)


class CliSource:
    """Already-parsed command-line overrides.

    ``overrides`` may be a mapping (nested, or keyed by dotted path), an
    ``argparse.Namespace`` or a dataclass instance. ``None`` values mean the
    option was not given.
    """

    def __init__(self, overrides: object) -> None:
        self._overrides = overrides

    def collect(self, schema: SchemaRegistry) -> PartialConfig:
        flat: dict[str, object] = {}
        _flatten_overrides(schema, _as_mapping(self._overrides), "", flat)

        entries: dict[str, SourcedValue] = {}
        issues: list[FieldIssue] = []
        for path, value in flat.items():
            if value is None:
                continue
            if not schema.is_leaf(path):
                logger.debug("config_cli_key_ignored", extra={"key": path, "reason": "unknown"})
                continue
            if not schema.is_cli_overridable(path):
                logger.warning(
                    "config_cli_key_ignored",
                    extra={"key": path, "reason": "not_overridable"},
                )
                continue
            try:
                typed = TypedValue.of(schema.field(path), value, path=path)
            except FieldTypeError as exc:
                issues.extend(exc.issues)
                continue
            entries[path] = SourcedValue(typed, Provenance.CLI, f"cli:{path}")

        if issues:
            raise FieldTypeError(issues)
        return PartialConfig(Provenance.CLI, entries)


def _as_mapping(overrides: object) -> Mapping[Any, Any]:
    if overrides is None:
        return {}
    if isinstance(overrides, Mapping):
        return overrides
    if isinstance(overrides, argparse.Namespace):
        return vars(overrides)
    if dataclasses.is_dataclass(overrides) and not isinstance(overrides, type):
        return dataclasses.asdict(overrides)
    raise TypeError(
        "cli overrides must be a mapping, an argparse.Namespace or a dataclass instance, "
        f"got {type(overrides).__name__}"
    )


def _flatten_overrides(
    schema: SchemaRegistry,
    overrides: Mapping[Any, Any],
    prefix: str,
    flat: dict[str, object],
) -> None:
    for key, value in overrides.items():
        path = join_path(prefix, key)
        if isinstance(value, Mapping) and schema.has_field(path) and not schema.is_leaf(path):
            _flatten_overrides(schema, value, path, flat)
        else:
            flat[path] = value


__all__ = [
    "CliSource",
    "ConfigSource",
    "EnvSource",
    "FileSource",
    "parse_text",
]
