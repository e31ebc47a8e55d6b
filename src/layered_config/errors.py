"""
layered-config — public error types.

File: src/layered_config/errors.py

Purpose
- Define the typed failures surfaced by every stage of the resolution pipeline.

Functional requirements
- Every error derives from ``ConfigError`` so callers can catch the whole family.
- Aggregating errors (missing fields, validation, env parsing, file typing) carry
  every problem found in one pass as structured, ordered payloads.

Non-functional requirements
- Messages are deterministic and never contain sensitive values.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class FieldIssue:
    """Single structured problem attached to a dotted field path."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class EnvFailure:
    """Environment variable whose raw text could not be parsed."""

    env_key: str
    raw_value: str
    path: str
    message: str


class ConfigError(ValueError):
    """Base class for every configuration resolution failure."""


class SchemaDefinitionError(ConfigError):
    """Raised when a schema registry cannot be constructed."""


class ConfigIoError(ConfigError):
    """Raised when the configuration file cannot be read or written."""

    def __init__(self, message: str, *, path: Path | str | None = None) -> None:
        self.path = None if path is None else Path(path)
        super().__init__(message)


class UnsupportedFormatError(ConfigError):
    """Raised when no codec is registered for a file extension or format name."""


class DecodeError(ConfigError):
    """Raised when persisted content is malformed for its format or schema."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | str | None = None,
        issues: Sequence[FieldIssue] = (),
    ) -> None:
        self.path = None if path is None else Path(path)
        self.issues = tuple(issues)
        rendered = message
        if self.issues:
            rendered += "\n" + _render_issues(self.issues)
        super().__init__(rendered)


class EncodeError(ConfigError):
    """Raised when a codec cannot represent a value in its format."""


class EncryptionError(ConfigError):
    """Raised on key or authentication failure in the encryption layer."""


class EnvParseError(ConfigError):
    """Raised when environment variables hold values of the wrong type."""

    def __init__(self, failures: Sequence[EnvFailure]) -> None:
        self.failures = tuple(failures)
        lines = [
            f"- {item.env_key}={item.raw_value!r} -> {item.path}: {item.message}"
            for item in self.failures
        ]
        super().__init__("invalid environment overrides:\n" + "\n".join(lines))


class FieldTypeError(ConfigError):
    """Raised when a typed value does not match its field descriptor."""

    def __init__(self, issues: Sequence[FieldIssue]) -> None:
        self.issues = tuple(issues)
        super().__init__("mistyped configuration values:\n" + _render_issues(self.issues))


class MissingRequiredFieldError(ConfigError):
    """Raised when required fields are unresolved by every source."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = tuple(missing)
        super().__init__("missing required configuration fields: " + ", ".join(self.missing))


class ConfigValidationError(ConfigError):
    """Raised when the resolved configuration violates structural or cross-field rules."""

    def __init__(self, issues: Sequence[FieldIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = _render_issues(self.issues)
        super().__init__(f"invalid config:\n{rendered}")


def _render_issues(issues: Sequence[FieldIssue]) -> str:
    return "\n".join(f"- {item.path}: {item.message}" for item in issues)


__all__ = [
    "ConfigError",
    "ConfigIoError",
    "ConfigValidationError",
    "DecodeError",
    "EncodeError",
    "EncryptionError",
    "EnvFailure",
    "EnvParseError",
    "FieldIssue",
    "FieldTypeError",
    "MissingRequiredFieldError",
    "SchemaDefinitionError",
    "UnsupportedFormatError",
]
