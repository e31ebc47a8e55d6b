"""Stable constants shared across the resolution pipeline."""

from __future__ import annotations

from typing import Final

# Candidate suffixes appended to the program path when no config file is given.
# The first existing candidate wins; otherwise the first suffix is used.
DEFAULT_CONFIG_SUFFIXES: Final[tuple[str, ...]] = (
    ".config.yaml",
    ".config.toml",
)

LOCK_FILE_SUFFIX: Final[str] = ".lock"
BACKUP_SUFFIX: Final[str] = "~"

REDACTED_VALUE: Final[str] = "***REDACTED***"
REQUIRED_PLACEHOLDER: Final[str] = "<required>"

PATH_SEPARATOR: Final[str] = "."
LIST_ITEM_SEPARATOR: Final[str] = ","

BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})
NULL_TOKENS: Final[frozenset[str]] = frozenset({"", "null", "none"})

__all__ = [
    "BACKUP_SUFFIX",
    "BOOLEAN_FALSE",
    "BOOLEAN_TRUE",
    "DEFAULT_CONFIG_SUFFIXES",
    "LIST_ITEM_SEPARATOR",
    "LOCK_FILE_SUFFIX",
    "NULL_TOKENS",
    "PATH_SEPARATOR",
    "REDACTED_VALUE",
    "REQUIRED_PLACEHOLDER",
]
