"""Format codec capability shared by every serialization format."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from layered_config.constants import PATH_SEPARATOR


@runtime_checkable
class FormatCodec(Protocol):
    """Encode a documented document to text and decode text back to a document.

    ``decode(encode(document, docs))`` must equal ``document`` for every
    fully-populated document the format can represent.
    """

    name: str
    extensions: tuple[str, ...]

    def encode(
        self,
        document: Mapping[str, Any],
        docs: Mapping[str, str],
        *,
        header: str | None = None,
    ) -> str: ...

    def decode(self, text: str) -> dict[str, Any]: ...


def join_path(prefix: str, key: object) -> str:
    return f"{prefix}{PATH_SEPARATOR}{key}" if prefix else str(key)


def comment_lines(text: str | None, indent: str = "") -> list[str]:
    """Render ``text`` as ``# ``-prefixed comment lines."""

    if not text:
        return []
    lines: list[str] = []
    for line in text.strip("\n").splitlines():
        stripped = line.rstrip()
        lines.append(f"{indent}# {stripped}" if stripped else f"{indent}#")
    return lines


def header_block(header: str | None) -> list[str]:
    lines = comment_lines(header)
    if lines:
        lines.append("")
    return lines


__all__ = ["FormatCodec", "comment_lines", "header_block", "join_path"]
