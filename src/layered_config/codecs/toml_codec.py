"""TOML codec.

Decoding uses ``tomllib`` (``tomli`` before Python 3.11); values are rendered
with ``tomli_w``. Entries are emitted as dotted keys in document order so each
keeps its doc comment right above it and nested sections never have to be
hoisted into ``[table]`` headers.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Final

import tomli_w

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - Python <3.11 fallback.
    import tomli as tomllib  # type: ignore[no-redef]

from layered_config.codecs.base import comment_lines, header_block, join_path
from layered_config.constants import REQUIRED_PLACEHOLDER
from layered_config.errors import DecodeError, EncodeError
from layered_config.schema import REQUIRED

_BARE_KEY: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_-]+$")
_VALUE_SLOT: Final[str] = "v"


class TomlCodec:
    """Round-trips plain documents through TOML with per-entry doc comments."""

    name = "toml"
    extensions: tuple[str, ...] = (".toml",)

    def encode(
        self,
        document: Mapping[str, Any],
        docs: Mapping[str, str],
        *,
        header: str | None = None,
    ) -> str:
        lines = header_block(header)
        self._emit(document, docs, "", (), lines)
        return "\n".join(lines) + "\n"

    def decode(self, text: str) -> dict[str, Any]:
        try:
            return tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise DecodeError(f"invalid TOML: {exc}") from exc

    def _emit(
        self,
        document: Mapping[str, Any],
        docs: Mapping[str, str],
        prefix: str,
        key_parts: tuple[str, ...],
        lines: list[str],
    ) -> None:
        for key, value in document.items():
            path = join_path(prefix, key)
            parts = (*key_parts, _render_key(str(key)))
            dotted = ".".join(parts)
            lines.extend(comment_lines(docs.get(path)))
            if value is REQUIRED:
                lines.append(f"# {dotted} = {REQUIRED_PLACEHOLDER}")
                continue
            if isinstance(value, Mapping) and value:
                self._emit(value, docs, path, parts, lines)
                continue
            lines.append(f"{dotted} = {_render_value(value, path)}")


def _render_key(key: str) -> str:
    if _BARE_KEY.match(key):
        return key
    rendered = tomli_w.dumps({key: 0})
    return rendered.rsplit(" = ", 1)[0]


def _render_value(value: object, path: str) -> str:
    if value is None:
        raise EncodeError(f"{path}: TOML cannot represent null values")
    if isinstance(value, Mapping) and not value:
        # tomli_w would open an empty [table] here.
        return "{}"
    try:
        rendered = tomli_w.dumps({_VALUE_SLOT: value})
    except (TypeError, ValueError) as exc:
        raise EncodeError(f"{path}: cannot encode value as TOML: {exc}") from exc

    lead = f"{_VALUE_SLOT} = "
    if not rendered.startswith(lead):
        raise EncodeError(f"{path}: value cannot be written as a single TOML entry")
    return rendered[len(lead) :].rstrip("\n")


__all__ = ["TomlCodec"]
