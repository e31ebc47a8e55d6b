"""YAML codec: PyYAML for values, one documented entry at a time."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final

import yaml

from layered_config.codecs.base import comment_lines, header_block, join_path
from layered_config.constants import REQUIRED_PLACEHOLDER
from layered_config.errors import DecodeError, EncodeError
from layered_config.schema import REQUIRED

_INDENT: Final[str] = "  "


class YamlCodec:
    """Round-trips plain documents through YAML with per-entry doc comments."""

    name = "yaml"
    extensions: tuple[str, ...] = (".yaml", ".yml")

    def encode(
        self,
        document: Mapping[str, Any],
        docs: Mapping[str, str],
        *,
        header: str | None = None,
    ) -> str:
        lines = header_block(header)
        self._emit(document, docs, "", "", lines)
        return "\n".join(lines) + "\n"

    def decode(self, text: str) -> dict[str, Any]:
        try:
            parsed = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise DecodeError(f"invalid YAML: {exc}") from exc
        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise DecodeError(f"config root must be a mapping, got {type(parsed).__name__}")
        return parsed

    def _emit(
        self,
        document: Mapping[str, Any],
        docs: Mapping[str, str],
        prefix: str,
        indent: str,
        lines: list[str],
    ) -> None:
        for key, value in document.items():
            path = join_path(prefix, key)
            lines.extend(comment_lines(docs.get(path), indent))
            if value is REQUIRED:
                lines.append(f"{indent}# {key}: {REQUIRED_PLACEHOLDER}")
                continue
            if isinstance(value, Mapping) and value:
                if _only_placeholders(value):
                    # `key:` over comment lines alone would decode as null.
                    lines.append(indent + self._dump({key: {}}, path).rstrip("\n"))
                    self._emit_placeholders(value, docs, path, indent + _INDENT, lines)
                    continue
                section = self._dump({key: {}}, path)
                lines.append(indent + section.rstrip("\n").removesuffix(" {}"))
                self._emit(value, docs, path, indent + _INDENT, lines)
                continue
            for line in self._dump({key: value}, path).rstrip("\n").splitlines():
                lines.append(indent + line)

    def _emit_placeholders(
        self,
        document: Mapping[str, Any],
        docs: Mapping[str, str],
        prefix: str,
        indent: str,
        lines: list[str],
    ) -> None:
        for key, value in document.items():
            path = join_path(prefix, key)
            lines.extend(comment_lines(docs.get(path), indent))
            if value is REQUIRED:
                lines.append(f"{indent}# {key}: {REQUIRED_PLACEHOLDER}")
            else:
                lines.append(f"{indent}# {key}:")
                self._emit_placeholders(value, docs, path, indent + _INDENT, lines)

    @staticmethod
    def _dump(payload: Mapping[Any, Any], path: str) -> str:
        try:
            return yaml.safe_dump(
                dict(payload),
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )
        except yaml.YAMLError as exc:
            raise EncodeError(f"{path}: cannot encode value as YAML: {exc}") from exc


def _only_placeholders(section: Mapping[str, Any]) -> bool:
    """True for a non-empty section whose leaves are all required placeholders."""

    return bool(section) and all(
        value is REQUIRED or (isinstance(value, Mapping) and _only_placeholders(value))
        for value in section.values()
    )


__all__ = ["YamlCodec"]
