"""Format codecs and extension-based codec selection."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Final

from layered_config.codecs.base import FormatCodec
from layered_config.codecs.toml_codec import TomlCodec
from layered_config.codecs.yaml_codec import YamlCodec
from layered_config.errors import UnsupportedFormatError

_FACTORIES: Final[dict[str, Callable[[], FormatCodec]]] = {
    "yaml": YamlCodec,
    "toml": TomlCodec,
}
_ALIASES: Final[dict[str, str]] = {"yml": "yaml"}


def supported_extensions() -> tuple[str, ...]:
    return tuple(ext for factory in _FACTORIES.values() for ext in factory().extensions)


def codec_for_format(name: str) -> FormatCodec:
    """Return the codec registered under a format name (``yaml``, ``yml``, ``toml``)."""

    key = name.strip().lower().lstrip(".")
    key = _ALIASES.get(key, key)
    factory = _FACTORIES.get(key)
    if factory is None:
        supported = ", ".join(repr(item) for item in sorted(_FACTORIES))
        raise UnsupportedFormatError(
            f"unsupported config format {name!r}; supported formats are {supported}"
        )
    return factory()


def codec_for_path(path: str | Path) -> FormatCodec:
    """Select a codec from the file extension of ``path``."""

    suffix = Path(path).suffix.lower()
    if not suffix:
        raise UnsupportedFormatError(
            f"config file {str(path)!r} has no extension; cannot select a format"
        )
    for factory in _FACTORIES.values():
        codec = factory()
        if suffix in codec.extensions:
            return codec
    supported = ", ".join(repr(item) for item in supported_extensions())
    raise UnsupportedFormatError(
        f"unsupported config file extension {suffix!r}; supported extensions are {supported}"
    )


def resolve_codec(path: str | Path, codec: FormatCodec | str | None = None) -> FormatCodec:
    """Accept a codec instance, a format name, or ``None`` (select by extension)."""

    if codec is None:
        return codec_for_path(path)
    if isinstance(codec, str):
        return codec_for_format(codec)
    return codec


__all__ = [
    "FormatCodec",
    "TomlCodec",
    "YamlCodec",
    "codec_for_format",
    "codec_for_path",
    "resolve_codec",
    "supported_extensions",
]
