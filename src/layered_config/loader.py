"""
layered-config — public entry point.

File: src/layered_config/loader.py

Purpose
- Resolve the effective configuration from defaults, the configuration file,
  environment variables and command-line overrides.

What should be included in this file
- ``load()`` orchestrating materialize -> collect -> resolve -> validate.
- Default config-file path selection from the program name.
- Deterministic redacted dump and the "show effective configuration" action.

Functional requirements
- Precedence: CLI > env > file > defaults, per leaf.
- Fail fast with typed errors; never return a partially-resolved configuration.

Non-functional requirements
- Keep loading deterministic and reproducible.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import IO, Final

from layered_config.codecs import FormatCodec, resolve_codec
from layered_config.constants import DEFAULT_CONFIG_SUFFIXES
from layered_config.encryption import EncryptionAdapter
from layered_config.errors import ConfigIoError
from layered_config.materializer import ensure_current, write_effective_config
from layered_config.resolver import resolve
from layered_config.schema import SchemaRegistry, describe
from layered_config.sources import CliSource, EnvSource, FileSource
from layered_config.validation import CrossFieldValidator, validate
from layered_config.values import EffectiveConfig, PartialConfig

logger = logging.getLogger(__name__)

EFFECTIVE_CONFIG_BANNER: Final[str] = "EFFECTIVE CONFIGURATION:"


def load(
    schema: SchemaRegistry | type,
    path: str | Path | None = None,
    format: FormatCodec | str | None = None,
    *,
    encryption: EncryptionAdapter | None = None,
    cli_overrides: object = None,
    validator: CrossFieldValidator | None = None,
    environ: Mapping[str, str] | None = None,
    create_missing: bool = True,
    prune: bool = False,
    show_effective: bool = False,
    write_effective: bool = False,
    program_name: str | None = None,
    header: str | None = None,
) -> EffectiveConfig:
    """Load the effective configuration with precedence CLI > env > file > defaults.

    ``schema`` is a ``SchemaRegistry`` or a dataclass type described with
    ``setting()``. Without ``path`` the file is chosen by ``default_config_path``.
    With ``create_missing`` the file is created or migrated before reading.
    """

    registry = schema if isinstance(schema, SchemaRegistry) else describe(schema)
    target = (
        Path(path).expanduser() if path is not None else default_config_path(program_name)
    )
    codec = resolve_codec(target, format)

    if create_missing:
        state = ensure_current(
            registry, target, codec, encryption, prune=prune, header=header
        )
        file_source = FileSource.from_file_state(state)
    else:
        file_source = FileSource(target, codec, encryption)

    partials: list[PartialConfig] = [
        file_source.collect(registry),
        EnvSource(environ).collect(registry),
    ]
    if cli_overrides is not None:
        partials.append(CliSource(cli_overrides).collect(registry))

    effective = validate(registry, resolve(registry, partials), validator)
    logger.info(
        "config_loaded",
        extra={"path": str(target), "format": codec.name, "fields": len(effective)},
    )

    if show_effective:
        show_effective_config(effective)
    if write_effective:
        write_effective_config(registry, target, effective, codec, encryption)
    return effective


def default_config_path(
    program_name: str | None = None,
    suffixes: Sequence[str] = DEFAULT_CONFIG_SUFFIXES,
) -> Path:
    """Return ``<program><suffix>`` for the first existing candidate, else the first suffix."""

    program = program_name if program_name is not None else (sys.argv[0] if sys.argv else "")
    if not program or program in {"-c", "-m"}:
        raise ConfigIoError(
            "program name is unavailable; pass an explicit configuration file path"
        )
    if not suffixes:
        raise ValueError("at least one configuration file suffix is required")

    candidates = [Path(f"{program}{suffix}").expanduser() for suffix in suffixes]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]


def dump_effective_config(effective: EffectiveConfig, *, redact: bool = True) -> str:
    """Return deterministic JSON dump of the (redacted) effective config."""

    payload = effective.redacted() if redact else effective.as_dict()
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def show_effective_config(effective: EffectiveConfig, stream: IO[str] | None = None) -> None:
    """Print the redacted effective configuration under a banner (stderr by default)."""

    target = stream if stream is not None else sys.stderr
    rendered = json.dumps(effective.redacted(), indent=2, sort_keys=True, ensure_ascii=False)
    target.write(f"{EFFECTIVE_CONFIG_BANNER} {rendered}\n\n")
    target.flush()


__all__ = [
    "EFFECTIVE_CONFIG_BANNER",
    "default_config_path",
    "dump_effective_config",
    "load",
    "show_effective_config",
]
