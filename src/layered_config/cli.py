"""Command-line interface router for layered-config."""

from __future__ import annotations

import argparse
import importlib
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from layered_config.encryption import EncryptionAdapter, FernetEncryption
from layered_config.errors import ConfigError
from layered_config.loader import dump_effective_config, load
from layered_config.materializer import ensure_current
from layered_config.observability.logging import setup_logging
from layered_config.schema import SchemaRegistry, describe
from layered_config.sources import parse_text
from layered_config.utils.fs import backup_path
from layered_config.values import EffectiveConfig

DEFAULT_LOG_LEVEL: Final[str] = "WARNING"
FORMAT_CHOICES: Final[tuple[str, ...]] = ("yaml", "toml")


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 2

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for every supported command."""

    parser = argparse.ArgumentParser(
        prog="layered-config",
        description=(
            "layered-config — resolve, document and migrate layered configuration files.\n\n"
            "Common workflows:\n"
            "  layered-config init --schema app.settings:Settings --config app.yaml\n"
            "  layered-config show --schema app.settings:Settings --config app.yaml\n"
            "  layered-config check --schema app.settings:Settings --config app.toml\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--schema",
        required=True,
        help="Schema to resolve, as module:attribute (a SchemaRegistry or a dataclass type).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        required=True,
        help="Configuration file path (.yaml, .yml or .toml).",
    )
    common.add_argument(
        "--format",
        choices=FORMAT_CHOICES,
        default=None,
        help="File format (default: chosen from the file extension).",
    )
    common.add_argument(
        "--key-env",
        default=None,
        metavar="VAR",
        help="Environment variable holding a Fernet key; enables file encryption.",
    )
    common.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="PATH=VALUE",
        help="Override a CLI-overridable field (repeatable).",
    )
    common.add_argument(
        "--log-level",
        default=DEFAULT_LOG_LEVEL,
        help=f"Log level for JSON logs on stderr (default: {DEFAULT_LOG_LEVEL}).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # init ----------------------------------------------------------------
    init_parser = subparsers.add_parser(
        "init",
        parents=[common],
        help="Create or migrate the configuration file",
        description=(
            "Create the configuration file with documented defaults, or append fields\n"
            "the schema gained since the file was written.\n\n"
            "Examples:\n"
            "  layered-config init --schema app.settings:Settings --config app.yaml\n"
            "  layered-config init --schema app.settings:Settings --config app.yaml --prune\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    init_parser.add_argument(
        "--prune",
        action="store_true",
        default=False,
        help="Remove entries the schema does not know",
    )
    init_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    init_parser.set_defaults(handler=_cmd_init)

    # show ----------------------------------------------------------------
    show_parser = subparsers.add_parser(
        "show",
        parents=[common],
        help="Print the effective configuration (sensitive values masked)",
    )
    show_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    show_parser.add_argument(
        "--provenance",
        action="store_true",
        help="Include where each value came from",
    )
    show_parser.set_defaults(handler=_cmd_show)

    # check ---------------------------------------------------------------
    check_parser = subparsers.add_parser(
        "check",
        parents=[common],
        help="Resolve and validate; exit 2 on any configuration error",
    )
    check_parser.set_defaults(handler=_cmd_check)

    # write-effective -----------------------------------------------------
    write_parser = subparsers.add_parser(
        "write-effective",
        parents=[common],
        help="Rewrite the file with the effective configuration, keeping a <file>~ backup",
    )
    write_parser.set_defaults(handler=_cmd_write_effective)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    setup_logging(namespace.log_level)
    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_init(args: argparse.Namespace) -> int:
    schema = _load_schema(args.schema)
    path = _config_path(args)
    try:
        state = ensure_current(
            schema,
            path,
            args.format,
            _encryption(args),
            prune=bool(args.prune),
        )
    except ConfigError as exc:
        raise CLIError(str(exc)) from exc

    payload: dict[str, object] = {
        "command": "init",
        "path": str(state.path),
        "status": state.status.value,
        "added": list(state.added),
        "foreign": list(state.foreign),
        "pruned": list(state.pruned),
    }
    if args.json:
        _emit_json(payload)
        return 0

    print(f"{state.path}: {state.status.value}")
    sections = (("added", state.added), ("foreign", state.foreign), ("pruned", state.pruned))
    for label, items in sections:
        if items:
            print(f"  {label}: {', '.join(items)}")
    return 0


def _cmd_show(args: argparse.Namespace) -> int:
    effective = _load_effective_config(args)
    if args.json and not args.provenance:
        print(dump_effective_config(effective))
        return 0

    payload: dict[str, object] = {"config": effective.redacted()}
    if args.provenance:
        payload["provenance"] = {
            path: {"source": effective.provenance(path).value, "origin": effective.origin(path)}
            for path in effective
        }
    if args.json:
        _emit_json(payload)
    else:
        print(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


def _cmd_check(args: argparse.Namespace) -> int:
    effective = _load_effective_config(args)
    print(f"ok: {len(effective)} fields resolved from {_config_path(args)}")
    return 0


def _cmd_write_effective(args: argparse.Namespace) -> int:
    path = _config_path(args)
    _load_effective_config(args, write_effective=True)
    print(f"wrote {path} (previous file kept as {backup_path(path)})")
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _load_schema(spec: str) -> SchemaRegistry:
    module_name, sep, attribute = spec.partition(":")
    if not sep or not module_name or not attribute:
        raise CLIError(f"--schema must look like module:attribute, got {spec!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise CLIError(f"cannot import schema module {module_name!r}: {exc}") from exc

    target: object = module
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise CLIError(f"{module_name!r} has no attribute {attribute!r}") from exc

    if isinstance(target, SchemaRegistry):
        return target
    if isinstance(target, type):
        try:
            return describe(target)
        except ConfigError as exc:
            raise CLIError(str(exc)) from exc
    raise CLIError(f"{spec} is neither a SchemaRegistry nor a dataclass type")


def _config_path(args: argparse.Namespace) -> Path:
    raw = getattr(args, "config_path", None)
    if not isinstance(raw, str) or not raw.strip():
        raise CLIError("--config must name a configuration file")
    return Path(raw.strip()).expanduser()


def _encryption(args: argparse.Namespace) -> EncryptionAdapter | None:
    variable = getattr(args, "key_env", None)
    if not variable:
        return None
    try:
        return FernetEncryption.from_env(variable)
    except ConfigError as exc:
        raise CLIError(str(exc)) from exc


def _cli_overrides(schema: SchemaRegistry, items: Sequence[str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for item in items:
        path, sep, text = item.partition("=")
        path = path.strip()
        if not sep or not path:
            raise CLIError(f"--set expects PATH=VALUE, got {item!r}")
        if not schema.is_leaf(path):
            raise CLIError(f"--set {path}: unknown configuration field")
        try:
            overrides[path] = parse_text(schema.field(path), text)
        except ValueError as exc:
            raise CLIError(f"--set {path}: {exc}") from exc
    return overrides


def _load_effective_config(
    args: argparse.Namespace, *, write_effective: bool = False
) -> EffectiveConfig:
    schema = _load_schema(args.schema)
    path = _config_path(args)
    try:
        return load(
            schema,
            path,
            args.format,
            encryption=_encryption(args),
            cli_overrides=_cli_overrides(schema, args.overrides),
            write_effective=write_effective,
        )
    except ConfigError as exc:
        raise CLIError(str(exc)) from exc


__all__ = [
    "CLIError",
    "build_parser",
    "run_cli",
]
