"""Process boundary for ``python -m layered_config`` and the console script."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING, Final

from layered_config.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    """Exit statuses reported by the command-line tool."""

    SUCCESS = 0
    CONFIG_ERROR = 2
    INTERNAL_ERROR = 4


# Errors a user can fix by editing a file, an env var or a flag.
_USER_ERROR_TYPES: Final[tuple[type[BaseException], ...]] = (
    ConfigError,
    FileNotFoundError,
    NotADirectoryError,
    IsADirectoryError,
    PermissionError,
)


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and translate every outcome into an ``ExitCode`` value."""

    try:
        from layered_config.cli import run_cli

        status: object = run_cli(argv)
    except SystemExit as exc:
        status = exc.code
    except BaseException as exc:  # noqa: BLE001 - process boundary.
        code = _classify_failure(exc)
        _report_failure(exc, code)
        return int(code)
    return _coerce_status(status)


def _coerce_status(status: object) -> int:
    if status is None:
        return int(ExitCode.SUCCESS)
    if isinstance(status, int) and status in {code.value for code in ExitCode}:
        return status
    if isinstance(status, str) and status.strip():
        _print_error(status.strip())
    return int(ExitCode.INTERNAL_ERROR)


def _classify_failure(exc: BaseException) -> ExitCode:
    if any(isinstance(item, _USER_ERROR_TYPES) for item in _walk_causes(exc)):
        return ExitCode.CONFIG_ERROR
    return ExitCode.INTERNAL_ERROR


def _walk_causes(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` and its explicit or implicit causes, stopping on cycles."""

    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif current.__suppress_context__:
            current = None
        else:
            current = current.__context__


def _report_failure(exc: BaseException, code: ExitCode) -> None:
    if code is ExitCode.CONFIG_ERROR:
        _print_error(f"error: {str(exc).strip() or type(exc).__name__}")
        return
    traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)


def _print_error(message: str) -> None:
    print(message.rstrip("\n"), file=sys.stderr)


__all__ = ["ExitCode", "cli_entrypoint"]
