"""JSON-lines logging for configuration events.

Every library module logs through ``logging.getLogger(__name__)`` under the
``layered_config`` namespace with a snake_case event name as the message and
context in ``extra``. Nothing is configured on import; ``setup_logging`` is
opt-in for applications and the command-line tool.
"""

from __future__ import annotations

import json
import logging
import math
import sys
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import PurePath
from typing import IO, Final, Literal

from layered_config.constants import REDACTED_VALUE

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogFormat = Literal["json", "text"]

DEFAULT_LOGGER_NAME: Final[str] = "layered_config"
_TEXT_FORMAT: Final[str] = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Substrings marking an extra-field key whose value must never reach a log sink.
_SECRET_KEY_MARKERS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "passphrase",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "private_key",
    "encryption_key",
    "fernet",
)

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    vars(logging.makeLogRecord({}))
) | {"message", "asctime", "taskName"}


class JsonLineFormatter(logging.Formatter):
    """Render each record as one compact JSON object with sorted keys."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        event: dict[str, JSONValue] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extras = {
            key: _to_json(value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        }
        if extras:
            event["fields"] = redact_log_value(extras)
        if record.exc_info:
            event["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            event["stack"] = self.formatStack(record.stack_info)
        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def setup_logging(
    level: int | str = "WARNING",
    *,
    fmt: LogFormat = "json",
    stream: IO[str] | None = None,
    logger_name: str = DEFAULT_LOGGER_NAME,
) -> logging.Logger:
    """Route ``logger_name`` records to ``stream`` (stderr by default).

    Calling it again replaces the previous handler rather than adding another.
    """

    numeric_level = _level_number(level)
    if fmt == "json":
        formatter: logging.Formatter = JsonLineFormatter()
    elif fmt == "text":
        formatter = logging.Formatter(_TEXT_FORMAT)
    else:
        raise ValueError(f"unsupported log format {fmt!r}")

    handler = logging.StreamHandler(sys.stderr if stream is None else stream)
    handler.setLevel(numeric_level)
    handler.setFormatter(formatter)

    logger = logging.getLogger(logger_name)
    for previous in logger.handlers[:]:
        logger.removeHandler(previous)
        previous.close()
    logger.addHandler(handler)
    logger.setLevel(numeric_level)
    logger.propagate = False
    return logger


def redact_log_value(value: JSONValue, *, key_context: str | None = None) -> JSONValue:
    """Replace values held under secret-looking keys with the redaction marker."""

    if key_context is not None and any(
        marker in key_context.lower() for marker in _SECRET_KEY_MARKERS
    ):
        return REDACTED_VALUE
    if isinstance(value, dict):
        return {key: redact_log_value(item, key_context=key) for key, item in value.items()}
    if isinstance(value, list):
        return [redact_log_value(item) for item in value]
    return value


def _level_number(level: int | str) -> int:
    if isinstance(level, int):
        return level
    number = logging.getLevelName(level.strip().upper())
    if isinstance(number, int):
        return number
    raise ValueError(f"unknown log level {level!r}")


def _to_json(value: object) -> JSONValue:
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if value is None or isinstance(value, (str, int, float)):
        return value
    if isinstance(value, PurePath):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(key): _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_to_json(item) for item in value), key=json.dumps)
    return repr(value)


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "JSONValue",
    "JsonLineFormatter",
    "LogFormat",
    "redact_log_value",
    "setup_logging",
]
