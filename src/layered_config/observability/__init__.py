"""Public observability primitives: structured logging setup."""

from layered_config.observability.logging import (
    DEFAULT_LOGGER_NAME,
    JsonLineFormatter,
    LogFormat,
    redact_log_value,
    setup_logging,
)

__all__ = [
    "DEFAULT_LOGGER_NAME",
    "JsonLineFormatter",
    "LogFormat",
    "redact_log_value",
    "setup_logging",
]
