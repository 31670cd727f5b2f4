"""Logging utilities for docsite commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Set

_LOGGER_NAME = "docsite"
_REDACTED = "***"
_SECRETS: Set[str] = set()


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the docsite hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def register_secret(value: str | None) -> None:
    """Mask ``value`` in every record emitted through docsite handlers."""
    if value:
        _SECRETS.add(value)


def redact(text: str) -> str:
    """Return ``text`` with all registered secrets replaced."""
    for secret in _SECRETS:
        text = text.replace(secret, _REDACTED)
    return text


class RedactingFilter(logging.Filter):
    """Rewrites log records so publish tokens never reach a sink."""

    def filter(self, record: logging.LogRecord) -> bool:
        if _SECRETS:
            record.msg = redact(record.getMessage())
            record.args = None
        return True


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the docsite logger with console output and an optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Drop handlers left over from an earlier invocation in the same process.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    redactor = RedactingFilter()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[docsite] %(levelname)s %(message)s"))
    stream_handler.addFilter(redactor)
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        file_handler.addFilter(redactor)
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "get_logger", "redact", "register_secret"]
