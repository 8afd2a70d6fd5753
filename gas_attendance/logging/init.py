from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Console logging for the CLI.

All output is written by the ``gas_attendance`` logger as ``LABEL message``
lines, where LABEL is DEBUG|INFO|WARN|ERROR|SUMMARY. Loggers created with
``logging.getLogger(__name__)`` inside the package propagate into it.

Remote connection errors carry multi-line messages (hint, URL, reason); the
continuation lines are indented so each record still starts with its label.
"""

__all__ = [
    "LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "log_summary",
    "set_debug",
    "reset_logging",
]

LOGGER_NAME = "gas_attendance"

# between INFO (20) and WARNING (30)
SUMMARY_LEVEL = 25

_LABELS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    SUMMARY_LEVEL: "SUMMARY",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "FATAL",
}

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    indent = "  "

    def format(self, record: logging.LogRecord) -> str:
        label = _LABELS.get(record.levelno, record.levelname)
        first, *rest = record.getMessage().splitlines() or [""]
        lines = [f"{label} {first}"] + [self.indent + line for line in rest]
        return "\n".join(lines)


def setup_logging(stream: TextIO | None = None) -> logging.Logger:
    """Attach the labeled stdout handler to the package logger; later calls are no-ops."""
    global _logger
    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    logger = logging.getLogger(LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)

    console = logging.StreamHandler(stream or sys.stdout)
    console.setFormatter(LabeledFormatter())
    logger.addHandler(console)
    logger.propagate = False

    _logger = logger
    _apply_level(logger, logging.INFO)
    return logger


def _apply_level(logger: logging.Logger, level: int) -> None:
    logger.setLevel(level)
    for h in logger.handlers:
        h.setLevel(level)


def get_logger() -> logging.Logger:
    return _logger or setup_logging()


def set_debug(enabled: bool = True) -> None:
    _apply_level(get_logger(), logging.DEBUG if enabled else logging.INFO)


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Detach handlers and forget the configured logger (used between tests)."""
    global _logger
    if _logger is not None:
        for h in list(_logger.handlers):
            _logger.removeHandler(h)
    _logger = None
