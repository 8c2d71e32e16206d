"""Console progress reporting on top of the ``logging`` module."""

from __future__ import annotations

import logging
import sys
from typing import TextIO


LOGGER_NAME = "pilet_upgrade"

# CLI verbosity 1..5 -> logging level
_LOG_LEVELS: dict[int, int] = {
    1: logging.ERROR,
    2: logging.WARNING,
    3: logging.INFO,
    4: logging.DEBUG,
    5: logging.DEBUG,
}


def logging_level_for(log_level: int) -> int:
    clamped = min(max(int(log_level), 1), 5)
    return _LOG_LEVELS[clamped]


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self.max_level


class ConsoleReporter:
    """Progress and results to stdout, warnings and failures to stderr."""

    def __init__(self, log_level: int = 3, *, stdout: TextIO | None = None, stderr: TextIO | None = None):
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(logging_level_for(log_level))
        self.logger.propagate = False
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)

        out = logging.StreamHandler(stdout or sys.stdout)
        out.addFilter(_MaxLevelFilter(logging.INFO))
        out.setFormatter(logging.Formatter("%(message)s"))
        err = logging.StreamHandler(stderr or sys.stderr)
        err.setLevel(logging.WARNING)
        err.setFormatter(logging.Formatter("%(message)s"))
        self.logger.addHandler(out)
        self.logger.addHandler(err)

    def progress(self, message: str) -> None:
        self.logger.info(message)

    def debug(self, message: str) -> None:
        self.logger.debug(message)

    def warn(self, message: str) -> None:
        self.logger.warning("warning: %s", message)

    def done(self, message: str) -> None:
        self.logger.info("✅ %s", message)

    def fail(self, reason_code: str, message: str) -> None:
        self.logger.error("[%s] %s", reason_code, message)
