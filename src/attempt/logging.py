"""Handler setup for the ``attempt`` logger tree.

Library modules only create ``attempt.*`` loggers; handlers are attached by
the command line entrypoint through :func:`configure_logging`.
"""

from __future__ import annotations

import logging as py_logging
import sys
from pathlib import Path
from typing import TextIO

from attempt.errors import AttemptError, ExitCode

LOG_LEVELS = {
    "DEBUG": py_logging.DEBUG,
    "INFO": py_logging.INFO,
    "WARN": py_logging.WARNING,
    "ERROR": py_logging.ERROR,
}
LOGGER_NAME = "attempt"
_STREAM_FORMAT = "%(levelname)s %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d %(message)s"


def resolve_level(name: str) -> int:
    """Map a level name to its number; ``WARNING`` is accepted for ``WARN``."""
    normalized = name.strip().upper()
    if normalized == "WARNING":
        normalized = "WARN"
    return LOG_LEVELS.get(normalized, py_logging.INFO)


def _open_log_file(log_file: str | Path) -> py_logging.Handler:
    path = Path(log_file).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = py_logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        raise AttemptError(
            f"Cannot write log file {path}: {exc.strerror or exc}",
            code=ExitCode.CONFIG_ERROR,
            hint="Pass a writable --log-file path.",
        ) from exc
    handler.setLevel(py_logging.DEBUG)
    handler.setFormatter(py_logging.Formatter(_FILE_FORMAT))
    return handler


def configure_logging(
    level: str = "WARN",
    stream: TextIO | None = None,
    *,
    log_file: str | Path | None = None,
) -> py_logging.Logger:
    """Send ``attempt`` records at ``level`` to ``stream`` (stderr by default).

    With ``log_file`` every record down to DEBUG is also written there. An
    unusable log file raises AttemptError with ``CONFIG_ERROR`` and leaves
    the current handlers in place.
    """
    threshold = resolve_level(level)
    console = py_logging.StreamHandler(stream or sys.stderr)
    console.setLevel(threshold)
    console.setFormatter(py_logging.Formatter(_STREAM_FORMAT))
    handlers: list[py_logging.Handler] = [console]
    if log_file is not None:
        handlers.append(_open_log_file(log_file))

    logger = py_logging.getLogger(LOGGER_NAME)
    for previous in list(logger.handlers):
        logger.removeHandler(previous)
        previous.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(min(handler.level for handler in handlers))
    logger.propagate = False
    return logger
