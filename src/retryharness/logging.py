"""Harness logging helpers."""

from __future__ import annotations

import logging as py_logging
from pathlib import Path
from typing import TextIO

LOGGER_NAME = "retryharness"
LOG_LEVELS = {
    "DEBUG": py_logging.DEBUG,
    "INFO": py_logging.INFO,
    "WARN": py_logging.WARNING,
    "WARNING": py_logging.WARNING,
    "ERROR": py_logging.ERROR,
}
_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d %(threadName)s %(message)s"


def resolve_level(level: str) -> int:
    return LOG_LEVELS.get(level.strip().upper(), py_logging.INFO)


def _file_handler(log_file: str | Path) -> py_logging.Handler | None:
    log_path = Path(log_file).expanduser()
    if not log_path.is_absolute():
        log_path = log_path.resolve()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return py_logging.FileHandler(log_path, encoding="utf-8")
    except OSError:
        return None


def configure_logging(
    level: str = "INFO",
    stream: TextIO | None = None,
    *,
    log_file: str | Path | None = None,
    propagate: bool = False,
) -> py_logging.Logger:
    """Set up the ``retryharness`` logger, replacing handlers from earlier calls.

    Pass ``propagate=True`` under pytest so attempt records reach ``caplog``
    and the captured-log report section. A stream handler is only attached
    when ``stream`` is given or records do not propagate; otherwise they would
    be printed twice.
    """
    resolved = resolve_level(level)
    logger = py_logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolved)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    formatter = py_logging.Formatter(_FORMAT)

    if stream is not None or not propagate:
        stream_handler = py_logging.StreamHandler(stream)
        stream_handler.setLevel(resolved)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    if log_file:
        file_handler = _file_handler(log_file)
        if file_handler is not None:
            file_handler.setLevel(py_logging.DEBUG)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    logger.propagate = propagate
    return logger
