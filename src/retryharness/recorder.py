"""Failure recorder handed to every attempt."""

from __future__ import annotations

import os
import sys
import sysconfig
import traceback
from dataclasses import dataclass, field
from types import TracebackType
from typing import NoReturn

from retryharness.errors import AttemptAborted

_UNKNOWN_FILE = "???"
_HARNESS_DIR = os.path.dirname(os.path.abspath(__file__))
_LIBRARY_PATH_KEYS = ("stdlib", "platstdlib", "purelib", "platlib")


def _library_dirs() -> tuple[str, ...]:
    paths = sysconfig.get_paths()
    dirs: set[str] = set()
    for key in _LIBRARY_PATH_KEYS:
        path = paths.get(key)
        if path:
            dirs.add(os.path.join(os.path.realpath(path), ""))
    return tuple(sorted(dirs))


_LIBRARY_DIRS = _library_dirs()


def _location(stacklevel: int) -> tuple[str, int]:
    try:
        frame = sys._getframe(stacklevel + 1)
    except ValueError:
        return _UNKNOWN_FILE, 1
    return os.path.basename(frame.f_code.co_filename), frame.f_lineno


def decorate(message: str, filename: str, lineno: int) -> str:
    return f"{filename}:{lineno}: {message}"


def _join(args: tuple[object, ...]) -> str:
    return " ".join(str(arg) for arg in args)


def _in_library(filename: str) -> bool:
    return os.path.realpath(filename).startswith(_LIBRARY_DIRS)


def describe_exception(exc: BaseException, tb: TracebackType | None = None) -> str:
    """Render an exception escaping an attempt as an annotated log line.

    The location is the innermost traceback frame in user code: frames in this
    package, the standard library and installed packages are skipped. When
    every frame is library code the innermost one outside this package is used.
    """
    frames = [
        entry
        for entry in traceback.extract_tb(tb if tb is not None else exc.__traceback__)
        if os.path.dirname(os.path.abspath(entry.filename)) != _HARNESS_DIR
    ]
    user_frames = [entry for entry in frames if not _in_library(entry.filename)]
    if user_frames:
        frames = user_frames
    detail = str(exc)
    message = f"{type(exc).__name__}: {detail}" if detail else type(exc).__name__
    if not frames:
        return decorate(message, _UNKNOWN_FILE, 1)
    last = frames[-1]
    return decorate(message, os.path.basename(last.filename), last.lineno or 1)


@dataclass
class FailureRecorder:
    """Collects failures reported by attempt code.

    ``failed`` tells the runner whether the latest attempt failed and is reset
    by the runner between attempts. ``log_lines`` accumulates across all
    attempts of one run and feeds the final failure report.
    """

    failed: bool = False
    log_lines: list[str] = field(default_factory=list)

    def _log(self, message: str, *, stacklevel: int) -> None:
        filename, lineno = _location(stacklevel + 1)
        self.log_lines.append(decorate(message, filename, lineno))

    def record(self, line: str) -> None:
        """Append an already formatted line and mark the attempt failed."""
        self.log_lines.append(line)
        self.failed = True

    def error(self, *args: object) -> None:
        """Record a failure and keep running the attempt."""
        self._log(_join(args), stacklevel=1)
        self.failed = True

    def errorf(self, fmt: str, *args: object) -> None:
        self._log(fmt % args, stacklevel=1)
        self.failed = True

    def fatal(self, *args: object) -> NoReturn:
        """Record a failure and abort the attempt."""
        self._log(_join(args), stacklevel=1)
        self.fail_now()

    def fatalf(self, fmt: str, *args: object) -> NoReturn:
        self._log(fmt % args, stacklevel=1)
        self.fail_now()

    def fail_now(self) -> NoReturn:
        """Mark the attempt failed and unwind its worker thread."""
        self.failed = True
        raise AttemptAborted()
