"""Adapters between the runner and host test frameworks."""

from __future__ import annotations

import logging as py_logging
import unittest
from typing import NoReturn, Protocol

import pytest

logger = py_logging.getLogger(__name__)

EXHAUSTED_MESSAGE = "retry policy exhausted"


class TestHandle(Protocol):
    """What the runner needs from the enclosing test."""

    def log(self, text: str) -> None: ...

    def fail_now(self) -> NoReturn: ...


def _failure_message(logs: list[str]) -> str:
    body = "\n".join(text.rstrip("\n") for text in logs)
    if body:
        return f"{EXHAUSTED_MESSAGE}:\n{body}"
    return EXHAUSTED_MESSAGE


class PytestHandle:
    def __init__(self) -> None:
        self.logs: list[str] = []

    def log(self, text: str) -> None:
        self.logs.append(text)
        logger.warning("Retry report:\n%s", text.rstrip("\n"))

    def fail_now(self) -> NoReturn:
        pytest.fail(_failure_message(self.logs), pytrace=False)


class UnitTestHandle:
    def __init__(self, case: unittest.TestCase) -> None:
        self.case = case
        self.logs: list[str] = []

    def log(self, text: str) -> None:
        self.logs.append(text)
        logger.warning("Retry report for %s:\n%s", self.case.id(), text.rstrip("\n"))

    def fail_now(self) -> NoReturn:
        self.case.fail(_failure_message(self.logs))
        raise AssertionError("unreachable")  # pragma: no cover
