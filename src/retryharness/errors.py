"""Error model for the retry harness."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class HarnessError(Exception):
    message: str
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


class InvalidPolicyError(HarnessError):
    """Policy constructed with a negative count or duration."""


class PolicyReusedError(HarnessError):
    """Exhausted policy asked for another attempt."""


@dataclass
class RetryExhaustedError(HarnessError):
    report: str = ""


class AttemptAborted(BaseException):
    """Unwinds the current attempt's worker thread.

    Derives from BaseException so that ``except Exception`` blocks inside
    attempt code do not swallow the abort.
    """
