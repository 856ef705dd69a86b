"""Retry policies deciding whether another attempt may run."""

from __future__ import annotations

import logging as py_logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from retryharness.errors import InvalidPolicyError, PolicyReusedError

logger = py_logging.getLogger(__name__)

DEFAULT_WAIT_SECONDS = 0.025
DEFAULT_COUNT = 3
DEFAULT_TIMEOUT_SECONDS = 1.0


@runtime_checkable
class RetryPolicy(Protocol):
    def next_or(self, on_exhausted: Callable[[], None]) -> bool:
        """Return True if another attempt should run.

        Otherwise call ``on_exhausted`` and return False.
        """
        ...


def _reject_negative(name: str, value: float) -> None:
    if value < 0:
        raise InvalidPolicyError(
            f"{name} must not be negative, got {value!r}",
            hint=f"Pass {name}=0 to disable it.",
        )


@dataclass
class CountPolicy:
    """Repeat an operation a fixed number of times, waiting in between."""

    count: int = DEFAULT_COUNT
    wait: float = DEFAULT_WAIT_SECONDS
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)
    _taken: int = field(default=0, init=False, repr=False)
    _exhausted: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        _reject_negative("count", self.count)
        _reject_negative("wait", self.wait)

    @classmethod
    def default(cls) -> CountPolicy:
        return cls(count=DEFAULT_COUNT, wait=DEFAULT_WAIT_SECONDS)

    @property
    def attempts_taken(self) -> int:
        return self._taken

    def next_or(self, on_exhausted: Callable[[], None]) -> bool:
        if self._exhausted:
            raise PolicyReusedError(
                "CountPolicy was already exhausted",
                hint="Create a new policy for every run.",
            )
        if self._taken == self.count:
            self._exhausted = True
            logger.debug("Count policy exhausted after %s attempts", self._taken)
            on_exhausted()
            return False
        if self._taken > 0:
            self.sleep(self.wait)
        self._taken += 1
        return True


@dataclass
class DeadlinePolicy:
    """Repeat an operation until a wall-clock budget elapses, waiting in between."""

    timeout: float = DEFAULT_TIMEOUT_SECONDS
    wait: float = DEFAULT_WAIT_SECONDS
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False, compare=False)
    # Set on the first call to next_or.
    _deadline: float | None = field(default=None, init=False, repr=False)
    _exhausted: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        _reject_negative("timeout", self.timeout)
        _reject_negative("wait", self.wait)

    @classmethod
    def default(cls) -> DeadlinePolicy:
        return cls(timeout=DEFAULT_TIMEOUT_SECONDS, wait=DEFAULT_WAIT_SECONDS)

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def next_or(self, on_exhausted: Callable[[], None]) -> bool:
        if self._exhausted:
            raise PolicyReusedError(
                "DeadlinePolicy was already exhausted",
                hint="Create a new policy for every run.",
            )
        if self._deadline is None:
            self._deadline = self.clock() + self.timeout
            return True
        if self.clock() > self._deadline:
            self._exhausted = True
            logger.debug("Deadline policy exhausted after %.3fs", self.timeout)
            on_exhausted()
            return False
        self.sleep(self.wait)
        return True


def one_sec() -> DeadlinePolicy:
    """Repeat for one second and wait 25ms in between."""
    return DeadlinePolicy.default()


def three_times() -> CountPolicy:
    """Repeat three times and wait 25ms in between."""
    return CountPolicy.default()
