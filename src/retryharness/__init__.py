"""Retry harness for eventually-consistent test assertions."""

from .errors import (
    AttemptAborted,
    HarnessError,
    InvalidPolicyError,
    PolicyReusedError,
    RetryExhaustedError,
)
from .hosts import PytestHandle, TestHandle, UnitTestHandle
from .policy import CountPolicy, DeadlinePolicy, RetryPolicy, one_sec, three_times
from .recorder import FailureRecorder
from .report import dedup
from .runner import run, run_with

__all__ = [
    "AttemptAborted",
    "CountPolicy",
    "DeadlinePolicy",
    "dedup",
    "FailureRecorder",
    "HarnessError",
    "InvalidPolicyError",
    "one_sec",
    "PolicyReusedError",
    "PytestHandle",
    "RetryExhaustedError",
    "RetryPolicy",
    "run",
    "run_with",
    "TestHandle",
    "three_times",
    "UnitTestHandle",
]
