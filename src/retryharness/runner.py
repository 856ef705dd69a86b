"""Run a check repeatedly until it passes or the retry policy gives up.

A typical check looks like this::

    def test_member_joined(agent):
        def attempt(r):
            members = agent.members()
            if len(members) != 2:
                r.fatal("expected 2 members, got", len(members))

        run(PytestHandle(), attempt)

Every attempt runs on its own worker thread so that ``fatal`` only unwinds
that attempt. The runner joins the worker before looking at the recorder.
"""

from __future__ import annotations

import logging as py_logging
import threading
from collections.abc import Callable
from typing import NoReturn

from retryharness.errors import AttemptAborted, RetryExhaustedError
from retryharness.hosts import TestHandle
from retryharness.policy import DeadlinePolicy, RetryPolicy
from retryharness.recorder import FailureRecorder, describe_exception
from retryharness.report import dedup

logger = py_logging.getLogger(__name__)

Attempt = Callable[[FailureRecorder], object]


def run(handle: TestHandle, attempt: Attempt) -> None:
    run_with(DeadlinePolicy.default(), handle, attempt)


def _run_attempt(attempt: Attempt, recorder: FailureRecorder, number: int) -> None:
    error: dict[str, BaseException] = {}

    def _worker() -> None:
        try:
            attempt(recorder)
        except AttemptAborted:
            recorder.failed = True
        except Exception as exc:
            recorder.record(describe_exception(exc))
        except BaseException as exc:
            error["exc"] = exc

    thread = threading.Thread(
        target=_worker,
        name=f"retryharness-attempt-{number}",
        daemon=True,
    )
    logger.debug("Starting attempt %s on %s", number, thread.name)
    thread.start()
    thread.join()

    if error:
        logger.debug("Attempt %s raised %s; not retrying", number, type(error["exc"]).__name__)
        raise error["exc"]


def run_with(policy: RetryPolicy, handle: TestHandle, attempt: Attempt) -> None:
    recorder = FailureRecorder()

    def on_exhausted() -> NoReturn:
        report = dedup(recorder.log_lines)
        logger.warning("Retry policy exhausted with %s distinct failure lines", report.count("\n"))
        if report:
            handle.log(report)
        handle.fail_now()
        raise RetryExhaustedError(
            "Test handle returned from fail_now",
            hint="fail_now must stop the test, for example by raising.",
            report=report,
        )

    number = 0
    while policy.next_or(on_exhausted):
        number += 1
        _run_attempt(attempt, recorder, number)
        if recorder.failed:
            logger.debug("Attempt %s failed; retrying", number)
            recorder.failed = False
            continue
        logger.debug("Attempt %s passed", number)
        return
    raise RetryExhaustedError(
        "Retry policy stopped without calling on_exhausted",
        hint="next_or must call on_exhausted before returning False.",
        report=dedup(recorder.log_lines),
    )
