from __future__ import annotations

import inspect
import json
import threading

import pytest

import retryharness.runner as runner_module
from retryharness.errors import RetryExhaustedError
from retryharness.policy import CountPolicy, DeadlinePolicy
from retryharness.recorder import FailureRecorder
from retryharness.runner import run, run_with


class _TestStopped(Exception):
    pass


class FakeHandle:
    def __init__(self) -> None:
        self.logs: list[str] = []
        self.fail_calls = 0

    def log(self, text: str) -> None:
        self.logs.append(text)

    def fail_now(self) -> None:
        self.fail_calls += 1
        raise _TestStopped()


class ReturningHandle(FakeHandle):
    def fail_now(self) -> None:
        self.fail_calls += 1


def _next_line() -> int:
    frame = inspect.currentframe()
    assert frame is not None and frame.f_back is not None
    return frame.f_back.f_lineno + 1


def test_run_with_stops_after_first_passing_attempt() -> None:
    handle = FakeHandle()
    calls = {"count": 0}

    def attempt(r: FailureRecorder) -> None:
        calls["count"] += 1
        if calls["count"] == 1:
            r.error("retry me")

    run_with(CountPolicy(count=3, wait=0), handle, attempt)

    assert calls["count"] == 2
    assert handle.logs == []
    assert handle.fail_calls == 0


def test_run_with_untouched_recorder_is_success() -> None:
    handle = FakeHandle()
    calls = {"count": 0}

    def attempt(r: FailureRecorder) -> None:
        calls["count"] += 1

    run_with(CountPolicy(count=3, wait=0), handle, attempt)

    assert calls["count"] == 1


def test_run_with_reports_deduplicated_log_once_on_exhaustion() -> None:
    handle = FakeHandle()
    calls = {"count": 0}
    where: dict[str, int] = {}

    def attempt(r: FailureRecorder) -> None:
        calls["count"] += 1
        where["line"] = _next_line()
        r.error("x")

    with pytest.raises(_TestStopped):
        run_with(CountPolicy(count=3, wait=0), handle, attempt)

    assert calls["count"] == 3
    assert handle.fail_calls == 1
    assert handle.logs == [f"test_runner.py:{where['line']}: x\n"]


def test_run_with_skips_log_when_nothing_was_recorded() -> None:
    handle = FakeHandle()

    with pytest.raises(_TestStopped):
        run_with(CountPolicy(count=2, wait=0), handle, lambda r: r.fail_now())

    assert handle.logs == []
    assert handle.fail_calls == 1


def test_run_with_applies_delay_between_attempts_only() -> None:
    sleeps: list[float] = []

    with pytest.raises(_TestStopped):
        run_with(
            CountPolicy(count=4, wait=0.5, sleep=sleeps.append),
            FakeHandle(),
            lambda r: r.error("nope"),
        )

    assert sleeps == [0.5, 0.5, 0.5]


def test_fatal_aborts_only_the_attempt_worker() -> None:
    handle = FakeHandle()
    calls = {"count": 0, "after_fatal": 0}
    thread_ids: list[int] = []

    def attempt(r: FailureRecorder) -> None:
        thread_ids.append(threading.get_ident())
        calls["count"] += 1
        if calls["count"] == 1:
            r.fatal("first attempt aborts")
            calls["after_fatal"] += 1

    run_with(CountPolicy(count=3, wait=0), handle, attempt)

    assert calls["count"] == 2
    assert calls["after_fatal"] == 0
    assert threading.get_ident() not in thread_ids
    assert handle.fail_calls == 0


def test_soft_failure_lets_attempt_continue() -> None:
    finished: list[int] = []

    def attempt(r: FailureRecorder) -> None:
        r.error("soft")
        finished.append(1)

    with pytest.raises(_TestStopped):
        run_with(CountPolicy(count=2, wait=0), FakeHandle(), attempt)

    assert finished == [1, 1]


def test_failed_flag_is_reset_before_each_retry() -> None:
    seen: list[bool] = []

    def attempt(r: FailureRecorder) -> None:
        seen.append(r.failed)
        r.error("again")

    with pytest.raises(_TestStopped):
        run_with(CountPolicy(count=3, wait=0), FakeHandle(), attempt)

    assert seen == [False, False, False]


def test_each_attempt_runs_on_a_fresh_worker_thread() -> None:
    names: list[str] = []

    def attempt(r: FailureRecorder) -> None:
        names.append(threading.current_thread().name)
        if len(names) < 3:
            r.error("not yet")

    run_with(CountPolicy(count=3, wait=0), FakeHandle(), attempt)

    assert len(set(names)) == 3
    assert all(name.startswith("retryharness-attempt-") for name in names)


def test_unexpected_exception_counts_as_failed_attempt() -> None:
    handle = FakeHandle()
    calls = {"count": 0}

    def attempt(r: FailureRecorder) -> None:
        calls["count"] += 1
        assert calls["count"] > 5, "cluster not converged"

    with pytest.raises(_TestStopped):
        run_with(CountPolicy(count=2, wait=0), handle, attempt)

    assert calls["count"] == 2
    assert len(handle.logs) == 1
    assert "AssertionError: cluster not converged" in handle.logs[0]
    assert handle.logs[0].startswith("test_runner.py:")


def test_keyboard_interrupt_propagates_without_retry() -> None:
    calls = {"count": 0}

    def attempt(r: FailureRecorder) -> None:
        calls["count"] += 1
        raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        run_with(CountPolicy(count=3, wait=0), FakeHandle(), attempt)

    assert calls["count"] == 1


def test_handle_returning_from_fail_now_raises_exhausted_error() -> None:
    handle = ReturningHandle()

    with pytest.raises(RetryExhaustedError) as info:
        run_with(CountPolicy(count=1, wait=0), handle, lambda r: r.error("still down"))

    assert handle.fail_calls == 1
    assert "still down" in info.value.report
    assert "fail_now" in str(info.value)


def test_policy_refusing_without_callback_raises_exhausted_error() -> None:
    class SilentPolicy:
        def next_or(self, on_exhausted) -> bool:
            return False

    with pytest.raises(RetryExhaustedError):
        run_with(SilentPolicy(), FakeHandle(), lambda r: None)


def test_deadline_policy_end_to_end_with_fake_clock() -> None:
    now = {"t": 0.0}

    def sleep(seconds: float) -> None:
        now["t"] += seconds

    policy = DeadlinePolicy(timeout=1.0, wait=0.25, sleep=sleep, clock=lambda: now["t"])
    calls = {"count": 0}

    def attempt(r: FailureRecorder) -> None:
        calls["count"] += 1
        r.error("pending")

    with pytest.raises(_TestStopped):
        run_with(policy, FakeHandle(), attempt)

    assert calls["count"] == 6


def test_run_uses_default_deadline_policy(monkeypatch) -> None:
    created: list[CountPolicy] = []

    class StubDeadlinePolicy:
        @staticmethod
        def default() -> CountPolicy:
            policy = CountPolicy(count=1, wait=0)
            created.append(policy)
            return policy

    monkeypatch.setattr(runner_module, "DeadlinePolicy", StubDeadlinePolicy)

    with pytest.raises(_TestStopped):
        run(FakeHandle(), lambda r: r.error("down"))

    assert len(created) == 1
    assert created[0].attempts_taken == 1


def test_run_passes_with_real_default_policy() -> None:
    calls = {"count": 0}

    def attempt(r: FailureRecorder) -> None:
        calls["count"] += 1
        if calls["count"] < 2:
            r.error("warming up")

    run(FakeHandle(), attempt)

    assert calls["count"] == 2


def test_library_exception_is_reported_at_attempt_call_site() -> None:
    handle = FakeHandle()
    where: dict[str, int] = {}

    def attempt(r: FailureRecorder) -> None:
        where["line"] = _next_line()
        json.loads("not json")

    with pytest.raises(_TestStopped):
        run_with(CountPolicy(count=1, wait=0), handle, attempt)

    assert handle.logs == [
        f"test_runner.py:{where['line']}: JSONDecodeError: "
        "Expecting value: line 1 column 1 (char 0)\n"
    ]
