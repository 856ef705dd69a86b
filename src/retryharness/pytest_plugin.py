"""pytest fixtures for retrying eventually-consistent checks."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Callable

import pytest

from retryharness.config import HarnessConfig, build_policy, load_config
from retryharness.hosts import PytestHandle
from retryharness.logging import configure_logging
from retryharness.policy import RetryPolicy
from retryharness.runner import Attempt, run_with

Eventually = Callable[..., None]


def configure_harness_logging(config: HarnessConfig) -> py_logging.Logger:
    """Route harness records into pytest's log capture at the configured level."""
    return configure_logging(
        config.log_level,
        log_file=config.log_file or None,
        propagate=True,
    )


@pytest.fixture(scope="session")
def retry_config() -> HarnessConfig:
    config = load_config()
    configure_harness_logging(config)
    return config


@pytest.fixture
def eventually(retry_config: HarnessConfig) -> Eventually:
    """Run ``attempt`` until it passes, failing the test once retries run out."""

    def _eventually(attempt: Attempt, policy: RetryPolicy | None = None) -> None:
        run_with(policy or build_policy(retry_config), PytestHandle(), attempt)

    return _eventually
