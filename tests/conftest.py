from __future__ import annotations

import logging as py_logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from retryharness.logging import LOGGER_NAME


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))
        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)
        elif "property" in path.parts:
            item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def _restore_harness_logger() -> Iterator[None]:
    logger = py_logging.getLogger(LOGGER_NAME)
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
