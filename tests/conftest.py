"""Shared fixtures for the fastmirror test suite."""

from __future__ import annotations

import logging
from typing import Iterator

import pytest

from fastmirror.models import SelectionConfig


@pytest.fixture
def fast_config() -> SelectionConfig:
    """Configuration with short timeouts and no inter-probe delay."""
    return SelectionConfig(
        preliminary_timeout_ms=200,
        final_timeout_ms=200,
        tests_per_endpoint=3,
        min_candidates=2,
        max_candidates=3,
        probe_delay_ms=0,
        concurrency=2,
    )


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Undo the CLI's logging setup so caplog sees fastmirror records."""
    yield
    logger = logging.getLogger("fastmirror")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def _no_proxy(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep proxy settings from the environment out of the tests."""
    for var in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(var, raising=False)
