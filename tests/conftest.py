"""
Pytest fixtures for the revenue split test suite.

Provides:
- Structured logging configured for every test session
- ``captured_logs`` to assert on emitted JSON log records
- A two-record SplitHistory fixture
"""

import json
import logging
from datetime import date
from io import StringIO

import pytest

from revsplit_engines.split_history import SplitHistory
from revsplit_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from tests.builders import make_split


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture revsplit logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            history.resolve("show-1", "vendor-1", date(2024, 1, 1))
            logs = captured_logs()
            assert any(r["message"] == "split_resolved" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("revsplit")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


@pytest.fixture
def history() -> SplitHistory:
    """Two splits for show-1/vendor-1: 30% from 2024-01-01, 40% from 2024-06-01."""
    return SplitHistory([
        make_split(1, date(2024, 1, 1), ads="0.30", programmatic="0.50"),
        make_split(2, date(2024, 6, 1), ads="0.40", programmatic="0.60"),
    ])
