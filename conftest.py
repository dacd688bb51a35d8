"""
Root pytest configuration.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from typing import Any

import pytest


def get_test_timeout(base: float, max_multiplier: float = 5.0) -> float:
    """Apply CI timeout multiplier to a base timeout value.

    Environment:
        CI_TIMEOUT_MULTIPLIER: Multiplier for CI environments (default: 1.0)
    """
    raw = os.getenv("CI_TIMEOUT_MULTIPLIER", "1.0")
    try:
        multiplier = float(raw) if raw else 1.0
        multiplier = min(multiplier, max_multiplier)
    except ValueError:
        multiplier = 1.0
    return base * multiplier


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "critical: Tests that must never fail - core functionality",
    )
    config.addinivalue_line(
        "markers",
        "standard: Default risk category for typical unit tests",
    )
    config.addinivalue_line(
        "markers",
        "slow: Tests that take >1 second",
    )
    config.addinivalue_line(
        "markers",
        "property: Property-based tests (may be slow)",
    )


@pytest.fixture(autouse=True)
def reset_diagnostics_writer() -> Generator[None, None, None]:
    """Restore the module-level diagnostics writer around each test."""
    import streamsink.core.diagnostics as diag

    diag._reset_for_tests()
    yield
    diag._reset_for_tests()


@pytest.fixture
def captured_diagnostics() -> list[dict[str, Any]]:
    """Collect diagnostics payloads written by loggers without a writer."""
    import streamsink.core.diagnostics as diag

    captured: list[dict[str, Any]] = []
    diag.set_writer_for_tests(captured.append)
    return captured


@pytest.fixture
def scaled_timeout() -> Callable[[float], float]:
    """Scale a wait in seconds by ``CI_TIMEOUT_MULTIPLIER``."""
    return get_test_timeout
