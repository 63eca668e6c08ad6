"""Shared pytest configuration for the chansync test suite."""

from collections.abc import Iterator
import logging

import pytest

from chansync.logging_config import APP_LOGGER_NAME, setup_logging


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add a command-line option to run integration tests."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Set up logging for the test session."""
    setup_logging("human", "INFO", False)


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Skip integration tests unless --integration is given."""
    if config.getoption("--integration"):
        return
    skip_integration = pytest.mark.skip(reason="need --integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture
def app_caplog(caplog: pytest.LogCaptureFixture) -> Iterator[pytest.LogCaptureFixture]:
    """Capture records from the chansync logger, which does not propagate."""
    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.addHandler(caplog.handler)
    try:
        yield caplog
    finally:
        app_logger.removeHandler(caplog.handler)
