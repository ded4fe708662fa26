"""Session-wide test configuration."""

import pytest

from gcp_utils.logging import configure_logging


@pytest.fixture(autouse=True, scope="session")
def silence_logging():
    """Suppress log output for the whole test session."""
    configure_logging()
    yield
