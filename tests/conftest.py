"""Pytest fixtures shared across the test suite."""

import pytest

from tests.helpers import NOW


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def config_file(tmp_path):
    """Path to a config file inside the test's temp directory."""
    return tmp_path / "config.json"
