"""Unit-test fixtures."""

import pytest

from tests.unit.fakes import Market


@pytest.fixture
def market() -> Market:
    """Fresh in-memory market: every service wired to one fake store."""
    return Market()
