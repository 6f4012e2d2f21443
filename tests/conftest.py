"""
Pytest configuration and shared fixtures.
"""

import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fincalc.config import get_settings


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings so environment overrides apply per test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def conventional_cash_flows():
    """Single outlay followed by inflows (one sign change)."""
    return [-1000, 300, 400, 500, 200]
