"""
Shared test fixtures for Tradewise test suite.
"""

import os
from datetime import datetime, timezone

import pytest

from tradewise.config.settings import get_settings


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Isolate every test from TRADEWISE_* variables and cached settings."""
    for key in list(os.environ):
        if key.startswith("TRADEWISE_"):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now():
    """Fixed reference time for decay and calendar windows."""
    return datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
