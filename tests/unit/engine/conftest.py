"""Shared fixtures for engine tests."""

from datetime import date

import pytest


@pytest.fixture
def today():
    return date(2025, 3, 20)
