"""
Pytest configuration and shared fixtures.
"""

import pytest
import sys
import os
from zoneinfo import ZoneInfo

# Add project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from outage_calendar.core.models import AddressConfig


@pytest.fixture
def tz():
    """Source timezone."""
    return ZoneInfo("Europe/Kyiv")


@pytest.fixture
def address():
    """Sample monitored address."""
    return AddressConfig(
        id="gora",
        city="с. Гора",
        street="вул. Мостова",
        house="21",
        group="GPV5.1",
    )
