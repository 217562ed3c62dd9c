"""Test bootstrap: ensure package root is on sys.path.

This allows absolute imports like `modules.maps.components` and
`tests.helpers.grids` from any working directory.
"""
import os
import sys

import pytest

PACKAGE_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if PACKAGE_ROOT not in sys.path:
    sys.path.insert(0, PACKAGE_ROOT)

from config.config_loader import NavigationSettings  # noqa: E402
from core.event_bus import EventBus  # noqa: E402


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def settings() -> NavigationSettings:
    """Unit-sized tiles so world and cell coordinates line up."""

    return NavigationSettings(tile_size=1.0)
