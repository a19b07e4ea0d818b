"""
Core module initialization.
Exports configuration, clock and error utilities.
"""

from qrmenu.core.config import get_settings, Settings, EnvironmentMode
from qrmenu.core.clock import Clock, SystemClock, ManualClock
from qrmenu.core.exceptions import OrderingError

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "Clock",
    "SystemClock",
    "ManualClock",
    "OrderingError",
]
