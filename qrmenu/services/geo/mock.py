"""
Mock Location Provider

Stands in for the device geolocation capability without real hardware.
Used by the load simulation script and by tests.

Behavior:
    - Reports a configured position, optionally jittered by a few meters
    - Can simulate a denied permission or a device without geolocation
    - Simulates acquisition latency (0 by default)

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import math
import random
import logging
from typing import Optional

from qrmenu.core.exceptions import LocationFailure, LocationUnavailable
from qrmenu.services.geo.base import BaseLocationProvider, Coordinate

logger = logging.getLogger(__name__)

METERS_PER_DEGREE_LAT = 111_320.0


class MockLocationProvider(BaseLocationProvider):
    """
    Mock implementation of the device location capability.

    Attributes:
        coordinate: Position reported to callers (None behaves as unavailable)
        failure: Forced failure reason, if any
        jitter_meters: Random offset applied to each reading
        min_latency: Minimum acquisition time in seconds
        max_latency: Maximum acquisition time in seconds

    Example:
        >>> provider = MockLocationProvider(Coordinate(12.9716, 77.5946))
        >>> await provider.get_current_coordinates()
        Coordinate(latitude=12.9716, longitude=77.5946)
        >>> provider.deny()
        >>> await provider.get_current_coordinates()
        Traceback (most recent call last):
        LocationUnavailable: Location access is required to view the menu...
    """

    def __init__(
        self,
        coordinate: Optional[Coordinate] = None,
        failure: Optional[LocationFailure] = None,
        jitter_meters: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
    ):
        self.coordinate = coordinate
        self.failure = failure
        self.jitter_meters = jitter_meters
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.calls = 0

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    def move_to(self, coordinate: Coordinate) -> None:
        """Report a new position and clear any forced failure."""
        self.coordinate = coordinate
        self.failure = None

    def deny(self) -> None:
        """Simulate the diner refusing location permission."""
        self.failure = LocationFailure.PERMISSION_DENIED

    def disable(self) -> None:
        """Simulate a device without geolocation support."""
        self.failure = LocationFailure.UNAVAILABLE

    async def _simulate_latency(self) -> None:
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    def _jitter(self, coordinate: Coordinate) -> Coordinate:
        if self.jitter_meters <= 0:
            return coordinate
        d_lat = random.uniform(-self.jitter_meters, self.jitter_meters) / METERS_PER_DEGREE_LAT
        lon_scale = METERS_PER_DEGREE_LAT * max(math.cos(math.radians(coordinate.latitude)), 1e-6)
        d_lon = random.uniform(-self.jitter_meters, self.jitter_meters) / lon_scale
        return Coordinate(
            latitude=max(-90.0, min(90.0, coordinate.latitude + d_lat)),
            longitude=max(-180.0, min(180.0, coordinate.longitude + d_lon)),
        )

    async def get_current_coordinates(self) -> Coordinate:
        """Return the configured position or raise the configured failure."""
        self.calls += 1
        await self._simulate_latency()

        if self.failure is not None:
            logger.debug(f"Mock: Location failure - {self.failure.value}")
            raise LocationUnavailable(self.failure)

        if self.coordinate is None:
            raise LocationUnavailable(LocationFailure.UNAVAILABLE)

        return self._jitter(self.coordinate)
