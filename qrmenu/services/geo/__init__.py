"""
Geo Services

Coordinate types, the haversine geofence with its browse and order
checkpoints, the device location provider interface, and Google Maps
link parsing.

Usage:
    from qrmenu.services.geo import get_browse_geofence, Coordinate

    geofence = get_browse_geofence()
    geofence.validate(
        diner=Coordinate(12.9716, 77.6046),
        shop=Coordinate(12.9716, 77.5946),
    )

Author: Khalil Bannouri
Version: 1.0.0
"""

from qrmenu.services.geo.base import (
    BaseLocationProvider,
    Coordinate,
    GeofenceResult,
    validate_coordinates,
)
from qrmenu.services.geo.geofence import (
    EARTH_RADIUS_METERS,
    GeofenceValidator,
    get_browse_geofence,
    get_order_geofence,
    haversine_distance,
    reset_geofences,
)
from qrmenu.services.geo.maps_url import extract_coordinates_from_maps_url
from qrmenu.services.geo.mock import MockLocationProvider

# Export commonly used types and functions
__all__ = [
    "BaseLocationProvider",
    "Coordinate",
    "GeofenceResult",
    "validate_coordinates",
    "EARTH_RADIUS_METERS",
    "GeofenceValidator",
    "get_browse_geofence",
    "get_order_geofence",
    "haversine_distance",
    "reset_geofences",
    "extract_coordinates_from_maps_url",
    "MockLocationProvider",
]
