"""
Google Maps link parsing.

Shop owners register their location by pasting a Google Maps link; this
pulls the coordinates out of the common URL shapes.
"""

import logging
import re
from typing import Optional
from urllib.parse import unquote

from qrmenu.services.geo.base import Coordinate, validate_coordinates

logger = logging.getLogger(__name__)

_NUMBER = r"([-+]?\d*\.?\d+)"

MAPS_URL_PATTERNS = [
    re.compile(rf"@{_NUMBER},\s*{_NUMBER}"),             # @lat,lng
    re.compile(rf"[?&]q={_NUMBER},\s*{_NUMBER}"),        # ?q=lat,lng
    re.compile(rf"[?&]query={_NUMBER},\s*{_NUMBER}"),    # ?query=lat,lng
]

SHORT_LINK = re.compile(r"maps\.app\.goo\.gl")


def extract_coordinates_from_maps_url(url: str) -> Optional[Coordinate]:
    """
    Extract a coordinate from a Google Maps URL.

    Supports full URLs with @lat,lng, ?q=lat,lng and ?query=lat,lng.
    Shortened maps.app.goo.gl links need a redirect to resolve and
    return None, as do URLs without a recognizable or valid position.
    """
    if SHORT_LINK.search(url):
        logger.warning("Short Google Maps URL cannot be parsed without resolving it")
        return None

    decoded = unquote(url.strip())

    for pattern in MAPS_URL_PATTERNS:
        match = pattern.search(decoded)
        if not match:
            continue
        latitude, longitude = float(match.group(1)), float(match.group(2))
        if validate_coordinates(latitude, longitude):
            return Coordinate(latitude, longitude)

    return None
