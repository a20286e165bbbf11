from __future__ import annotations

import math

from vehicle_stream.domain.models import GeoPoint


def planar_distance_deg(a: GeoPoint, b: GeoPoint) -> float:
    """Flat-earth distance between two points, in degrees.

    Only meaningful for comparing short hops within a city.
    """

    dx = b.lon - a.lon
    dy = b.lat - a.lat
    return math.sqrt(dx * dx + dy * dy)


def planar_bearing_deg(a: GeoPoint, b: GeoPoint) -> float:
    """Angle of the a -> b displacement in [0, 360).

    Uses atan2(dLat, dLon): 0 points along increasing longitude and 90 along
    increasing latitude. The map client rotates markers with this convention.
    """

    dx = b.lon - a.lon
    dy = b.lat - a.lat

    angle = math.degrees(math.atan2(dy, dx))
    if angle < 0:
        return angle + 360.0
    return angle
