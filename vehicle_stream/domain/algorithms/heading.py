from __future__ import annotations

from dataclasses import replace

from vehicle_stream.domain.algorithms.geo_utils import (
    planar_bearing_deg,
    planar_distance_deg,
)
from vehicle_stream.domain.models import GeoPoint, RouteSnapshot, VehiclePosition

# Below this displacement (degrees) the vehicle is treated as parked.
STATIONARY_THRESHOLD_DEG = 1e-5
# Bearing changes up to this many degrees are ignored.
HEADING_DEAD_ZONE_DEG = 3


def next_heading(previous: VehiclePosition, current: VehiclePosition) -> int:
    """Heading for `current` given the same vehicle's previous fix."""

    old = GeoPoint(lat=previous.lat, lon=previous.lon)
    new = GeoPoint(lat=current.lat, lon=current.lon)

    if planar_distance_deg(old, new) < STATIONARY_THRESHOLD_DEG:
        return previous.heading

    candidate = int(planar_bearing_deg(old, new))
    if abs(candidate - previous.heading) > HEADING_DEAD_ZONE_DEG:
        return candidate
    return previous.heading


def smooth_headings(previous: RouteSnapshot, current: RouteSnapshot) -> RouteSnapshot:
    """Return `current` with headings derived from the matching vehicles in `previous`.

    Vehicles on routes, or with IDs, not present in `previous` keep their
    default heading. Neither argument is modified.
    """

    out: dict[str, tuple[VehiclePosition, ...]] = {}
    for route_id, vehicles in current.items():
        old_vehicles = previous.get(route_id)
        if old_vehicles is None:
            out[route_id] = tuple(vehicles)
            continue

        # First occurrence wins if a route ever lists an ID twice.
        old_by_id: dict[str, VehiclePosition] = {}
        for v in old_vehicles:
            old_by_id.setdefault(v.id, v)

        smoothed: list[VehiclePosition] = []
        for vehicle in vehicles:
            old = old_by_id.get(vehicle.id)
            if old is None:
                smoothed.append(vehicle)
                continue
            smoothed.append(replace(vehicle, heading=next_heading(old, vehicle)))
        out[route_id] = tuple(smoothed)

    return out
