from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class VehicleObservation:
    """One decoded vehicle position from a realtime feed fetch."""

    vehicle_id: str
    route_id: str
    trip_id: str
    lat: float
    lon: float
    feed_timestamp: int
    timestamp: int | None = None  # per-vehicle fix time, if the feed carries one


@dataclass(frozen=True, slots=True)
class FeedSnapshot:
    timestamp: int
    observations: tuple[VehicleObservation, ...] = ()
