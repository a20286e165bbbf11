from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping


@dataclass(frozen=True, slots=True)
class TripMetadata:
    headsign: str = ""
    direction: str = ""  # GTFS direction_id, kept verbatim


# route_id -> trip_id -> metadata
TripTable = Mapping[str, Mapping[str, TripMetadata]]


@dataclass(frozen=True, slots=True)
class ScheduleArchive:
    """Trip metadata parsed from one download of the static schedule."""

    version: str
    trips: TripTable = field(default_factory=dict)

    @property
    def trip_count(self) -> int:
        return sum(len(t) for t in self.trips.values())
