from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping


@dataclass(frozen=True, slots=True)
class VehiclePosition:
    id: str
    lat: float
    lon: float
    headsign: str = ""
    heading: int = 0  # degrees, [0, 360)


# route_id -> vehicles currently on that route
RouteSnapshot = Mapping[str, tuple[VehiclePosition, ...]]


@dataclass(frozen=True, slots=True)
class PublishedState:
    """The snapshot readers see, tagged with the feed timestamp it came from.

    Replaced as a whole on every publish; never mutated.
    """

    timestamp: int = 0
    snapshot: RouteSnapshot = field(default_factory=dict)

    @property
    def vehicle_count(self) -> int:
        return sum(len(v) for v in self.snapshot.values())
