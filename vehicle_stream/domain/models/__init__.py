from .geo import GeoPoint
from .realtime import FeedSnapshot, VehicleObservation
from .snapshot import PublishedState, RouteSnapshot, VehiclePosition
from .trip import ScheduleArchive, TripMetadata, TripTable

__all__ = [
    "GeoPoint",
    "FeedSnapshot",
    "VehicleObservation",
    "PublishedState",
    "RouteSnapshot",
    "VehiclePosition",
    "ScheduleArchive",
    "TripMetadata",
    "TripTable",
]
