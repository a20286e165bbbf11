from __future__ import annotations

from pydantic import BaseModel, RootModel

from vehicle_stream.domain.models.snapshot import RouteSnapshot


class VehicleSchema(BaseModel):
    id: str
    lat: float
    lon: float
    headsign: str
    direction: int


class RouteSnapshotSchema(RootModel[dict[str, list[VehicleSchema]]]):
    """Route ID -> vehicles, the payload of every stream event."""


class VehiclesResponseSchema(BaseModel):
    timestamp: int
    vehicles: dict[str, list[VehicleSchema]]


class HealthSchema(BaseModel):
    status: str
    timestamp: int
    subscribers: int
    schedule_version: str | None = None


def snapshot_to_schema(
    snapshot: RouteSnapshot, *, route_ids: set[str] | None = None
) -> dict[str, list[VehicleSchema]]:
    return {
        route_id: [
            VehicleSchema(
                id=v.id,
                lat=v.lat,
                lon=v.lon,
                headsign=v.headsign,
                direction=v.heading,
            )
            for v in vehicles
        ]
        for route_id, vehicles in snapshot.items()
        if not route_ids or route_id in route_ids
    }
