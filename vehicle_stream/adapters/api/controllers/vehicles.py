from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from vehicle_stream.adapters.api.dependencies import (
    get_snapshot_publisher,
    get_snapshot_store,
    get_stream_poll_interval_s,
)
from vehicle_stream.adapters.api.schemas.vehicles import (
    RouteSnapshotSchema,
    VehiclesResponseSchema,
    snapshot_to_schema,
)
from vehicle_stream.app.services.snapshot_store import (
    SnapshotPublisher,
    SnapshotStore,
    stream_states,
)
from vehicle_stream.domain.models.snapshot import PublishedState

router = APIRouter(tags=["vehicles"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
}


def encode_event(state: PublishedState) -> str:
    payload = RouteSnapshotSchema(snapshot_to_schema(state.snapshot))
    return f"data: {payload.model_dump_json()}\n\n"


@router.get("/vehicles", response_model=VehiclesResponseSchema)
def list_vehicles(
    route_id: list[str] | None = Query(default=None),
    store: SnapshotStore = Depends(get_snapshot_store),
) -> VehiclesResponseSchema:
    state = store.current()
    route_ids = set(route_id) if route_id else None
    return VehiclesResponseSchema(
        timestamp=state.timestamp,
        vehicles=snapshot_to_schema(state.snapshot, route_ids=route_ids),
    )


@router.get("/events")
async def stream_events(
    request: Request,
    store: SnapshotStore = Depends(get_snapshot_store),
    publisher: SnapshotPublisher = Depends(get_snapshot_publisher),
    poll_interval_s: float = Depends(get_stream_poll_interval_s),
) -> StreamingResponse:
    async def gen():
        async for state in stream_states(
            store, publisher, request.is_disconnected, poll_interval_s
        ):
            yield encode_event(state)

    return StreamingResponse(
        gen(), media_type="text/event-stream", headers=SSE_HEADERS
    )
