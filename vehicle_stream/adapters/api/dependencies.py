from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from vehicle_stream.adapters.config import RuntimeConfig
from vehicle_stream.adapters.realtime.http_gtfs_realtime_feed_provider import (
    HttpGtfsRealtimeFeedProvider,
)
from vehicle_stream.adapters.schedule.http_gtfs_schedule_archive import (
    HttpGtfsScheduleArchive,
)
from vehicle_stream.app.services.snapshot_store import SnapshotPublisher, SnapshotStore
from vehicle_stream.app.services.trip_metadata_cache import TripMetadataCache
from vehicle_stream.app.services.update_loop_service import UpdateLoopService


@dataclass(frozen=True, slots=True)
class Runtime:
    """The long-lived components shared by the update loop and the API."""

    config: RuntimeConfig
    publisher: SnapshotPublisher
    store: SnapshotStore
    trip_cache: TripMetadataCache
    update_loop: UpdateLoopService


def build_runtime(config: RuntimeConfig) -> Runtime:
    publisher = SnapshotPublisher()
    store = SnapshotStore(publisher=publisher)
    trip_cache = TripMetadataCache(
        source=HttpGtfsScheduleArchive(
            url=config.schedule_url,
            filename=config.schedule_file,
            version_header=config.schedule_version_header,
            timeout_s=config.schedule_timeout_s,
        ),
        version_prefix=config.schedule_version_prefix,
    )
    update_loop = UpdateLoopService(
        feed_provider=HttpGtfsRealtimeFeedProvider(
            url=config.feed_url,
            headers_raw=config.feed_headers,
            timeout_s=config.feed_timeout_s,
        ),
        trip_cache=trip_cache,
        store=store,
        interval_s=config.update_interval_s,
    )
    return Runtime(
        config=config,
        publisher=publisher,
        store=store,
        trip_cache=trip_cache,
        update_loop=update_loop,
    )


def get_runtime(request: Request) -> Runtime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise RuntimeError("Application runtime not initialized")
    return runtime


def get_snapshot_store(request: Request) -> SnapshotStore:
    return get_runtime(request).store


def get_snapshot_publisher(request: Request) -> SnapshotPublisher:
    return get_runtime(request).publisher


def get_trip_cache(request: Request) -> TripMetadataCache:
    return get_runtime(request).trip_cache


def get_stream_poll_interval_s(request: Request) -> float:
    return get_runtime(request).config.stream_poll_interval_s
