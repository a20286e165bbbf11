from __future__ import annotations

import asyncio

import pytest

from vehicle_stream.adapters.realtime.http_gtfs_realtime_feed_provider import (
    HttpGtfsRealtimeFeedProvider,
)
from vehicle_stream.adapters.schedule.http_gtfs_schedule_archive import (
    HttpGtfsScheduleArchive,
)
from vehicle_stream.app.services.snapshot_store import SnapshotPublisher, SnapshotStore
from vehicle_stream.app.services.trip_metadata_cache import TripMetadataCache
from vehicle_stream.app.services.update_loop_service import UpdateLoopService


@pytest.mark.integration
def test_live_feed_decodes(require_upstream: None, feed_url: str) -> None:
    feed = asyncio.run(HttpGtfsRealtimeFeedProvider(url=feed_url).fetch())

    assert feed.timestamp > 0
    assert all(o.feed_timestamp == feed.timestamp for o in feed.observations)


@pytest.mark.integration
def test_live_cycle_publishes_enriched_snapshot(
    require_upstream: None, feed_url: str, schedule_url: str
) -> None:
    cache = TripMetadataCache(source=HttpGtfsScheduleArchive(url=schedule_url))
    store = SnapshotStore(publisher=SnapshotPublisher())
    service = UpdateLoopService(
        feed_provider=HttpGtfsRealtimeFeedProvider(url=feed_url),
        trip_cache=cache,
        store=store,
    )

    async def scenario() -> bool:
        await cache.refresh()
        return await service.run_cycle()

    assert asyncio.run(scenario()) is True
    assert cache.trip_count > 0
    assert store.current().timestamp > 0
