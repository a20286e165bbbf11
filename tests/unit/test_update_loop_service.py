from __future__ import annotations

import asyncio
from dataclasses import dataclass

import pytest

from vehicle_stream.app.services.snapshot_store import SnapshotPublisher, SnapshotStore
from vehicle_stream.app.services.trip_metadata_cache import TripMetadataCache
from vehicle_stream.app.services.update_loop_service import LoopState, UpdateLoopService
from vehicle_stream.domain.exceptions import ArchiveError, DecodeError, FetchError
from vehicle_stream.domain.models import (
    FeedSnapshot,
    PublishedState,
    ScheduleArchive,
    TripMetadata,
    VehicleObservation,
)

V1 = "attachment; filename=zet-gtfs-scheduled-000-00368.zip"
V2 = "attachment; filename=zet-gtfs-scheduled-000-00369.zip"

TRIPS_V1 = {"6": {"T1": TripMetadata("Sopot", "0")}}


@dataclass(slots=True)
class FakeFeedProvider:
    """Returns queued results in order, repeating the last one."""

    results: list[FeedSnapshot | Exception]
    calls: int = 0

    async def fetch(self) -> FeedSnapshot:
        i = min(self.calls, len(self.results) - 1)
        self.calls += 1
        result = self.results[i]
        if isinstance(result, Exception):
            raise result
        return result


@dataclass(slots=True)
class FakeArchiveSource:
    archive: ScheduleArchive
    fail_download: bool = False
    probe_calls: int = 0
    download_calls: int = 0

    async def probe_version(self) -> str | None:
        self.probe_calls += 1
        return self.archive.version

    async def download(self) -> ScheduleArchive:
        self.download_calls += 1
        if self.fail_download:
            raise ArchiveError("archive unreachable")
        return self.archive


@dataclass(slots=True)
class Harness:
    provider: FakeFeedProvider
    source: FakeArchiveSource
    cache: TripMetadataCache
    store: SnapshotStore
    service: UpdateLoopService


def _obs(
    vehicle_id: str,
    route_id: str,
    trip_id: str,
    lat: float,
    lon: float,
    ts: int,
) -> VehicleObservation:
    return VehicleObservation(
        vehicle_id=vehicle_id,
        route_id=route_id,
        trip_id=trip_id,
        lat=lat,
        lon=lon,
        feed_timestamp=ts,
    )


def _feed(ts: int, *obs: tuple[str, str, str, float, float]) -> FeedSnapshot:
    return FeedSnapshot(timestamp=ts, observations=tuple(_obs(*o, ts) for o in obs))


def _harness(
    results: list[FeedSnapshot | Exception],
    trips=TRIPS_V1,
    version: str = V1,
    preload: bool = True,
) -> Harness:
    provider = FakeFeedProvider(results=results)
    source = FakeArchiveSource(ScheduleArchive(version=version, trips=trips))
    cache = TripMetadataCache(source=source)
    if preload:
        asyncio.run(cache.refresh())
    store = SnapshotStore(publisher=SnapshotPublisher())
    service = UpdateLoopService(
        feed_provider=provider, trip_cache=cache, store=store, interval_s=0.0
    )
    return Harness(provider, source, cache, store, service)


def test_cycle_enriches_groups_and_publishes() -> None:
    h = _harness(
        [
            _feed(
                100,
                ("101", "6", "T1", 45.8, 15.98),
                ("102", "6", "T1", 45.81, 15.97),
                ("201", "14", "T1", 45.79, 15.95),
            )
        ],
        trips={
            "6": {"T1": TripMetadata("Sopot", "0")},
            "14": {"T1": TripMetadata("Zapruđe", "1")},
        },
    )

    assert asyncio.run(h.service.run_cycle()) is True

    state = h.store.current()
    assert state.timestamp == 100
    assert sorted(state.snapshot) == ["14", "6"]
    assert [v.id for v in state.snapshot["6"]] == ["101", "102"]
    assert state.snapshot["6"][0].headsign == "Sopot"
    assert state.snapshot["14"][0].headsign == "Zapruđe"
    assert all(v.heading == 0 for vs in state.snapshot.values() for v in vs)
    assert h.service.state is LoopState.IDLE


@pytest.mark.parametrize(
    "error", [FetchError("connection refused"), DecodeError("truncated")]
)
def test_fetch_failure_leaves_state_untouched(error: Exception) -> None:
    h = _harness([_feed(100, ("101", "6", "T1", 45.8, 15.98)), error])
    asyncio.run(h.service.run_cycle())
    before = h.store.current()

    assert asyncio.run(h.service.run_cycle()) is False
    assert h.store.current() is before
    assert h.service.state is LoopState.IDLE


def test_feed_with_same_timestamp_is_discarded() -> None:
    h = _harness(
        [
            _feed(100, ("101", "6", "T1", 45.8, 15.98)),
            _feed(100, ("999", "6", "T1", 40.0, 10.0)),
        ]
    )
    asyncio.run(h.service.run_cycle())
    before = h.store.current()

    assert asyncio.run(h.service.run_cycle()) is False
    assert h.store.current() is before
    assert [v.id for v in h.store.current().snapshot["6"]] == ["101"]


def test_published_timestamp_only_advances_on_newer_feed() -> None:
    h = _harness(
        [
            _feed(100, ("101", "6", "T1", 45.8, 15.98)),
            _feed(100, ("101", "6", "T1", 45.8, 15.98)),
            _feed(90, ("101", "6", "T1", 45.8, 15.98)),
            _feed(150, ("101", "6", "T1", 45.8, 15.98)),
            _feed(150, ("101", "6", "T1", 45.8, 15.98)),
        ]
    )

    seen: list[int] = []
    for _ in range(5):
        asyncio.run(h.service.run_cycle())
        seen.append(h.store.current().timestamp)

    assert seen == [100, 100, 100, 150, 150]


def test_heading_is_smoothed_against_previous_state() -> None:
    h = _harness(
        [
            _feed(100, ("101", "6", "T1", 45.800, 15.98)),
            _feed(102, ("101", "6", "T1", 45.801, 15.98)),
            _feed(104, ("101", "6", "T1", 45.801, 15.98)),
        ]
    )

    asyncio.run(h.service.run_cycle())
    assert h.store.current().snapshot["6"][0].heading == 0

    asyncio.run(h.service.run_cycle())
    assert h.store.current().snapshot["6"][0].heading == 90

    # Parked: heading carries over.
    asyncio.run(h.service.run_cycle())
    assert h.store.current().snapshot["6"][0].heading == 90


def test_unknown_trip_with_stale_archive_refreshes_once() -> None:
    h = _harness(
        [
            _feed(100, ("101", "6", "T9", 45.8, 15.98)),
            _feed(102, ("101", "6", "T9", 45.8, 15.98)),
        ]
    )
    assert h.source.download_calls == 1

    # A new archive is published that still lacks T9.
    h.source.archive = ScheduleArchive(version=V2, trips=TRIPS_V1)

    assert asyncio.run(h.service.run_cycle()) is True
    assert h.source.download_calls == 2
    assert h.cache.version == V2
    assert h.store.current().snapshot["6"][0].headsign == ""

    # The cache now matches the archive, so the same miss does not refresh.
    assert asyncio.run(h.service.run_cycle()) is True
    assert h.source.download_calls == 2
    assert h.store.current().timestamp == 102


def test_refresh_resolves_newly_scheduled_trip() -> None:
    h = _harness([_feed(100, ("101", "6", "T9", 45.8, 15.98))])
    h.source.archive = ScheduleArchive(
        version=V2, trips={"6": {"T9": TripMetadata("Dubec", "1")}}
    )

    asyncio.run(h.service.run_cycle())

    assert h.store.current().snapshot["6"][0].headsign == "Dubec"


def test_unknown_trip_with_current_archive_does_not_refresh() -> None:
    h = _harness([_feed(100, ("101", "6", "T9", 45.8, 15.98))])

    assert asyncio.run(h.service.run_cycle()) is True
    assert h.source.download_calls == 1
    assert h.store.current().snapshot["6"][0].headsign == ""


def test_many_misses_in_one_cycle_probe_once() -> None:
    h = _harness(
        [
            _feed(
                100,
                ("101", "6", "T7", 45.8, 15.98),
                ("102", "6", "T8", 45.8, 15.97),
                ("103", "6", "T9", 45.8, 15.96),
            )
        ]
    )

    asyncio.run(h.service.run_cycle())

    assert h.source.probe_calls == 1
    assert len(h.store.current().snapshot["6"]) == 3


def test_archive_failure_during_refresh_abandons_cycle() -> None:
    h = _harness([_feed(100, ("101", "6", "T9", 45.8, 15.98))], preload=False)
    h.source.fail_download = True

    assert asyncio.run(h.service.run_cycle()) is False
    assert h.store.current() == PublishedState()
    assert h.service.state is LoopState.IDLE


def test_run_forever_survives_unexpected_errors() -> None:
    h = _harness(
        [
            RuntimeError("boom"),
            _feed(100, ("101", "6", "T1", 45.8, 15.98)),
        ]
    )

    async def scenario() -> None:
        task = asyncio.create_task(h.service.run_forever())
        for _ in range(100):
            await asyncio.sleep(0)
            if h.store.current().timestamp:
                break
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    assert h.provider.calls >= 2
    assert h.store.current().timestamp == 100
