from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from vehicle_stream.app.ports.output import IRealtimeFeedProvider
from vehicle_stream.app.services.snapshot_store import SnapshotStore
from vehicle_stream.app.services.trip_metadata_cache import TripMetadataCache
from vehicle_stream.domain.algorithms.heading import smooth_headings
from vehicle_stream.domain.exceptions import ArchiveError, DecodeError, FetchError
from vehicle_stream.domain.models import (
    PublishedState,
    RouteSnapshot,
    TripMetadata,
    VehicleObservation,
    VehiclePosition,
)

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    IDLE = "idle"
    CYCLING = "cycling"


@dataclass(slots=True)
class _CycleContext:
    # Set once the cache is known to match the published archive in this cycle.
    cache_confirmed_current: bool = False


@dataclass(slots=True)
class UpdateLoopService:
    """Fetch -> enrich -> smooth -> publish, once per tick.

    A failed cycle is logged and leaves the published state alone; the next
    tick simply tries again.
    """

    feed_provider: IRealtimeFeedProvider
    trip_cache: TripMetadataCache
    store: SnapshotStore
    interval_s: float = 2.0

    state: LoopState = field(default=LoopState.IDLE, init=False)

    async def run_forever(self) -> None:
        while True:
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Unexpected error in update cycle")
            await asyncio.sleep(self.interval_s)

    async def run_cycle(self) -> bool:
        """Run one cycle. Returns True if a new state was published."""

        self.state = LoopState.CYCLING
        try:
            return await self._cycle()
        finally:
            self.state = LoopState.IDLE

    async def _cycle(self) -> bool:
        try:
            feed = await self.feed_provider.fetch()
        except (FetchError, DecodeError) as exc:
            logger.warning("Failed to fetch GTFS data: %s", exc)
            return False

        current = self.store.current()
        if feed.timestamp <= current.timestamp:
            logger.debug(
                "Feed timestamp %d not newer than %d, skipping",
                feed.timestamp,
                current.timestamp,
            )
            return False

        try:
            routes = await self._group_by_route(feed.observations)
        except ArchiveError as exc:
            logger.warning("Could not refresh trips data, skipping cycle: %s", exc)
            return False

        smoothed = smooth_headings(current.snapshot, routes)
        published = self.store.publish(
            PublishedState(timestamp=feed.timestamp, snapshot=smoothed)
        )
        if published:
            logger.debug(
                "Published %d vehicles on %d routes at %d",
                len(feed.observations),
                len(smoothed),
                feed.timestamp,
            )
        return published

    async def _group_by_route(
        self, observations: tuple[VehicleObservation, ...]
    ) -> RouteSnapshot:
        ctx = _CycleContext()
        routes: dict[str, list[VehiclePosition]] = {}
        for obs in observations:
            trip = await self._resolve_trip(obs.route_id, obs.trip_id, ctx)
            routes.setdefault(obs.route_id, []).append(
                VehiclePosition(
                    id=obs.vehicle_id,
                    lat=obs.lat,
                    lon=obs.lon,
                    headsign=trip.headsign,
                )
            )
        return {route_id: tuple(vehicles) for route_id, vehicles in routes.items()}

    async def _resolve_trip(
        self, route_id: str, trip_id: str, ctx: _CycleContext
    ) -> TripMetadata:
        trip, found = self.trip_cache.lookup(route_id, trip_id)
        if found:
            return trip

        if ctx.cache_confirmed_current:
            logger.debug(
                "Route %s / trip %s not in trips data (%s)",
                route_id,
                trip_id,
                self.trip_cache.version,
            )
            return trip

        if not await self.trip_cache.is_stale():
            ctx.cache_confirmed_current = True
            logger.debug(
                "Route %s / trip %s not in trips data, but the cache is up to date (%s)",
                route_id,
                trip_id,
                self.trip_cache.version,
            )
            return trip

        logger.info(
            "Refetching trips data because route %s / trip %s is unknown",
            route_id,
            trip_id,
        )
        await self.trip_cache.refresh()
        ctx.cache_confirmed_current = True

        trip, found = self.trip_cache.lookup(route_id, trip_id)
        if not found:
            logger.warning(
                "Route %s / trip %s missing even after refetching trips data",
                route_id,
                trip_id,
            )
        return trip
