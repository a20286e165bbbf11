from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from vehicle_stream.app.ports.output import IScheduleArchiveSource
from vehicle_stream.domain.exceptions import ArchiveError
from vehicle_stream.domain.models.trip import ScheduleArchive, TripMetadata

logger = logging.getLogger(__name__)

_MISSING = TripMetadata()


@dataclass(slots=True)
class TripMetadataCache:
    """(route_id, trip_id) -> TripMetadata, loaded from the schedule archive.

    The table and its version token live together in one immutable
    ScheduleArchive and are swapped with a single assignment, so `lookup`
    never sees a half-loaded table. Refreshes are serialized by `_lock`.
    """

    source: IScheduleArchiveSource
    version_prefix: str = "attachment; filename="

    _archive: ScheduleArchive = field(
        default_factory=lambda: ScheduleArchive(version=""), init=False
    )
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)
    refresh_count: int = field(default=0, init=False)

    @property
    def version(self) -> str:
        return self._archive.version

    @property
    def trip_count(self) -> int:
        return self._archive.trip_count

    def lookup(self, route_id: str, trip_id: str) -> tuple[TripMetadata, bool]:
        trips = self._archive.trips.get(route_id)
        if trips is not None:
            trip = trips.get(trip_id)
            if trip is not None:
                return trip, True
        return _MISSING, False

    async def is_stale(self) -> bool:
        """True if the published archive differs from the loaded one."""

        try:
            token = await self.source.probe_version()
        except ArchiveError as exc:
            logger.warning("Could not check for trips data: %s", exc)
            return False

        if not token or not token.startswith(self.version_prefix):
            return False
        return token != self._archive.version

    async def refresh(self) -> None:
        """Download the archive and swap it in. Raises ArchiveError on failure."""

        async with self._lock:
            archive = await self.source.download()
            self._archive = archive
            self.refresh_count += 1

        logger.info(
            "Loaded %d trips from schedule archive %s",
            archive.trip_count,
            archive.version or "(unversioned)",
        )
