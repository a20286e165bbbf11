from __future__ import annotations

from abc import ABC, abstractmethod

from vehicle_stream.domain.models.trip import ScheduleArchive


class IScheduleArchiveSource(ABC):
    """Port for the versioned static schedule archive."""

    @abstractmethod
    async def probe_version(self) -> str | None:
        """Return the archive's current version token without downloading it.

        Raises ArchiveError when the probe itself fails.
        """

    @abstractmethod
    async def download(self) -> ScheduleArchive:
        """Download and parse the archive. Raises ArchiveError on failure."""
