from __future__ import annotations

from abc import ABC, abstractmethod

from vehicle_stream.domain.models.realtime import FeedSnapshot


class IRealtimeFeedProvider(ABC):
    """Port for obtaining realtime vehicle positions (e.g., via GTFS-Realtime)."""

    @abstractmethod
    async def fetch(self) -> FeedSnapshot:
        """Fetch and decode the feed.

        Raises FetchError or DecodeError; never returns partial data.
        """
