from .realtime_feed_provider import IRealtimeFeedProvider
from .schedule_archive_source import IScheduleArchiveSource

__all__ = [
    "IRealtimeFeedProvider",
    "IScheduleArchiveSource",
]
