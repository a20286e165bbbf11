class FeedPipelineError(Exception):
    """Base exception for failures contained within one update cycle."""


class FetchError(FeedPipelineError):
    """Raised when the realtime feed cannot be retrieved."""


class DecodeError(FeedPipelineError):
    """Raised when the realtime feed body is not a valid GTFS-RT message."""


class ArchiveError(FeedPipelineError):
    """Raised when the schedule archive is unreachable, unreadable or incomplete."""
