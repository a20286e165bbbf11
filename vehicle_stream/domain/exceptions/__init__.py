from .feed import ArchiveError, DecodeError, FeedPipelineError, FetchError

__all__ = [
    "ArchiveError",
    "DecodeError",
    "FeedPipelineError",
    "FetchError",
]
