"""Exception hierarchy for the caption store."""


class StoreError(Exception):
    """Base class for all caption store errors."""


class InvalidVideoIdError(StoreError, ValueError):
    """Identifier is not an 11-character [A-Za-z0-9_-] token."""

    def __init__(self, video_id: object):
        self.video_id = video_id
        super().__init__(f"Invalid video ID format: {video_id!r}")


class VideoNotFoundError(StoreError, LookupError):
    """Id absent from the index, or its shard/artifact is missing."""


class CorruptShardError(StoreError):
    """A shard or one of its lines failed to decompress or parse."""


class DuplicateVideoError(StoreError):
    """Write of an id that is already in the processed set."""

    def __init__(self, video_id: str):
        self.video_id = video_id
        super().__init__(f"Video {video_id} is already stored")


class StoreIOError(StoreError, OSError):
    """Disk write or rename failure."""


class DataRootError(StoreError):
    """Data root is missing or not writable."""


class IndexCorruptError(StoreError):
    """Master index exists but cannot be parsed as the expected schema."""
