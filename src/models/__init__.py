# Data models for the caption store
from .video import CaptionTrack, Segment, VideoMetadata, VideoRecord, VideoSummary
from .shard_index import ShardIndex, utc_now_iso

__all__ = [
    "Segment",
    "CaptionTrack",
    "VideoRecord",
    "VideoMetadata",
    "VideoSummary",
    "ShardIndex",
    "utc_now_iso",
]
