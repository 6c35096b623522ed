"""Video id validation and extraction from URLs."""

import re
from typing import Optional

from services.errors import InvalidVideoIdError

VIDEO_ID_LENGTH = 11

VIDEO_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{11}\Z")

# Tried in order; the first pattern that matches wins.
_EXTRACTION_PATTERNS = [
    re.compile(
        r"(?:youtube\.com/watch\?(?:[^#\s]*&)?v=|youtu\.be/|youtube\.com/(?:embed|shorts)/)"
        r"([a-zA-Z0-9_-]{11})(?![a-zA-Z0-9_-])"
    ),
    VIDEO_ID_PATTERN,
]


def is_valid_video_id(video_id: object) -> bool:
    """Check the fixed 11-character alphanumeric/``_``/``-`` format."""
    return isinstance(video_id, str) and VIDEO_ID_PATTERN.match(video_id) is not None


def validate_video_id(video_id: object) -> str:
    """Return ``video_id`` unchanged if valid.

    Raises:
        InvalidVideoIdError: If the id has the wrong shape.
    """
    if not is_valid_video_id(video_id):
        raise InvalidVideoIdError(video_id)
    return video_id  # type: ignore[return-value]


def extract_video_id(candidate: str) -> Optional[str]:
    """Normalize a watch/short/embed URL or a bare id to a video id.

    Returns None for anything else instead of raising, so callers can
    drop unrecognized input.
    """
    if not isinstance(candidate, str):
        return None
    candidate = candidate.strip()
    if not candidate:
        return None

    for pattern in _EXTRACTION_PATTERNS:
        match = pattern.search(candidate)
        if match:
            return match.group(1) if pattern.groups else match.group(0)
    return None
