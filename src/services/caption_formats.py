"""Caption rendering (SubRip, plain text) and title keyword tokenization.

Downstream consumers parse these outputs byte-for-byte, so the exact
separators here are part of the public format.
"""

import re
from typing import Iterable

from models.video import Segment

MIN_KEYWORD_LENGTH = 3

_NON_WORD = re.compile(r"[^A-Za-z0-9_\s]")


def format_time(ms: int) -> str:
    """Render milliseconds as a SubRip timestamp ``HH:MM:SS,mmm``.

    Example:
        >>> format_time(3723004)
        '01:02:03,004'
    """
    total_seconds = ms // 1000
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    millis = ms % 1000
    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{millis:03d}"


def to_srt(segments: Iterable[Segment]) -> str:
    """Render segments as SubRip.

    Each cue is ``index``, the time range and the text, each on its own line;
    cues are separated by one blank line and the output ends with a single
    newline.
    """
    cues = [
        f"{i}\n{format_time(seg.start_ms)} --> {format_time(seg.end_ms)}\n{seg.text}\n"
        for i, seg in enumerate(segments, 1)
    ]
    return "\n".join(cues)


def to_txt(segments: Iterable[Segment]) -> str:
    """Segment texts joined by single spaces, in playback order."""
    return " ".join(seg.text for seg in segments)


def tokenize_title(title: str) -> list[str]:
    """Split a title into search keywords.

    Lower-cases, strips everything but ASCII letters, digits, underscores and
    whitespace (any Unicode whitespace), splits on whitespace and drops tokens
    shorter than three characters. Order of first appearance is kept;
    repeated tokens are returned once.
    """
    if not title:
        return []
    words = _NON_WORD.sub("", title.lower()).split()
    return list(dict.fromkeys(w for w in words if len(w) >= MIN_KEYWORD_LENGTH))
