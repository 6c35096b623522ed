"""Video record data models.

Records are stored one per line as JSON inside gzip shards. The compact
segment keys (``s``, ``e``, ``t``) are part of the on-disk format and of every
derived artifact, so ``to_dict``/``from_dict`` must stay byte-stable.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Segment:
    """One timed subtitle cue."""

    start_ms: int
    end_ms: int
    text: str

    def __post_init__(self):
        if self.start_ms < 0:
            raise ValueError(f"Segment start must be >= 0, got {self.start_ms}")
        if self.end_ms <= self.start_ms:
            raise ValueError(
                f"Segment end ({self.end_ms}) must be greater than start ({self.start_ms})"
            )

    def to_dict(self) -> dict:
        return {"s": self.start_ms, "e": self.end_ms, "t": self.text}

    @classmethod
    def from_dict(cls, data: dict) -> "Segment":
        return cls(start_ms=int(data["s"]), end_ms=int(data["e"]), text=str(data["t"]))


@dataclass
class CaptionTrack:
    """One language's captions, in playback order."""

    auto: bool = False  # True if machine-generated (ASR)
    segments: list[Segment] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"auto": self.auto, "segments": [s.to_dict() for s in self.segments]}

    @classmethod
    def from_dict(cls, data: dict) -> "CaptionTrack":
        return cls(
            auto=bool(data.get("auto", False)),
            segments=[Segment.from_dict(s) for s in data.get("segments", [])],
        )


@dataclass
class VideoMetadata:
    """Every field of a video record except its captions."""

    id: str
    title: str
    duration: int  # in seconds
    view_count: int
    upload_date: str  # display string as reported upstream
    url: str
    scraped_at: str  # ISO timestamp of capture
    author: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "duration": self.duration,
            "view_count": self.view_count,
            "upload_date": self.upload_date,
            "url": self.url,
            "scraped_at": self.scraped_at,
        }


@dataclass
class VideoRecord:
    """A stored video: metadata plus caption tracks keyed by language code."""

    id: str
    title: str
    duration: int
    view_count: int
    upload_date: str
    url: str
    scraped_at: str
    author: Optional[str] = None
    captions: dict[str, CaptionTrack] = field(default_factory=dict)

    @property
    def languages(self) -> list[str]:
        """Caption language codes, sorted so derived output is deterministic."""
        return sorted(self.captions)

    @property
    def has_captions(self) -> bool:
        return bool(self.captions)

    def metadata(self) -> VideoMetadata:
        """Project this record onto its caption-free metadata view."""
        return VideoMetadata(
            id=self.id,
            title=self.title,
            author=self.author,
            duration=self.duration,
            view_count=self.view_count,
            upload_date=self.upload_date,
            url=self.url,
            scraped_at=self.scraped_at,
        )

    def summary(self) -> "VideoSummary":
        """Build the search index entry for this record."""
        return VideoSummary(
            id=self.id,
            title=self.title,
            author=self.author,
            duration=self.duration,
            view_count=self.view_count,
            upload_date=self.upload_date,
            has_captions=self.has_captions,
            languages=self.languages,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            **self.metadata().to_dict(),
            "captions": {lang: track.to_dict() for lang, track in self.captions.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VideoRecord":
        """Create a record from its stored JSON form.

        Raises:
            KeyError, TypeError, ValueError: If required fields are missing
                or malformed.
        """
        captions = data.get("captions") or {}
        if not isinstance(captions, dict):
            raise TypeError(f"captions must be an object, got {type(captions).__name__}")

        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            author=data.get("author"),
            duration=int(data.get("duration") or 0),
            view_count=int(data.get("view_count") or 0),
            upload_date=str(data.get("upload_date") or ""),
            url=str(data.get("url") or ""),
            scraped_at=str(data.get("scraped_at") or ""),
            captions={lang: CaptionTrack.from_dict(t) for lang, t in captions.items()},
        )


@dataclass
class VideoSummary:
    """Compact per-video entry of the search index."""

    id: str
    title: str
    author: Optional[str]
    duration: int
    view_count: int
    upload_date: str
    has_captions: bool
    languages: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "duration": self.duration,
            "view_count": self.view_count,
            "upload_date": self.upload_date,
            "has_captions": self.has_captions,
            "languages": list(self.languages),
        }
