"""Shared pytest fixtures for caption store tests."""

import sys
from pathlib import Path
from typing import Callable, Dict

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from models.video import CaptionTrack, Segment, VideoRecord  # noqa: E402
from services.shard_store import ShardStore  # noqa: E402


@pytest.fixture
def sample_config(tmp_path) -> Dict:
    """Sample configuration for testing."""
    return {
        "data_root": str(tmp_path / "data"),
        "shard_capacity": 1000,
        "shard_prefix_length": 2,
        "api_output_dir": str(tmp_path / "api"),
        "static_base_url": None,
        "queue_file": str(tmp_path / "urls.txt"),
        "default_page_size": 50,
        "max_page_size": 500,
        "cors_origins": ["*"],
        "log_level": "INFO",
        "log_json": False,
    }


@pytest.fixture
def rick_segments() -> list:
    return [
        Segment(start_ms=0, end_ms=3000, text="We're no strangers to love"),
        Segment(start_ms=3000, end_ms=6000, text="You know the rules and so do I"),
    ]


@pytest.fixture
def sample_record(rick_segments) -> VideoRecord:
    """The canonical test video."""
    return VideoRecord(
        id="dQw4w9WgXcQ",
        title="Rick Astley - Never Gonna Give You Up!",
        author="Rick Astley",
        duration=212,
        view_count=1_500_000_000,
        upload_date="Oct 25, 2009",
        url="https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        scraped_at="2024-01-01T00:00:00.000Z",
        captions={
            "en": CaptionTrack(auto=False, segments=rick_segments),
            "de": CaptionTrack(
                auto=True,
                segments=[Segment(start_ms=0, end_ms=3000, text="Wir sind keine Fremden")],
            ),
        },
    )


@pytest.fixture
def make_record() -> Callable[..., VideoRecord]:
    """Factory for small records with overridable fields."""

    def _make(video_id: str, **overrides) -> VideoRecord:
        fields = {
            "id": video_id,
            "title": f"Video {video_id}",
            "author": "Someone",
            "duration": 60,
            "view_count": 100,
            "upload_date": "Jan 1, 2024",
            "url": f"https://www.youtube.com/watch?v={video_id}",
            "scraped_at": "2024-01-01T00:00:00.000Z",
            "captions": {
                "en": CaptionTrack(segments=[Segment(start_ms=0, end_ms=1000, text="hello")])
            },
        }
        fields.update(overrides)
        return VideoRecord(**fields)

    return _make


@pytest.fixture
def store(tmp_path) -> ShardStore:
    """Empty store in a fresh data root."""
    return ShardStore(tmp_path / "data", create=True)


@pytest.fixture
def populated_store(store, sample_record, make_record) -> ShardStore:
    """Store holding the sample record plus four others across prefixes."""
    store.put(sample_record)
    store.put(make_record("9bZkp7q19f0", title="PSY - GANGNAM STYLE", author="officialpsy",
                          duration=253, view_count=5_000_000_000))
    store.put(make_record("kJQP7kiw5Fk", title="Luis Fonsi - Despacito ft. Daddy Yankee",
                          author="Luis Fonsi", duration=282, view_count=8_000_000_000))
    store.put(make_record("dQaaaaaaaaa", title="Never gonna stop", author="Rick Astley",
                          duration=100, view_count=1000))
    store.put(make_record("ZZZZZZZZZZZ", title="Untitled", author=None, duration=30,
                          view_count=5, captions={}))
    return store
