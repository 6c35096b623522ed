"""Read path over the shard store: point lookup, filtered list, search, sampling.

``list_videos`` and ``search`` are full scans that decompress every indexed
shard. They take no lock: shards are replaced atomically, so each one is read
either before or after a concurrent write, never half-written. Shards read at
different moments of one scan may reflect different store states.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Optional

from models.video import CaptionTrack, VideoRecord
from services.errors import VideoNotFoundError
from services.shard_store import ShardStore
from services.video_ids import validate_video_id

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


@dataclass
class VideoFilter:
    """Filters for ``RecordReader.list_videos``. Unset fields match everything."""

    author: Optional[str] = None  # exact match
    min_views: Optional[int] = None  # inclusive
    max_duration: Optional[int] = None  # inclusive, seconds

    def matches(self, record: VideoRecord) -> bool:
        if self.author is not None and record.author != self.author:
            return False
        if self.min_views is not None and record.view_count < self.min_views:
            return False
        if self.max_duration is not None and record.duration > self.max_duration:
            return False
        return True


@dataclass
class PageResult:
    """One page of records plus the total number of matches.

    ``errors`` lists shards or lines that were skipped while producing it.
    """

    records: list[VideoRecord] = field(default_factory=list)
    total: int = 0
    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0
    errors: list[str] = field(default_factory=list)


class RecordReader:
    """Query operations built on a ``ShardStore``."""

    def __init__(self, store: ShardStore, rng: Optional[random.Random] = None):
        self.store = store
        self._rng = rng or random.Random()

    def get(self, video_id: str) -> VideoRecord:
        """Fetch one record.

        Raises:
            InvalidVideoIdError: If the id is malformed (checked before any I/O).
            VideoNotFoundError: If the id is not indexed, its shard file is
                missing, or the shard holds no record with that id.
            CorruptShardError: If the shard cannot be decompressed.
        """
        validate_video_id(video_id)
        index = self.store.load_index()

        shard_path = self.store.locate(video_id, index)
        if shard_path is None:
            raise VideoNotFoundError(f"Video not found: {video_id}")

        for record in self.store.read_shard(shard_path).records:
            if record.id == video_id:
                return record

        logger.warning(f"Index lists {video_id} in {shard_path} but the shard does not hold it")
        raise VideoNotFoundError(f"Video not found: {video_id}")

    def get_captions(self, video_id: str, lang: Optional[str] = None) -> dict[str, CaptionTrack]:
        """All caption tracks of a video, or only ``lang``.

        Raises:
            VideoNotFoundError: If the video, or the requested language, is absent.
        """
        captions = self.get(video_id).captions
        if lang is None:
            return captions
        if lang not in captions:
            raise VideoNotFoundError(f"Captions not found for language: {lang}")
        return {lang: captions[lang]}

    def list_videos(
        self,
        video_filter: Optional[VideoFilter] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> PageResult:
        """Page through records matching ``video_filter`` in ascending id order."""
        video_filter = video_filter or VideoFilter()
        return self._scan(video_filter.matches, limit, offset)

    def search(self, query: str, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> PageResult:
        """Case-insensitive substring match against title and author.

        Raises:
            ValueError: If ``query`` is empty.
        """
        if not query or not query.strip():
            raise ValueError("Search query must not be empty")
        needle = query.lower()

        def matches(record: VideoRecord) -> bool:
            return needle in record.title.lower() or (
                record.author is not None and needle in record.author.lower()
            )

        return self._scan(matches, limit, offset)

    def random_videos(self, count: int) -> PageResult:
        """Up to ``count`` distinct records drawn uniformly without replacement."""
        index = self.store.load_index()
        population = list(dict.fromkeys(index.processed))
        result = PageResult(total=len(population), limit=count)
        if count <= 0 or not population:
            return result

        for video_id in self._rng.sample(population, min(count, len(population))):
            try:
                result.records.append(self.get(video_id))
            except VideoNotFoundError as e:
                logger.warning(str(e))
                result.errors.append(str(e))
        return result

    def stats(self) -> dict:
        """Store statistics straight from the master index."""
        index = self.store.load_index()
        return {
            "total_videos": index.total,
            "shards": len(index.shards),
            "last_updated": index.updated,
        }

    def _scan(
        self, predicate: Callable[[VideoRecord], bool], limit: int, offset: int
    ) -> PageResult:
        if limit < 0 or offset < 0:
            raise ValueError("limit and offset must be non-negative")

        index = self.store.load_index()
        result = PageResult(limit=limit, offset=offset)
        matches: list[VideoRecord] = []
        seen: set[str] = set()

        for contents in self.store.iter_shards(index):
            result.errors.extend(contents.errors)
            for record in contents.records:
                # Records the index does not know about are not visible yet.
                if record.id in seen or record.id not in index:
                    continue
                seen.add(record.id)
                if predicate(record):
                    matches.append(record)

        matches.sort(key=lambda r: r.id)
        result.total = len(matches)
        result.records = matches[offset : offset + limit]
        return result
