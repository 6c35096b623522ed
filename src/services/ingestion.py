"""Ingestion of queued videos through an external video-info provider.

Extraction itself (talking to the video platform) lives outside this
package. A provider only has to turn a video id into a ``VideoRecord``; any
exception it raises is treated as an opaque per-video failure.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from models.video import VideoRecord
from services.errors import DuplicateVideoError, StoreError
from services.queue_reconciler import reconcile
from services.shard_store import ShardStore
from utils.logging import clear_run_context, set_run_context

logger = logging.getLogger(__name__)


class VideoInfoProvider(ABC):
    """Source of video metadata and captions."""

    @abstractmethod
    def fetch(self, video_id: str) -> VideoRecord:
        """Fetch one video.

        Args:
            video_id: Validated 11-character video id

        Returns:
            The complete record, captions included
        """

    def get_source_name(self) -> str:
        return type(self).__name__


@dataclass
class IngestResult:
    """Result of one ingestion run."""

    stored: list[str] = field(default_factory=list)
    skipped: int = 0  # already processed before the run
    failed: dict[str, str] = field(default_factory=dict)  # video_id -> error
    duration_seconds: float = 0.0


class Ingestor:
    """Fetches pending queue entries and stores them."""

    def __init__(
        self,
        store: ShardStore,
        provider: VideoInfoProvider,
        delay_seconds: float = 0.0,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ):
        """Initialize the ingestor.

        Args:
            store: Store new records are written to
            provider: External video-info provider
            delay_seconds: Pause between provider calls
            on_progress: Optional callback (processed, total)
        """
        self.store = store
        self.provider = provider
        self.delay_seconds = delay_seconds
        self.on_progress = on_progress

    def ingest(self, candidates: Iterable[str], max_videos: Optional[int] = None) -> IngestResult:
        """Store every candidate that is not processed yet.

        Raises:
            IndexCorruptError, DataRootError: If the store cannot be opened.
        """
        start_time = time.time()
        set_run_context()
        try:
            plan = reconcile(candidates, self.store.load_index().processed)
            pending = plan.pending[:max_videos] if max_videos is not None else plan.pending
            result = IngestResult(skipped=plan.already_processed)

            logger.info(
                f"Ingesting {len(pending)} videos via {self.provider.get_source_name()} "
                f"({plan.already_processed} already stored)"
            )

            for i, video_id in enumerate(pending, 1):
                self._ingest_one(video_id, result)
                if self.on_progress:
                    self.on_progress(i, len(pending))
                if self.delay_seconds and i < len(pending):
                    time.sleep(self.delay_seconds)

            result.duration_seconds = time.time() - start_time
            logger.info(
                f"Stored {len(result.stored)} videos, {len(result.failed)} failed "
                f"in {result.duration_seconds:.1f}s"
            )
            return result
        finally:
            clear_run_context()

    def _ingest_one(self, video_id: str, result: IngestResult) -> None:
        try:
            record = self.provider.fetch(video_id)
        except Exception as e:
            logger.warning(f"Provider failed for {video_id}: {e}")
            result.failed[video_id] = str(e)
            return

        if record.id != video_id:
            message = f"provider returned record {record.id!r} for {video_id}"
            logger.warning(message)
            result.failed[video_id] = message
            return

        try:
            self.store.put(record)
            result.stored.append(video_id)
        except DuplicateVideoError:
            # Stored by a concurrent run since the queue was reconciled.
            result.skipped += 1
        except StoreError as e:
            logger.error(f"Failed to store {video_id}: {e}")
            result.failed[video_id] = str(e)
