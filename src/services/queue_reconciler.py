"""Queue reconciliation: which requested videos have not been stored yet."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from models.shard_index import ShardIndex, utc_now_iso
from services.video_ids import extract_video_id

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of comparing a work queue against the processed set."""

    pending: list[str] = field(default_factory=list)
    already_processed: int = 0
    total_queued: int = 0
    dropped: int = 0  # inputs that did not normalize to an id

    def to_dict(self) -> dict:
        return {
            "total_queued": self.total_queued,
            "pending_processing": len(self.pending),
            "already_processed": self.already_processed,
        }


def normalize_candidates(candidates: Iterable[str]) -> tuple[list[str], int]:
    """Normalize raw queue entries to ids.

    Returns:
        Tuple of (ids in input order with first occurrence kept, number of
        inputs dropped because no id could be extracted)
    """
    ids: dict[str, None] = {}
    dropped = 0
    for candidate in candidates:
        video_id = extract_video_id(candidate)
        if video_id is None:
            dropped += 1
            continue
        ids.setdefault(video_id, None)
    return list(ids), dropped


def reconcile(candidates: Iterable[str], processed: Iterable[str]) -> ReconcileResult:
    """Compute outstanding work.

    Pure function of its inputs: ``pending`` follows candidate order, never
    the iteration order of ``processed``.
    """
    processed_set = processed if isinstance(processed, (set, frozenset)) else set(processed)
    ids, dropped = normalize_candidates(candidates)
    pending = [vid for vid in ids if vid not in processed_set]

    return ReconcileResult(
        pending=pending,
        already_processed=len(ids) - len(pending),
        total_queued=len(ids),
        dropped=dropped,
    )


def read_queue_file(path: str | Path) -> list[str]:
    """Non-blank lines of a queue file. A missing file is an empty queue."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug(f"Queue file {path} not found, treating queue as empty")
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


class QueueReconciler:
    """Reports pending work for a store's master index."""

    def __init__(self, queue_file: Optional[str | Path] = None):
        self.queue_file = Path(queue_file) if queue_file else None

    def candidates(self) -> list[str]:
        if self.queue_file is None:
            return []
        return read_queue_file(self.queue_file)

    def reconcile(self, index: ShardIndex, candidates: Optional[Iterable[str]] = None) -> ReconcileResult:
        """Reconcile ``candidates`` (or the queue file) against ``index.processed``."""
        if candidates is None:
            candidates = self.candidates()
        result = reconcile(candidates, index.processed)
        if result.dropped:
            logger.info(f"Dropped {result.dropped} queue entries without a recognizable video id")
        return result

    def status(self, index: ShardIndex, candidates: Optional[Iterable[str]] = None) -> dict:
        """Queue status document (served as ``queue.json``)."""
        result = self.reconcile(index, candidates)
        return {
            "queue": result.to_dict(),
            "processed": {
                "total_videos": len(index.processed),
                "last_updated": index.updated or utc_now_iso(),
            },
            "pending_video_ids": result.pending,
        }
