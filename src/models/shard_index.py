"""Master index data model.

The master index is loaded as an explicit value at the start of an operation
and written back through ``ShardStore.save_index``. Nothing caches it
between operations.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class ShardIndex:
    """Which shard holds which ids, plus the set of processed ids.

    Invariants:
        - ``total == len(processed)``
        - every processed id is listed in exactly one shard
    """

    total: int = 0
    updated: Optional[str] = None
    shards: dict[str, list[str]] = field(default_factory=dict)
    processed: list[str] = field(default_factory=list)

    def __post_init__(self):
        self._processed_set = set(self.processed)
        self._location: Optional[dict[str, str]] = None

    def __contains__(self, video_id: str) -> bool:
        return video_id in self._processed_set

    def __len__(self) -> int:
        return len(self.processed)

    def shard_for(self, video_id: str) -> Optional[str]:
        """Return the shard path recorded for an id, or None."""
        if self._location is None:
            self._location = {
                vid: path for path, ids in self.shards.items() for vid in ids
            }
        return self._location.get(video_id)

    def shards_in(self, directory: str) -> list[str]:
        """Shard paths located directly inside ``directory``, in sorted order."""
        prefix = directory.rstrip("/") + "/"
        return sorted(
            p for p in self.shards if p.startswith(prefix) and "/" not in p[len(prefix):]
        )

    def record(self, video_id: str, shard_path: str, timestamp: Optional[str] = None) -> None:
        """Register a stored id against its shard."""
        self.shards.setdefault(shard_path, []).append(video_id)
        self.processed.append(video_id)
        self._processed_set.add(video_id)
        if self._location is not None:
            self._location[video_id] = shard_path
        self.total = len(self.processed)
        self.updated = timestamp or utc_now_iso()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total": self.total,
            "updated": self.updated,
            "shards": {path: list(ids) for path, ids in self.shards.items()},
            "processed": list(self.processed),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ShardIndex":
        """Create an index from its persisted form.

        Raises:
            ValueError: If the document does not have the expected shape.
        """
        if not isinstance(data, dict):
            raise ValueError("master index must be a JSON object")

        shards = data.get("shards", {})
        processed = data.get("processed", [])
        total = data.get("total", len(processed))

        if not isinstance(shards, dict):
            raise ValueError("'shards' must be an object")
        for path, ids in shards.items():
            if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
                raise ValueError(f"shard entry {path!r} must be a list of ids")
        if not isinstance(processed, list) or not all(isinstance(i, str) for i in processed):
            raise ValueError("'processed' must be a list of ids")
        if not isinstance(total, int) or isinstance(total, bool):
            raise ValueError("'total' must be an integer")

        return cls(
            total=total,
            updated=data.get("updated"),
            shards={path: list(ids) for path, ids in shards.items()},
            processed=list(processed),
        )
