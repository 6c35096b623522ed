"""Sharded, gzip-compressed, append-only video record store.

Layout under the data root::

    index/master.json                 master index (see models.shard_index)
    shards/<pp>/<nnnn>.jsonl.gz       gzip'd newline-delimited JSON records

``<pp>`` is the lower-cased id prefix, ``<nnnn>`` the shard's sequence
number within that prefix. A new sequence is opened once the current shard
holds ``shard_capacity`` records, which bounds the rewrite cost of a single
``put``.

Write ordering: the shard is replaced atomically first, the index second.
A crash in between leaves a record the index does not know about, which
``rebuild_index`` (or the next ``put`` of the same id) repairs. The index
never names an id that is not on disk.
"""

import gzip
import json
import logging
import threading
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

from models.shard_index import ShardIndex, utc_now_iso
from models.video import VideoRecord
from services.errors import (
    CorruptShardError,
    DataRootError,
    DuplicateVideoError,
    IndexCorruptError,
    StoreIOError,
    VideoNotFoundError,
)
from services.video_ids import is_valid_video_id, validate_video_id
from utils.fileio import atomic_write_bytes, atomic_write_json

logger = logging.getLogger(__name__)

DEFAULT_SHARD_CAPACITY = 1000
DEFAULT_PREFIX_LENGTH = 2

INDEX_RELATIVE_PATH = "index/master.json"
SHARDS_DIRNAME = "shards"
SHARD_SUFFIX = ".jsonl.gz"

# One ingestion lock per data root, shared by every ShardStore in the process.
_root_locks: dict[str, threading.Lock] = {}
_root_locks_guard = threading.Lock()


def _lock_for(root: Path) -> threading.Lock:
    key = str(root.resolve())
    with _root_locks_guard:
        if key not in _root_locks:
            _root_locks[key] = threading.Lock()
        return _root_locks[key]


def serialize_record(record: VideoRecord) -> str:
    """One shard line (without the trailing newline)."""
    return json.dumps(record.to_dict(), ensure_ascii=False, separators=(",", ":"))


@dataclass
class ShardContents:
    """Records parsed from one shard, plus anything that could not be parsed."""

    path: str
    records: list[VideoRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class RebuildResult:
    """Outcome of a full reconciliation scan."""

    index: ShardIndex
    shards_scanned: int = 0
    duplicates: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class ShardStore:
    """Durable storage of video records in path-addressed gzip shards."""

    def __init__(
        self,
        data_root: str | Path,
        shard_capacity: int = DEFAULT_SHARD_CAPACITY,
        prefix_length: int = DEFAULT_PREFIX_LENGTH,
        create: bool = False,
    ):
        """Open a store.

        Args:
            data_root: Directory holding ``index/`` and ``shards/``
            shard_capacity: Maximum records per shard file
            prefix_length: Number of id characters naming the shard directory
            create: Create ``data_root`` if it does not exist

        Raises:
            DataRootError: If the data root is missing (and ``create`` is
                False) or is not a directory.
        """
        if shard_capacity < 1:
            raise ValueError(f"shard_capacity must be positive, got {shard_capacity}")
        if not 1 <= prefix_length <= 11:
            raise ValueError(f"prefix_length must be between 1 and 11, got {prefix_length}")

        self.root = Path(data_root)
        self.shard_capacity = shard_capacity
        self.prefix_length = prefix_length

        if not self.root.exists():
            if not create:
                raise DataRootError(f"Data root does not exist: {self.root}")
            try:
                self.root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DataRootError(f"Cannot create data root {self.root}: {e}") from e
            logger.info(f"Created data root at {self.root}")
        elif not self.root.is_dir():
            raise DataRootError(f"Data root is not a directory: {self.root}")

        self._lock = _lock_for(self.root)

    @property
    def index_path(self) -> Path:
        return self.root / INDEX_RELATIVE_PATH

    # =========================================================================
    # Path derivation
    # =========================================================================

    def shard_directory(self, video_id: str) -> str:
        """Relative shard directory for an id. Depends on the id alone.

        The prefix is lower-cased so ids differing only in case never map to
        two directories that collide on a case-insensitive filesystem.
        """
        validate_video_id(video_id)
        return f"{SHARDS_DIRNAME}/{video_id[: self.prefix_length].lower()}"

    @staticmethod
    def shard_file(directory: str, sequence: int) -> str:
        return f"{directory}/{sequence:04d}{SHARD_SUFFIX}"

    @staticmethod
    def shard_sequence(shard_path: str) -> int:
        """Sequence number encoded in a shard file name."""
        name = shard_path.rsplit("/", 1)[-1]
        return int(name[: -len(SHARD_SUFFIX)])

    def choose_shard(self, video_id: str, index: ShardIndex) -> str:
        """Pick the shard a new record for ``video_id`` goes into.

        Returns the newest shard of the id's prefix while it is below
        capacity, otherwise the next sequential shard.
        """
        directory = self.shard_directory(video_id)
        existing = index.shards_in(directory)
        if not existing:
            return self.shard_file(directory, 0)

        newest = max(existing, key=self.shard_sequence)
        if len(index.shards[newest]) < self.shard_capacity:
            return newest
        return self.shard_file(directory, self.shard_sequence(newest) + 1)

    def locate(self, video_id: str, index: ShardIndex) -> Optional[str]:
        """Shard path holding ``video_id`` according to the index, or None."""
        validate_video_id(video_id)
        return index.shard_for(video_id)

    # =========================================================================
    # Master index
    # =========================================================================

    def load_index(self) -> ShardIndex:
        """Load the master index. A missing file means an empty store.

        Raises:
            IndexCorruptError: If the file exists but is not a valid index.
        """
        if not self.index_path.exists():
            return ShardIndex()

        try:
            with self.index_path.open(encoding="utf-8") as f:
                data = json.load(f)
            index = ShardIndex.from_dict(data)
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as e:
            raise IndexCorruptError(f"Master index {self.index_path} is unreadable: {e}") from e
        except OSError as e:
            raise DataRootError(f"Cannot read master index {self.index_path}: {e}") from e

        if index.total != len(index.processed):
            logger.warning(
                f"Index total ({index.total}) disagrees with processed count "
                f"({len(index.processed)}); using processed count"
            )
            index.total = len(index.processed)
        return index

    def save_index(self, index: ShardIndex) -> None:
        """Persist the index atomically.

        Raises:
            StoreIOError: If the write or rename fails.
        """
        try:
            atomic_write_json(self.index_path, index.to_dict())
        except OSError as e:
            raise StoreIOError(f"Failed to write master index: {e}") from e

    # =========================================================================
    # Shard I/O
    # =========================================================================

    def _read_shard_text(self, shard_path: str) -> str:
        full_path = self.root / shard_path
        try:
            with full_path.open("rb") as f:
                compressed = f.read()
        except FileNotFoundError as e:
            raise VideoNotFoundError(f"Shard not found: {shard_path}") from e

        try:
            return gzip.decompress(compressed).decode("utf-8")
        except (OSError, EOFError, zlib.error, UnicodeDecodeError) as e:
            raise CorruptShardError(f"Shard {shard_path} cannot be decompressed: {e}") from e

    def read_shard(self, shard_path: str) -> ShardContents:
        """Decompress a shard and parse its records.

        Lines that fail to parse are logged and reported in
        ``ShardContents.errors``; the remaining records are still returned.

        Raises:
            VideoNotFoundError: If the shard file does not exist.
            CorruptShardError: If the file is not valid gzip/UTF-8.
        """
        contents = ShardContents(path=shard_path)
        text = self._read_shard_text(shard_path)

        for line_no, line in enumerate(text.split("\n"), 1):
            if not line.strip():
                continue
            try:
                contents.records.append(VideoRecord.from_dict(json.loads(line)))
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                message = f"{shard_path}:{line_no}: unparseable record ({e})"
                logger.warning(message)
                contents.errors.append(message)

        return contents

    def iter_shards(
        self, index: ShardIndex, start_after: Optional[str] = None
    ) -> Iterator[ShardContents]:
        """Yield every indexed shard in sorted path order.

        Missing or corrupt shards are yielded with an error and no records,
        so a scan never aborts on one bad file. ``start_after`` resumes a
        scan after the given shard path.
        """
        for shard_path in sorted(index.shards):
            if start_after is not None and shard_path <= start_after:
                continue
            try:
                yield self.read_shard(shard_path)
            except (VideoNotFoundError, CorruptShardError) as e:
                logger.warning(str(e))
                yield ShardContents(path=shard_path, errors=[str(e)])

    # =========================================================================
    # Writes
    # =========================================================================

    def put(self, record: VideoRecord) -> str:
        """Append a record to its shard and register it in the index.

        Returns:
            Relative path of the shard the record was written to.

        Raises:
            InvalidVideoIdError: If the record id is malformed.
            DuplicateVideoError: If the id is already processed. The store
                is left untouched.
            CorruptShardError: If a shard of the id's prefix cannot be
                decompressed; nothing is overwritten.
            StoreIOError: If the shard or index cannot be written. When the
                shard write fails the index is not updated.
        """
        video_id = validate_video_id(record.id)
        directory = self.shard_directory(video_id)

        with self._lock:
            index = self.load_index()
            if video_id in index:
                raise DuplicateVideoError(video_id)

            # Every shard file of the prefix, including ones the index has not seen yet.
            texts = {path: self._read_shard_text(path) for path in self._prefix_shards(directory)}

            orphan_path = next(
                (path for path, text in texts.items() if self._shard_holds(text, video_id)), None
            )
            if orphan_path is not None:
                # Left behind by a write whose index update never landed.
                logger.warning(f"{video_id} already present in {orphan_path}; repairing index only")
                shard_path = orphan_path
            else:
                # Capacity is judged by the records in the file, not the ids the index lists.
                shard_path = self.choose_shard(video_id, index)
                while self._count_records(texts.get(shard_path, "")) >= self.shard_capacity:
                    shard_path = self.shard_file(directory, self.shard_sequence(shard_path) + 1)

                existing = texts.get(shard_path, "")
                if existing and not existing.endswith("\n"):
                    existing += "\n"
                payload = existing + serialize_record(record) + "\n"
                try:
                    atomic_write_bytes(
                        self.root / shard_path,
                        gzip.compress(payload.encode("utf-8"), mtime=0),
                    )
                except OSError as e:
                    raise StoreIOError(f"Failed to write shard {shard_path}: {e}") from e

            index.record(video_id, shard_path, utc_now_iso())
            self.save_index(index)

        logger.debug(f"Stored {video_id} in {shard_path}")
        return shard_path

    def _prefix_shards(self, directory: str) -> list[str]:
        """Shard files on disk inside one prefix directory, sorted."""
        shard_dir = self.root / directory
        if not shard_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.root).as_posix() for p in shard_dir.glob(f"*{SHARD_SUFFIX}")
        )

    @staticmethod
    def _count_records(text: str) -> int:
        return sum(1 for line in text.split("\n") if line.strip())

    @staticmethod
    def _shard_holds(text: str, video_id: str) -> bool:
        for line in text.split("\n"):
            if video_id not in line:
                continue
            try:
                if json.loads(line).get("id") == video_id:
                    return True
            except (ValueError, AttributeError):
                continue
        return False

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def discover_shards(self) -> list[str]:
        """Relative paths of every shard file on disk, sorted."""
        shards_dir = self.root / SHARDS_DIRNAME
        if not shards_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.root).as_posix() for p in shards_dir.glob(f"*/*{SHARD_SUFFIX}")
        )

    def rebuild_index(self) -> RebuildResult:
        """Rebuild the master index from the shard files on disk.

        An id found in more than one shard is kept in the first shard (in
        sorted path order) and reported in ``duplicates``.
        """
        with self._lock:
            index = ShardIndex()
            result = RebuildResult(index=index)

            for shard_path in self.discover_shards():
                try:
                    contents = self.read_shard(shard_path)
                except (VideoNotFoundError, CorruptShardError) as e:
                    logger.error(str(e))
                    result.errors.append(str(e))
                    continue

                result.shards_scanned += 1
                result.errors.extend(contents.errors)
                index.shards.setdefault(shard_path, [])

                for record in contents.records:
                    if not is_valid_video_id(record.id):
                        result.errors.append(f"{shard_path}: invalid video id {record.id!r}")
                        continue
                    if record.id in index:
                        result.duplicates.append(f"{record.id} ({shard_path})")
                        continue
                    index.record(record.id, shard_path)

            index.updated = utc_now_iso()
            self.save_index(index)

        logger.info(
            f"Rebuilt index: {index.total} videos in {result.shards_scanned} shards "
            f"({len(result.duplicates)} duplicates, {len(result.errors)} errors)"
        )
        return result
