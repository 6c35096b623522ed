"""Static artifact generation from the shard store.

Output layout (relative to the output directory)::

    video/{id}.json               full record
    video/{id}-metadata.json      record without captions
    video/{id}-{lang}.json        one caption track
    video/{id}-{lang}.srt         SubRip rendering
    video/{id}-{lang}.txt         plain text rendering
    search/index.json             videos + authors + keywords
    search/videos.json
    search/authors.json
    stats.json
    manifest.json
    queue.json                    only when a queue reconciler is configured

Every file is written atomically. Re-running against an unchanged store
yields identical bytes apart from ``generated_at``. A failing artifact is
logged and reported in ``GenerationReport.errors``; the run carries on.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from models.shard_index import utc_now_iso
from models.video import VideoRecord
from services.caption_formats import to_srt, to_txt, tokenize_title
from services.queue_reconciler import QueueReconciler
from services.record_reader import RecordReader
from services.shard_store import ShardStore
from utils.fileio import atomic_write_json, atomic_write_text
from utils.logging import clear_run_context, set_run_context

logger = logging.getLogger(__name__)

MANIFEST_NAME = "YouTube Subtitles Static API"
MANIFEST_VERSION = "1.0.0"

# Language codes end up in file names.
_SAFE_LANG = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


@dataclass
class GenerationReport:
    """Result of one generation run."""

    generated_at: str
    videos: int = 0
    files_written: int = 0
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.errors


class SearchIndexBuilder:
    """Accumulates the search index one record at a time."""

    def __init__(self):
        self.videos: list[dict] = []
        self.authors: dict[str, list[str]] = {}
        self.keywords: dict[str, list[str]] = {}
        self._keyword_sets: dict[str, set[str]] = {}

    def add(self, record: VideoRecord) -> None:
        self.videos.append(record.summary().to_dict())

        if record.author:
            self.authors.setdefault(record.author, []).append(record.id)

        for word in tokenize_title(record.title):
            seen = self._keyword_sets.setdefault(word, set())
            if record.id not in seen:
                seen.add(record.id)
                self.keywords.setdefault(word, []).append(record.id)

    def to_dict(self, generated_at: str) -> dict:
        return {
            "videos": self.videos,
            "authors": self.authors,
            "keywords": self.keywords,
            "generated_at": generated_at,
        }


def build_manifest(generated_at: str, base_url: Optional[str] = None) -> dict:
    """Static description of the artifact layout."""
    return {
        "name": MANIFEST_NAME,
        "version": MANIFEST_VERSION,
        "description": "Static JSON API for YouTube video data and captions",
        "generated_at": generated_at,
        "base_url": base_url,
        "endpoints": {
            "GET /stats.json": "Database statistics",
            "GET /video/{id}.json": "Complete video data with captions",
            "GET /video/{id}-metadata.json": "Video metadata only",
            "GET /video/{id}-{lang}.json": "Captions for specific language",
            "GET /video/{id}-{lang}.srt": "Captions in SRT format",
            "GET /video/{id}-{lang}.txt": "Captions in plain text",
            "GET /search/index.json": "Full search index",
            "GET /search/videos.json": "All videos list",
            "GET /search/authors.json": "Videos grouped by author",
        },
        "usage": {
            "Search by keyword": "Fetch /search/index.json and filter by keywords object",
            "Get video": "Fetch /video/{videoId}.json",
            "List by author": "Fetch /search/authors.json and access author key",
            "Get captions": "Fetch /video/{videoId}-{lang}.srt",
        },
    }


class ViewGenerator:
    """Materializes the store into static, independently servable files."""

    def __init__(
        self,
        store: ShardStore,
        output_dir: str | Path,
        queue_reconciler: Optional[QueueReconciler] = None,
        base_url: Optional[str] = None,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ):
        """Initialize the generator.

        Args:
            store: Store to read from
            output_dir: Root directory of the generated artifacts
            queue_reconciler: If set, ``queue.json`` is generated too
            base_url: Public URL the artifacts are served from (manifest only)
            on_progress: Optional callback (shards_done, shards_total)
        """
        self.store = store
        self.output_dir = Path(output_dir)
        self.queue_reconciler = queue_reconciler
        self.base_url = base_url
        self.on_progress = on_progress

    def generate(self) -> GenerationReport:
        """Regenerate every artifact.

        Raises:
            IndexCorruptError, DataRootError: If the master index cannot be
                loaded. Nothing is written in that case.
        """
        run_id = set_run_context()
        start_time = time.time()
        try:
            index = self.store.load_index()
            report = GenerationReport(generated_at=utc_now_iso())
            logger.info(
                f"Generating static artifacts for {index.total} videos into {self.output_dir} "
                f"(run {run_id})"
            )

            search = SearchIndexBuilder()
            seen: set[str] = set()
            total_shards = len(index.shards)

            for done, contents in enumerate(self.store.iter_shards(index), 1):
                report.errors.extend(contents.errors)
                for record in contents.records:
                    if record.id in seen or record.id not in index:
                        continue
                    seen.add(record.id)
                    self._write_video_artifacts(record, self.output_dir / "video", report)
                    search.add(record)
                    report.videos += 1
                if self.on_progress:
                    self.on_progress(done, total_shards)

            self._run_step("search index", self._write_search_index, search, report)
            self._run_step("stats", self._write_stats, report)
            self._run_step("manifest", self._write_manifest, report)
            if self.queue_reconciler is not None:
                self._run_step("queue status", self._write_queue_status, index, report)

            report.duration_seconds = time.time() - start_time
            logger.info(
                f"Generated {report.files_written} files for {report.videos} videos "
                f"in {report.duration_seconds:.1f}s ({len(report.errors)} errors)"
            )
            return report
        finally:
            clear_run_context()

    def export_video(self, video_id: str, output_dir: str | Path) -> GenerationReport:
        """Write the per-video artifacts of a single record into ``output_dir``.

        Raises:
            InvalidVideoIdError, VideoNotFoundError: If the video cannot be read.
        """
        record = RecordReader(self.store).get(video_id)
        report = GenerationReport(generated_at=utc_now_iso(), videos=1)
        self._write_video_artifacts(record, Path(output_dir), report)
        logger.info(f"Exported {video_id} to {output_dir} ({report.files_written} files)")
        return report

    # =========================================================================
    # Artifact writers
    # =========================================================================

    def _write_video_artifacts(
        self, record: VideoRecord, directory: Path, report: GenerationReport
    ) -> None:
        vid = record.id
        self._write_json(directory / f"{vid}.json", record.to_dict(), report)
        self._write_json(directory / f"{vid}-metadata.json", record.metadata().to_dict(), report)

        for lang, track in record.captions.items():
            if not _SAFE_LANG.match(lang):
                message = f"{vid}: skipping caption language with unsafe code {lang!r}"
                logger.warning(message)
                report.errors.append(message)
                continue
            self._write_json(directory / f"{vid}-{lang}.json", track.to_dict(), report)
            self._write_text(directory / f"{vid}-{lang}.srt", to_srt(track.segments), report)
            self._write_text(directory / f"{vid}-{lang}.txt", to_txt(track.segments), report)

    def _write_search_index(self, search: SearchIndexBuilder, report: GenerationReport) -> None:
        search_dir = self.output_dir / "search"
        self._write_json(search_dir / "index.json", search.to_dict(report.generated_at), report)
        self._write_json(search_dir / "videos.json", search.videos, report)
        self._write_json(search_dir / "authors.json", search.authors, report)

    def _write_stats(self, report: GenerationReport) -> None:
        stats = {"total_videos": report.videos, "generated_at": report.generated_at}
        self._write_json(self.output_dir / "stats.json", stats, report)

    def _write_manifest(self, report: GenerationReport) -> None:
        manifest = build_manifest(report.generated_at, self.base_url)
        self._write_json(self.output_dir / "manifest.json", manifest, report)

    def _write_queue_status(self, index, report: GenerationReport) -> None:
        status = self.queue_reconciler.status(index)
        self._write_json(self.output_dir / "queue.json", status, report)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _run_step(self, name: str, step: Callable, *args) -> None:
        report: GenerationReport = args[-1]
        try:
            step(*args)
        except Exception as e:
            logger.error(f"Failed to generate {name}: {e}")
            report.errors.append(f"{name}: {e}")

    def _write_json(self, path: Path, obj, report: GenerationReport) -> None:
        try:
            atomic_write_json(path, obj)
            report.files_written += 1
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            report.errors.append(f"{path}: {e}")

    def _write_text(self, path: Path, text: str, report: GenerationReport) -> None:
        try:
            atomic_write_text(path, text)
            report.files_written += 1
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            report.errors.append(f"{path}: {e}")
