"""Tests for the sharded record store and its master index."""

import gzip
import json
import threading
from unittest.mock import patch

import pytest

from models.video import VideoRecord
from services.errors import (
    CorruptShardError,
    DataRootError,
    DuplicateVideoError,
    IndexCorruptError,
    InvalidVideoIdError,
    StoreIOError,
    VideoNotFoundError,
)
from services.shard_store import ShardStore, serialize_record


def write_raw_shard(store: ShardStore, shard_path: str, lines: list[str]) -> None:
    path = store.root / shard_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(gzip.compress(("\n".join(lines) + "\n").encode("utf-8")))


class TestInit:
    def test_missing_root_is_fatal(self, tmp_path):
        with pytest.raises(DataRootError):
            ShardStore(tmp_path / "missing")

    def test_create_root(self, tmp_path):
        store = ShardStore(tmp_path / "new", create=True)
        assert store.root.is_dir()

    def test_root_must_be_directory(self, tmp_path):
        (tmp_path / "file").write_text("x")
        with pytest.raises(DataRootError):
            ShardStore(tmp_path / "file")

    @pytest.mark.parametrize("kwargs", [{"shard_capacity": 0}, {"prefix_length": 0}, {"prefix_length": 12}])
    def test_bad_parameters(self, tmp_path, kwargs):
        with pytest.raises(ValueError):
            ShardStore(tmp_path, **kwargs)


class TestShardPaths:
    def test_directory_depends_on_id_only(self, tmp_path):
        a = ShardStore(tmp_path / "a", create=True)
        b = ShardStore(tmp_path / "b", create=True)
        ids = ["dQw4w9WgXcQ", "9bZkp7q19f0", "kJQP7kiw5Fk"]

        first = [a.shard_directory(i) for i in ids]
        second = [b.shard_directory(i) for i in reversed(ids)]

        assert first == list(reversed(second))
        assert a.shard_directory("dQw4w9WgXcQ") == "shards/dq"

    def test_directory_rejects_invalid_id(self, store):
        with pytest.raises(InvalidVideoIdError):
            store.shard_directory("bad")

    def test_first_shard(self, store):
        assert store.choose_shard("dQw4w9WgXcQ", store.load_index()) == "shards/dq/0000.jsonl.gz"

    def test_shard_sequence(self):
        assert ShardStore.shard_sequence("shards/dq/0012.jsonl.gz") == 12


class TestPut:
    def test_round_trip(self, store, sample_record):
        shard_path = store.put(sample_record)

        contents = store.read_shard(shard_path)
        assert contents.records == [sample_record]
        assert contents.errors == []

    def test_index_updated(self, store, sample_record):
        shard_path = store.put(sample_record)
        index = store.load_index()

        assert index.total == 1
        assert index.processed == ["dQw4w9WgXcQ"]
        assert index.shards == {shard_path: ["dQw4w9WgXcQ"]}
        assert index.updated is not None

    def test_persisted_index_format(self, store, sample_record):
        store.put(sample_record)
        data = json.loads(store.index_path.read_text())
        assert set(data) == {"total", "updated", "shards", "processed"}

    def test_shard_is_gzip_jsonl(self, store, sample_record):
        shard_path = store.put(sample_record)
        lines = gzip.decompress((store.root / shard_path).read_bytes()).decode().splitlines()

        assert len(lines) == 1
        assert VideoRecord.from_dict(json.loads(lines[0])) == sample_record

    def test_invalid_id_rejected_before_io(self, store, make_record):
        with pytest.raises(InvalidVideoIdError):
            store.put(make_record("not-valid"))
        assert not store.index_path.exists()

    def test_duplicate_rejected(self, store, sample_record):
        store.put(sample_record)
        before = (store.root / "shards/dq/0000.jsonl.gz").read_bytes()

        with pytest.raises(DuplicateVideoError):
            store.put(sample_record)

        assert (store.root / "shards/dq/0000.jsonl.gz").read_bytes() == before
        assert store.load_index().total == 1

    def test_same_prefix_appends(self, store, make_record):
        store.put(make_record("abcdefghij1"))
        store.put(make_record("abcdefghij2"))

        contents = store.read_shard("shards/ab/0000.jsonl.gz")
        assert [r.id for r in contents.records] == ["abcdefghij1", "abcdefghij2"]

    def test_capacity_rollover(self, tmp_path, make_record):
        store = ShardStore(tmp_path / "data", shard_capacity=3, create=True)
        ids = [f"aa{i:09d}" for i in range(4)]
        for video_id in ids:
            store.put(make_record(video_id))

        index = store.load_index()
        assert index.shards == {
            "shards/aa/0000.jsonl.gz": ids[:3],
            "shards/aa/0001.jsonl.gz": ids[3:],
        }
        for shard_path, shard_ids in index.shards.items():
            records = store.read_shard(shard_path).records
            assert [r.id for r in records] == shard_ids
            assert len(records) <= 3

    def test_other_prefix_unaffected_by_rollover(self, tmp_path, make_record):
        store = ShardStore(tmp_path / "data", shard_capacity=1, create=True)
        store.put(make_record("aa000000001"))
        store.put(make_record("aa000000002"))
        store.put(make_record("bb000000001"))

        assert store.load_index().shard_for("bb000000001") == "shards/bb/0000.jsonl.gz"

    def test_case_variants_share_directory(self, store, make_record):
        store.put(make_record("ABcdefghijk"))
        store.put(make_record("abcdefghijk"))
        assert store.load_index().shards == {
            "shards/ab/0000.jsonl.gz": ["ABcdefghijk", "abcdefghijk"]
        }

    def test_failed_shard_write_leaves_store_unchanged(self, store, sample_record, make_record):
        store.put(sample_record)
        shard_file = store.root / "shards/dq/0000.jsonl.gz"
        before_shard = shard_file.read_bytes()
        before_index = store.index_path.read_bytes()

        with patch("utils.fileio.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StoreIOError):
                store.put(make_record("dQxxxxxxxxx"))

        assert shard_file.read_bytes() == before_shard
        assert store.index_path.read_bytes() == before_index
        assert "dQxxxxxxxxx" not in store.load_index()
        assert not [p for p in shard_file.parent.iterdir() if p.name.endswith(".tmp")]

    def test_failed_index_write_is_recoverable(self, store, sample_record):
        with patch("services.shard_store.atomic_write_json", side_effect=OSError("read-only")):
            with pytest.raises(StoreIOError):
                store.put(sample_record)

        # Shard landed, index did not: the id is not claimed
        assert "dQw4w9WgXcQ" not in store.load_index()
        assert store.read_shard("shards/dq/0000.jsonl.gz").records == [sample_record]

        # Retrying repairs the index without writing a second copy
        store.put(sample_record)
        assert store.load_index().processed == ["dQw4w9WgXcQ"]
        assert len(store.read_shard("shards/dq/0000.jsonl.gz").records) == 1

    def test_orphan_counts_toward_capacity(self, tmp_path, make_record):
        store = ShardStore(tmp_path / "data", shard_capacity=2, create=True)
        first, orphan, third = (make_record(f"aa00000000{i}") for i in (1, 2, 3))

        store.put(first)
        with patch("services.shard_store.atomic_write_json", side_effect=OSError("read-only")):
            with pytest.raises(StoreIOError):
                store.put(orphan)
        store.put(third)
        store.put(orphan)

        index = store.load_index()
        assert index.shards == {
            "shards/aa/0000.jsonl.gz": ["aa000000001", "aa000000002"],
            "shards/aa/0001.jsonl.gz": ["aa000000003"],
        }
        for shard_path, shard_ids in index.shards.items():
            assert [r.id for r in store.read_shard(shard_path).records] == shard_ids

        rebuilt = store.rebuild_index()
        assert rebuilt.duplicates == []
        assert rebuilt.index.shards == index.shards

    def test_orphan_in_unindexed_shard_is_found(self, tmp_path, make_record):
        store = ShardStore(tmp_path / "data", shard_capacity=1, create=True)
        store.put(make_record("aa000000001"))
        with patch("services.shard_store.atomic_write_json", side_effect=OSError("read-only")):
            with pytest.raises(StoreIOError):
                store.put(make_record("aa000000002"))

        assert store.put(make_record("aa000000002")) == "shards/aa/0001.jsonl.gz"
        assert len(store.read_shard("shards/aa/0001.jsonl.gz").records) == 1

    def test_corrupt_target_shard_not_overwritten(self, store, make_record):
        shard_file = store.root / "shards/ab/0000.jsonl.gz"
        shard_file.parent.mkdir(parents=True)
        shard_file.write_bytes(b"not gzip at all")

        with pytest.raises(CorruptShardError):
            store.put(make_record("abcdefghijk"))
        assert shard_file.read_bytes() == b"not gzip at all"


class TestReadShard:
    def test_missing_shard(self, store):
        with pytest.raises(VideoNotFoundError):
            store.read_shard("shards/zz/0000.jsonl.gz")

    def test_corrupt_gzip(self, store):
        path = store.root / "shards/zz/0000.jsonl.gz"
        path.parent.mkdir(parents=True)
        path.write_bytes(b"\x1f\x8b garbage")
        with pytest.raises(CorruptShardError):
            store.read_shard("shards/zz/0000.jsonl.gz")

    def test_bad_lines_skipped(self, store, make_record):
        good_a = serialize_record(make_record("zzzzzzzzzz1"))
        good_b = serialize_record(make_record("zzzzzzzzzz2"))
        write_raw_shard(
            store,
            "shards/zz/0000.jsonl.gz",
            [good_a, "{not json", '{"title": "no id"}', "", good_b],
        )

        contents = store.read_shard("shards/zz/0000.jsonl.gz")

        assert [r.id for r in contents.records] == ["zzzzzzzzzz1", "zzzzzzzzzz2"]
        assert len(contents.errors) == 2
        assert all("shards/zz/0000.jsonl.gz" in e for e in contents.errors)

    def test_iter_shards_reports_missing(self, populated_store):
        index = populated_store.load_index()
        (populated_store.root / "shards/kj/0000.jsonl.gz").unlink()

        results = list(populated_store.iter_shards(index))

        assert [c.path for c in results] == sorted(index.shards)
        missing = [c for c in results if c.path == "shards/kj/0000.jsonl.gz"][0]
        assert missing.records == []
        assert missing.errors

    def test_iter_shards_resume(self, populated_store):
        index = populated_store.load_index()
        paths = sorted(index.shards)
        resumed = [c.path for c in populated_store.iter_shards(index, start_after=paths[1])]
        assert resumed == paths[2:]


class TestLoadIndex:
    def test_missing_index_is_empty_store(self, store):
        index = store.load_index()
        assert index.total == 0
        assert index.shards == {}

    def test_unparseable_index_is_fatal(self, store):
        store.index_path.parent.mkdir(parents=True)
        store.index_path.write_text("{ truncated")
        with pytest.raises(IndexCorruptError):
            store.load_index()

    def test_wrong_schema_is_fatal(self, store):
        store.index_path.parent.mkdir(parents=True)
        store.index_path.write_text('{"shards": [], "processed": []}')
        with pytest.raises(IndexCorruptError):
            store.load_index()

    def test_total_corrected_from_processed(self, store):
        store.index_path.parent.mkdir(parents=True)
        store.index_path.write_text(
            json.dumps({"total": 7, "updated": None, "shards": {}, "processed": []})
        )
        assert store.load_index().total == 0


class TestRebuildIndex:
    def test_rebuild_restores_deleted_index(self, populated_store):
        before = populated_store.load_index()
        populated_store.index_path.unlink()

        result = populated_store.rebuild_index()

        assert result.index.total == before.total
        assert set(result.index.processed) == set(before.processed)
        assert result.index.shards == before.shards
        assert populated_store.load_index().total == before.total

    def test_rebuild_picks_up_orphans(self, store, make_record):
        write_raw_shard(store, "shards/zz/0000.jsonl.gz", [serialize_record(make_record("zzzzzzzzzz1"))])
        assert store.load_index().total == 0

        result = store.rebuild_index()

        assert result.index.processed == ["zzzzzzzzzz1"]
        assert result.shards_scanned == 1

    def test_rebuild_reports_duplicates_and_corruption(self, store, make_record):
        line = serialize_record(make_record("zzzzzzzzzz1"))
        write_raw_shard(store, "shards/zz/0000.jsonl.gz", [line, "garbage"])
        write_raw_shard(store, "shards/zz/0001.jsonl.gz", [line])
        broken = store.root / "shards/yy/0000.jsonl.gz"
        broken.parent.mkdir(parents=True)
        broken.write_bytes(b"broken")

        result = store.rebuild_index()

        assert result.index.shards["shards/zz/0000.jsonl.gz"] == ["zzzzzzzzzz1"]
        assert result.index.shards["shards/zz/0001.jsonl.gz"] == []
        assert result.duplicates == ["zzzzzzzzzz1 (shards/zz/0001.jsonl.gz)"]
        assert len(result.errors) == 2  # garbage line + undecompressable shard


class TestConcurrentWrites:
    def test_threads_share_one_lock_per_root(self, tmp_path, make_record):
        root = tmp_path / "data"
        ShardStore(root, create=True)
        ids = [f"aa{i:09d}" for i in range(40)]
        failures = []

        def worker(video_id):
            try:
                ShardStore(root, shard_capacity=7).put(make_record(video_id))
            except Exception as e:  # collected and asserted below
                failures.append(e)

        threads = [threading.Thread(target=worker, args=(vid,)) for vid in ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert failures == []
        store = ShardStore(root, shard_capacity=7)
        index = store.load_index()
        assert sorted(index.processed) == ids
        assert index.total == 40
        assert len(index.shards) == 6

        on_disk = []
        for shard_path, shard_ids in index.shards.items():
            records = store.read_shard(shard_path).records
            assert [r.id for r in records] == shard_ids
            assert len(records) <= 7
            on_disk.extend(r.id for r in records)
        assert sorted(on_disk) == ids
