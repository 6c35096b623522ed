"""Store singletons and dependency injection for the caption API."""

from services.queue_reconciler import QueueReconciler
from services.record_reader import RecordReader
from services.shard_store import ShardStore
from utils.config import load_config

# Service singletons
_store: ShardStore | None = None
_reader: RecordReader | None = None
_queue: QueueReconciler | None = None


def get_store() -> ShardStore:
    """Get or open the shard store.

    Raises:
        DataRootError: If the configured data root does not exist.
    """
    global _store
    if _store is None:
        config = load_config()
        _store = ShardStore(
            config["data_root"],
            shard_capacity=config["shard_capacity"],
            prefix_length=config["shard_prefix_length"],
        )
    return _store


def get_reader() -> RecordReader:
    """Get or create the record reader instance."""
    global _reader
    if _reader is None:
        _reader = RecordReader(get_store())
    return _reader


def get_queue_reconciler() -> QueueReconciler:
    """Get or create the queue reconciler instance."""
    global _queue
    if _queue is None:
        _queue = QueueReconciler(load_config()["queue_file"])
    return _queue


def get_page_limits() -> tuple[int, int]:
    """(default, maximum) page size."""
    config = load_config()
    return config["default_page_size"], config["max_page_size"]

