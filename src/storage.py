"""
Listing storage: batched emission to append-only sinks.
"""
import json
import logging
import os
import threading
from typing import List, Optional

import pandas as pd

from config.config import BATCH_SIZE
from src.errors import SinkError
from src.models import ListingRecord

logger = logging.getLogger(__name__)


class JsonlDatasetSink:
    """Appends each record as one JSON line."""

    def __init__(self, path: str):
        self.path = path
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def push_batch(self, records: List[ListingRecord]):
        with open(self.path, "a", encoding="utf-8") as f:
            for rec in records:
                f.write(json.dumps(rec.to_dict(), ensure_ascii=False) + "\n")


class CsvDatasetSink:
    """Appends records to a CSV file; the header is written with the first batch only."""

    def __init__(self, path: str):
        self.path = path
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def push_batch(self, records: List[ListingRecord]):
        df = pd.DataFrame([r.to_dict() for r in records], columns=ListingRecord.field_names())
        write_header = not os.path.exists(self.path) or os.path.getsize(self.path) == 0
        df.to_csv(self.path, mode="a", header=write_header, index=False)


class MemorySink:
    """Keeps pushed batches in memory."""

    def __init__(self):
        self.batches: List[List[ListingRecord]] = []

    def push_batch(self, records: List[ListingRecord]):
        self.batches.append(list(records))

    @property
    def records(self) -> List[ListingRecord]:
        return [r for batch in self.batches for r in batch]


class BatchedEmitter:
    """
    Buffers validated records and pushes them to a sink in fixed-size batches.

    A failed push raises SinkError and leaves the records buffered; the next
    add/flush/close pushes them again. close() marks the emitter closed only
    once the final flush succeeded; records added after that are rejected.
    """

    def __init__(self, sink, batch_size: int = BATCH_SIZE, on_flush=None):
        self.sink = sink
        self.batch_size = max(1, batch_size)
        self.on_flush = on_flush
        self.records_emitted = 0
        self.batches_flushed = 0
        self._buffer: List[ListingRecord] = []
        self._lock = threading.Lock()
        self._closed = False

    def add(self, record: ListingRecord):
        with self._lock:
            if self._closed:
                raise RuntimeError("Emitter is closed")
            self._buffer.append(record)
            self._flush_locked(full_batches_only=True)

    def flush(self):
        with self._lock:
            self._flush_locked()

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._flush_locked()
            self._closed = True

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._buffer)

    def _flush_locked(self, full_batches_only: bool = False):
        while self._buffer:
            if full_batches_only and len(self._buffer) < self.batch_size:
                return
            batch = self._buffer[:self.batch_size]
            try:
                self.sink.push_batch(list(batch))
            except Exception as e:
                raise SinkError(f"Failed to push batch of {len(batch)} listings: {e}") from e
            del self._buffer[:len(batch)]
            self.records_emitted += len(batch)
            self.batches_flushed += 1
            logger.info(f"Pushed batch of {len(batch)} listings (total {self.records_emitted})")
            if self.on_flush:
                self.on_flush(len(batch), self.records_emitted)


def create_sink(output_format: str, output_dir: str, run_name: str, table_name: Optional[str] = None):
    """Create the configured output sink."""
    if output_format == "jsonl":
        return JsonlDatasetSink(os.path.join(output_dir, f"{run_name}.jsonl"))
    if output_format == "csv":
        return CsvDatasetSink(os.path.join(output_dir, f"{run_name}.csv"))
    if output_format == "supabase":
        from src.supabase_storage import SupabaseStorage
        return SupabaseStorage(table_name) if table_name else SupabaseStorage()
    raise ValueError(f"Unknown output format: {output_format}")
