"""Job store persisted as one JSON snapshot of every record.

Each process holds its own in-memory copy, loaded once at initialize() and
written back wholesale after every mutation. Two processes sharing one
snapshot file therefore overwrite each other: the last writer's view of
*all* records wins, discarding updates the other process made to records it
never touched. Use RecordFileJobStore or PostgresJobStore when more than one
process mutates the store.
"""

import json
import queue
import threading
from concurrent.futures import Future
from pathlib import Path

from doctranslate.logging.logger import Log
from doctranslate.store.atomic import atomic_write_json, quarantine
from doctranslate.store.base import BaseJobStore, Patch, Predicate, apply_patch
from doctranslate.store.exceptions import CorruptSnapshotError, DuplicateJobError, JobStoreError
from doctranslate.store.models import JobRecord, UpsertResult


class SnapshotJobStore(BaseJobStore):
    """In-memory records with serialized, atomic snapshot persistence."""

    def __init__(self, snapshot_path: Path, *, quarantine_corrupt: bool = False) -> None:
        self._path = Path(snapshot_path)
        self._quarantine_corrupt = quarantine_corrupt
        self._records: list[JobRecord] = []
        self._lock = threading.RLock()
        self._initialized = False
        self._requests: queue.Queue[Future[None] | None] = queue.Queue()
        self._writer: threading.Thread | None = None
        self.writes = 0

    @property
    def path(self) -> Path:
        return self._path

    def initialize(self) -> None:
        with self._lock:
            if self._initialized:
                return
            self._path.parent.mkdir(parents=True, exist_ok=True)
            if self._path.exists():
                self._records = self._load()
            else:
                self._records = []
                atomic_write_json(self._path, [])
            self._writer = threading.Thread(
                target=self._drain, name="job-store-writer", daemon=True
            )
            self._writer.start()
            self._initialized = True
            Log.info(f"Snapshot job store ready at {self._path} ({len(self._records)} records)")

    def close(self) -> None:
        with self._lock:
            writer = self._writer
            if writer is None:
                return
            self._writer = None
            self._initialized = False
        self._requests.put(None)
        writer.join()

    def read_all(self) -> list[JobRecord]:
        self._ensure_initialized()
        with self._lock:
            return list(self._records)

    def insert(self, record: JobRecord) -> JobRecord:
        self._ensure_initialized()
        with self._lock:
            self._check_unique(record.source_path)
            self._records.append(record)
        self._persist()
        return record

    def update(self, predicate: Predicate, patch: Patch) -> int:
        self._ensure_initialized()
        with self._lock:
            updated = 0
            records = []
            for record in self._records:
                if predicate(record):
                    record = apply_patch(record, patch)
                    updated += 1
                records.append(record)
            self._records = records
        if updated > 0:
            self._persist()
        return updated

    def upsert(self, predicate: Predicate, record: JobRecord) -> UpsertResult:
        self._ensure_initialized()
        with self._lock:
            index = next(
                (i for i, existing in enumerate(self._records) if predicate(existing)), None
            )
            if index is None:
                self._check_unique(record.source_path)
                self._records.append(record)
                result = UpsertResult.INSERTED
            else:
                self._records[index] = self._records[index].merged(record.to_patch())
                result = UpsertResult.UPDATED
        self._persist()
        return result

    def delete(self, predicate: Predicate) -> int:
        self._ensure_initialized()
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if not predicate(r)]
            removed = before - len(self._records)
        if removed:
            self._persist()
        return removed

    def clear(self) -> int:
        self._ensure_initialized()
        with self._lock:
            removed = len(self._records)
            self._records = []
        self._persist()
        return removed

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self.initialize()

    def _check_unique(self, source_path: str) -> None:
        if any(r.source_path == source_path for r in self._records):
            raise DuplicateJobError(f"Job for {source_path} already exists")

    def _load(self) -> list[JobRecord]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(raw, list):
                raise ValueError("snapshot must be a JSON array")
            return [JobRecord.from_dict(item) for item in raw]
        except (ValueError, TypeError, AttributeError) as exc:
            if not self._quarantine_corrupt:
                raise CorruptSnapshotError(
                    f"Cannot decode job snapshot {self._path}: {exc}"
                ) from exc
            moved = quarantine(self._path)
            Log.error(f"Corrupt job snapshot moved to {moved}, starting empty: {exc}")
            atomic_write_json(self._path, [])
            return []

    def _persist(self) -> None:
        """Queue a write of the current state and wait for it to land on disk."""
        request: Future[None] = Future()
        self._requests.put(request)
        request.result()

    def _drain(self) -> None:
        while True:
            request = self._requests.get()
            if request is None:
                return
            batch = [request]
            stop = False
            # Pending requests are satisfied by the same write: it serializes
            # state that already includes their mutations.
            while True:
                try:
                    pending = self._requests.get_nowait()
                except queue.Empty:
                    break
                if pending is None:
                    stop = True
                    break
                batch.append(pending)
            self._write_batch(batch)
            if stop:
                return

    def _write_batch(self, batch: list[Future[None]]) -> None:
        with self._lock:
            payload = [r.to_dict() for r in self._records]
        try:
            atomic_write_json(self._path, payload)
        except Exception as exc:
            Log.error(f"Failed to persist job snapshot {self._path}: {exc}")
            for request in batch:
                error = JobStoreError(f"Failed to persist job snapshot: {exc}")
                error.__cause__ = exc
                request.set_exception(error)
            return
        self.writes += 1
        for request in batch:
            request.set_result(None)
