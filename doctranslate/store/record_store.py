"""Job store with one JSON file per record.

Every read goes to disk and every write replaces a single record file
atomically, so processes mutating different jobs never overwrite each other.
"""

import hashlib
import json
import threading
import time
from pathlib import Path
from typing import Any

from doctranslate.logging.logger import Log
from doctranslate.store.atomic import atomic_create_json, atomic_write_json, quarantine
from doctranslate.store.base import BaseJobStore, Patch, Predicate, apply_patch
from doctranslate.store.exceptions import CorruptSnapshotError, DuplicateJobError, JobStoreError
from doctranslate.store.models import JobRecord, UpsertResult


def record_file_name(source_path: str) -> str:
    return hashlib.sha256(source_path.encode("utf-8")).hexdigest()[:40] + ".json"


class RecordFileJobStore(BaseJobStore):
    """Directory of ``<sha256(source_path)>.json`` files, one per job."""

    def __init__(self, records_dir: Path, *, quarantine_corrupt: bool = False) -> None:
        self._dir = Path(records_dir)
        self._quarantine_corrupt = quarantine_corrupt
        self._lock = threading.RLock()
        self._initialized = False

    @property
    def directory(self) -> Path:
        return self._dir

    def initialize(self) -> None:
        with self._lock:
            if self._initialized:
                return
            self._dir.mkdir(parents=True, exist_ok=True)
            count = len(self._load_all())
            self._initialized = True
            Log.info(f"Record job store ready at {self._dir} ({count} records)")

    def read_all(self) -> list[JobRecord]:
        self._ensure_initialized()
        return [record for _, _, record in self._load_all()]

    def insert(self, record: JobRecord) -> JobRecord:
        self._ensure_initialized()
        with self._lock:
            try:
                atomic_create_json(self._path_for(record), self._envelope(record, time.time_ns()))
            except FileExistsError as exc:
                raise DuplicateJobError(f"Job for {record.source_path} already exists") from exc
            except OSError as exc:
                raise JobStoreError(f"Failed to insert job {record.id}: {exc}") from exc
        return record

    def update(self, predicate: Predicate, patch: Patch) -> int:
        self._ensure_initialized()
        updated = 0
        with self._lock:
            for seq, path, record in self._load_all():
                if predicate(record):
                    self._replace(path, seq, apply_patch(record, patch))
                    updated += 1
        return updated

    def upsert(self, predicate: Predicate, record: JobRecord) -> UpsertResult:
        self._ensure_initialized()
        with self._lock:
            for seq, path, existing in self._load_all():
                if predicate(existing):
                    self._replace(path, seq, existing.merged(record.to_patch()))
                    return UpsertResult.UPDATED
            self.insert(record)
        return UpsertResult.INSERTED

    def delete(self, predicate: Predicate) -> int:
        self._ensure_initialized()
        removed = 0
        with self._lock:
            for _, path, record in self._load_all():
                if predicate(record):
                    self._unlink(path)
                    removed += 1
        return removed

    def clear(self) -> int:
        return self.delete(lambda record: True)

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self.initialize()

    def _path_for(self, record: JobRecord) -> Path:
        return self._dir / record_file_name(record.source_path)

    @staticmethod
    def _envelope(record: JobRecord, seq: int) -> dict[str, Any]:
        return {"seq": seq, "record": record.to_dict()}

    def _replace(self, path: Path, seq: int, record: JobRecord) -> None:
        target = self._path_for(record)
        try:
            atomic_write_json(target, self._envelope(record, seq))
            if target != path:
                path.unlink(missing_ok=True)
        except OSError as exc:
            raise JobStoreError(f"Failed to persist job {record.id}: {exc}") from exc

    @staticmethod
    def _unlink(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise JobStoreError(f"Failed to delete {path}: {exc}") from exc

    def _load_all(self) -> list[tuple[int, Path, JobRecord]]:
        entries = []
        for path in self._dir.glob("*.json"):
            entry = self._load(path)
            if entry is not None:
                entries.append(entry)
        entries.sort(key=lambda e: (e[0], e[1].name))
        return entries

    def _load(self, path: Path) -> tuple[int, Path, JobRecord] | None:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            # Deleted by another process after the directory listing.
            return None
        try:
            raw = json.loads(text)
            return int(raw["seq"]), path, JobRecord.from_dict(raw["record"])
        except (ValueError, TypeError, KeyError) as exc:
            if not self._quarantine_corrupt:
                raise CorruptSnapshotError(f"Cannot decode job record {path}: {exc}") from exc
            moved = quarantine(path)
            Log.error(f"Corrupt job record moved to {moved}: {exc}")
            return None
