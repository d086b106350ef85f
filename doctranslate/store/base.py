from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

from doctranslate.store.models import JobRecord, UpsertResult

Predicate = Callable[[JobRecord], bool]
Patch = Mapping[str, Any] | Callable[[JobRecord], Mapping[str, Any]]


def apply_patch(record: JobRecord, patch: Patch) -> JobRecord:
    """Merge a literal patch, or the patch computed from ``record``, into it."""
    values = patch(record) if callable(patch) else patch
    return record.merged(values)


def by_source_path(source_path: str) -> Predicate:
    return lambda record: record.source_path == source_path


def by_id(job_id: str) -> Predicate:
    return lambda record: record.id == job_id


class BaseJobStore(ABC):
    """Contract for all job store backends.

    Records are unique by ``source_path``. Mutations persist before they
    return; persistence failures surface as ``JobStoreError``.
    """

    @abstractmethod
    def initialize(self) -> None:
        """Prepare the backing location and load existing state. Idempotent.

        Raises:
            CorruptSnapshotError: if existing state cannot be decoded and
                quarantine is disabled.
        """

    @abstractmethod
    def read_all(self) -> list[JobRecord]:
        """Return a copy of every record in insertion order."""

    @abstractmethod
    def insert(self, record: JobRecord) -> JobRecord:
        """Add a new record.

        Raises:
            DuplicateJobError: if a record with the same source_path exists.
        """

    @abstractmethod
    def update(self, predicate: Predicate, patch: Patch) -> int:
        """Merge ``patch`` into every matching record. Returns the match count."""

    @abstractmethod
    def upsert(self, predicate: Predicate, record: JobRecord) -> UpsertResult:
        """Merge ``record`` into the first match, or append it when none match."""

    @abstractmethod
    def delete(self, predicate: Predicate) -> int:
        """Remove every matching record. Returns the removed count."""

    @abstractmethod
    def clear(self) -> int:
        """Remove all records. Returns the prior count."""

    def close(self) -> None:
        """Release background resources. Safe to call more than once."""

    def find_one(self, predicate: Predicate) -> JobRecord | None:
        return next((r for r in self.read_all() if predicate(r)), None)

    def find_all(self, predicate: Predicate | None = None) -> list[JobRecord]:
        records = self.read_all()
        if predicate is None:
            return records
        return [r for r in records if predicate(r)]

    def get(self, source_path: str) -> JobRecord | None:
        return self.find_one(by_source_path(source_path))

    def get_by_id(self, job_id: str) -> JobRecord | None:
        return self.find_one(by_id(job_id))

    def __enter__(self) -> "BaseJobStore":
        self.initialize()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
