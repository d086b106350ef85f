from pathlib import Path

from doctranslate.config.settings import Settings
from doctranslate.store.base import BaseJobStore
from doctranslate.store.connection import init_pool
from doctranslate.store.postgres_store import PostgresJobStore
from doctranslate.store.record_store import RecordFileJobStore
from doctranslate.store.snapshot_store import SnapshotJobStore


class JobStoreFactory:
    """Creates the configured job store backend."""

    BACKENDS = ("records", "snapshot", "postgres")

    @classmethod
    def create(cls, settings: Settings) -> BaseJobStore:
        backend = settings.job_store_backend.lower()
        if backend == "records":
            return RecordFileJobStore(
                Path(settings.job_store_records_dir),
                quarantine_corrupt=settings.quarantine_corrupt_snapshot,
            )
        if backend == "snapshot":
            return SnapshotJobStore(
                Path(settings.job_store_snapshot_path),
                quarantine_corrupt=settings.quarantine_corrupt_snapshot,
            )
        if backend == "postgres":
            init_pool(settings)
            return PostgresJobStore()
        raise ValueError(
            f"Unknown job store backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
        )
