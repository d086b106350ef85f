from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from PIL import Image, ImageDraw

from doctranslate.store.models import JobRecord, JobStatus
from doctranslate.store.record_store import RecordFileJobStore
from doctranslate.store.snapshot_store import SnapshotJobStore

MakeRecord = Callable[..., JobRecord]


@pytest.fixture()
def make_record() -> MakeRecord:
    """Factory for JobRecords with sensible defaults."""

    def _make(
        job_id: str = "job-1",
        source_path: str = "data/scan.png",
        status: JobStatus = JobStatus.UPLOADED,
        **fields: object,
    ) -> JobRecord:
        return JobRecord(
            id=job_id,
            source_path=source_path,
            status=status,
            timestamp="2026-01-01T00:00:00+00:00",
            **fields,  # type: ignore[arg-type]
        )

    return _make


@pytest.fixture()
def snapshot_store(tmp_path: Path) -> Generator[SnapshotJobStore, None, None]:
    store = SnapshotJobStore(tmp_path / "db" / "db.json")
    store.initialize()
    yield store
    store.close()


@pytest.fixture()
def record_store(tmp_path: Path) -> RecordFileJobStore:
    store = RecordFileJobStore(tmp_path / "jobs")
    store.initialize()
    return store


@pytest.fixture()
def sample_image_path(tmp_path: Path) -> Path:
    """A small PNG with dark text on a white background."""
    path = tmp_path / "scan.png"
    image = Image.new("RGB", (400, 120), "white")
    ImageDraw.Draw(image).text((10, 40), "Hello OCR World", fill="black")
    image.save(path)
    return path
