from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from doctranslate.store.exceptions import InvalidStatusTransitionError


class JobStatus(str, Enum):
    """Pipeline state of a job."""

    UPLOADED = "uploaded"
    OCR_PROCESSING = "ocr_processing"
    OCR_COMPLETED = "ocr_completed"
    OCR_FAILED = "ocr_failed"
    TRANSLATION_PROCESSING = "translation_processing"
    TRANSLATION_COMPLETED = "translation_completed"
    TRANSLATION_FAILED = "translation_failed"
    PDF_PROCESSING = "pdf_processing"
    PDF_FAILED = "pdf_failed"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]

    @property
    def is_failed(self) -> bool:
        return self.value.endswith("_failed")

    def can_transition_to(self, target: "JobStatus") -> bool:
        return target in ALLOWED_TRANSITIONS[self]


# *_processing may re-enter itself when the broker redelivers an unacked message.
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.UPLOADED: frozenset({JobStatus.OCR_PROCESSING}),
    JobStatus.OCR_PROCESSING: frozenset(
        {JobStatus.OCR_PROCESSING, JobStatus.OCR_COMPLETED, JobStatus.OCR_FAILED}
    ),
    JobStatus.OCR_COMPLETED: frozenset({JobStatus.TRANSLATION_PROCESSING}),
    JobStatus.OCR_FAILED: frozenset(),
    JobStatus.TRANSLATION_PROCESSING: frozenset(
        {
            JobStatus.TRANSLATION_PROCESSING,
            JobStatus.TRANSLATION_COMPLETED,
            JobStatus.TRANSLATION_FAILED,
        }
    ),
    JobStatus.TRANSLATION_COMPLETED: frozenset({JobStatus.PDF_PROCESSING}),
    JobStatus.TRANSLATION_FAILED: frozenset(),
    JobStatus.PDF_PROCESSING: frozenset(
        {JobStatus.PDF_PROCESSING, JobStatus.COMPLETED, JobStatus.PDF_FAILED}
    ),
    JobStatus.PDF_FAILED: frozenset(),
    JobStatus.COMPLETED: frozenset(),
}


# Python attribute name -> JSON key used on the wire and on disk.
WIRE_KEYS: dict[str, str] = {
    "id": "id",
    "source_path": "sourcePath",
    "status": "status",
    "original_text": "originalText",
    "normalized_text": "normalizedText",
    "translated_text": "translatedText",
    "output_path": "outputPath",
    "error": "error",
    "timestamp": "timestamp",
}

# Keys written by older producers.
LEGACY_KEYS: dict[str, str] = {
    "originalFilePath": "source_path",
    "pdfPath": "output_path",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class JobRecord:
    """One job tracked end-to-end through the pipeline, keyed by source_path."""

    id: str
    source_path: str
    status: JobStatus = JobStatus.UPLOADED
    original_text: str | None = None
    normalized_text: str | None = None
    translated_text: str | None = None
    output_path: str | None = None
    error: str | None = None
    timestamp: str = ""

    def merged(self, patch: Mapping[str, Any]) -> "JobRecord":
        """Return a copy with the fields in ``patch`` overriding this record's."""
        unknown = set(patch) - set(WIRE_KEYS)
        if unknown:
            raise ValueError(f"Unknown JobRecord fields: {sorted(unknown)}")
        values = dict(patch)
        if "status" in values:
            values["status"] = JobStatus(values["status"])
        return replace(self, **values)

    def with_status(self, status: JobStatus, **changes: Any) -> "JobRecord":
        """Move to ``status``, enforcing the pipeline state machine."""
        if not self.status.can_transition_to(status):
            raise InvalidStatusTransitionError(
                f"Job {self.id} cannot move from {self.status.value} to {status.value}"
            )
        return replace(self, status=status, **changes)

    def to_patch(self, *, include_none: bool = False) -> dict[str, Any]:
        """Fields to merge into an existing record; unset fields are skipped by default."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if include_none or getattr(self, f.name) is not None
        }

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for attr, key in WIRE_KEYS.items():
            value = getattr(self, attr)
            data[key] = value.value if isinstance(value, JobStatus) else value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JobRecord":
        """Build a record from its JSON form. Raises ValueError on bad shape."""
        values: dict[str, Any] = {}
        for attr, key in WIRE_KEYS.items():
            if key in data:
                values[attr] = data[key]
        for legacy_key, attr in LEGACY_KEYS.items():
            if attr not in values and legacy_key in data:
                values[attr] = data[legacy_key]

        if not values.get("source_path"):
            raise ValueError("Job record is missing sourcePath")
        if not values.get("id"):
            raise ValueError("Job record is missing id")
        values["id"] = str(values["id"])
        values["status"] = JobStatus(values.get("status") or JobStatus.UPLOADED)
        values.setdefault("timestamp", "")
        return cls(**values)


class UpsertResult(str, Enum):
    UPDATED = "updated"
    INSERTED = "inserted"
