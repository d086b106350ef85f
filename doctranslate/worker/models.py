from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from doctranslate.store.models import JobRecord, JobStatus


@dataclass(frozen=True)
class StageSpec:
    """Queue wiring, concurrency bound and status vocabulary of one stage."""

    name: str
    input_queue: str
    output_queue: str | None
    prefetch: int
    entry_status: JobStatus
    processing_status: JobStatus
    completed_status: JobStatus
    failed_status: JobStatus
    timeout_seconds: float | None = None


class BaseStageHandler(ABC):
    """Contract for the work one stage performs on a job."""

    @abstractmethod
    def handle(self, record: JobRecord) -> dict[str, Any]:
        """Run the stage on ``record``.

        Returns:
            JobRecord fields to merge into the record on success.

        Raises:
            Exception: any failure; the job moves to the stage's failed status.
        """

    def output_payload(self, record: JobRecord) -> dict[str, Any]:
        """Message published on the stage's output queue after success."""
        return record.to_dict()


class OutcomeKind(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    REJECTED = "rejected"
    REQUEUE = "requeue"


@dataclass(frozen=True)
class Publication:
    queue: str
    payload: dict[str, Any]


@dataclass(frozen=True)
class StageOutcome:
    """What the runtime must do with a delivery after the job runner is done."""

    kind: OutcomeKind
    record: JobRecord | None = None
    publications: list[Publication] = field(default_factory=list)

    @property
    def requeue(self) -> bool:
        return self.kind is OutcomeKind.REQUEUE
