import time
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from pika.adapters.blocking_connection import BlockingChannel

from doctranslate.broker.codec import decode
from doctranslate.broker.exceptions import MessageDecodeError
from doctranslate.config.settings import Settings
from doctranslate.logging.logger import Log
from doctranslate.store.base import BaseJobStore, by_source_path
from doctranslate.store.models import JobRecord, JobStatus, utc_now_iso


class Publisher(Protocol):
    def publish(self, queue: str, payload: dict[str, Any]) -> None: ...


def new_job_id() -> str:
    return uuid.uuid4().hex


class IngressService:
    """Entry side of the pipeline: create jobs, enqueue them, report status."""

    def __init__(self, store: BaseJobStore, publisher: Publisher, settings: Settings) -> None:
        self._store = store
        self._publisher = publisher
        self._settings = settings

    def submit(self, source_path: str) -> JobRecord:
        """Create a job for ``source_path`` and enqueue it for OCR.

        A source that already has a finished document, or a job still in
        flight, is not enqueued again; its current record is returned.
        A job still waiting in `uploaded` is published again. A job that ended
        in a failed state is reset and resubmitted.
        """
        existing = self._store.get(source_path)
        if existing is not None:
            if self._has_output(existing):
                Log.info(f"Job {existing.id} for {source_path} already completed")
                return existing
            if existing.status is JobStatus.UPLOADED:
                # Stored but maybe never enqueued; OCR skips duplicate deliveries.
                self._publisher.publish(self._settings.ocr_queue, existing.to_dict())
                Log.info(f"Job {existing.id} for {source_path} queued again")
                return existing
            if not existing.status.is_terminal:
                Log.info(f"Job {existing.id} for {source_path} is {existing.status.value}")
                return existing

        record = JobRecord(
            id=new_job_id(),
            source_path=source_path,
            status=JobStatus.UPLOADED,
            timestamp=utc_now_iso(),
        )
        if existing is None:
            self._store.insert(record)
        else:
            Log.info(
                f"Resubmitting {source_path}, previous job {existing.id} "
                f"was {existing.status.value}"
            )
            self._store.update(by_source_path(source_path), record.to_patch(include_none=True))

        self._publisher.publish(self._settings.ocr_queue, record.to_dict())
        Log.info(f"Job {record.id} queued for {source_path}")
        return record

    def get_status(self, job_id: str) -> JobRecord | None:
        return self._store.get_by_id(job_id)

    def poll_until_done(
        self,
        job_id: str,
        timeout_seconds: float,
        interval_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> JobRecord | None:
        """Poll the store until the job reaches a terminal status or time runs out."""
        deadline = time.monotonic() + timeout_seconds
        while True:
            record = self.get_status(job_id)
            if record is not None and record.status.is_terminal:
                return record
            if time.monotonic() >= deadline:
                return record
            sleep(interval_seconds)

    @staticmethod
    def _has_output(record: JobRecord) -> bool:
        return (
            record.status is JobStatus.COMPLETED
            and bool(record.output_path)
            and Path(record.output_path or "").exists()
        )


def wait_for_result(
    channel: BlockingChannel,
    result_queue: str,
    job_id: str,
    timeout_seconds: float,
    store: BaseJobStore | None = None,
) -> dict[str, Any] | None:
    """Consume ``result_queue`` until the completion event for ``job_id`` arrives.

    The matching event is acked. Events for other jobs are held unacked while
    waiting and requeued at the end, so they are not redelivered to this loop.
    With a ``store``, a job that ended in a failed status stops the wait and
    its record is returned, since failed jobs emit no event.
    Returns None when nothing arrives before the timeout.
    """
    deadline = time.monotonic() + timeout_seconds
    result: dict[str, Any] | None = None
    held: list[int] = []
    for method, _properties, body in channel.consume(result_queue, inactivity_timeout=1.0):
        if method is not None:
            try:
                payload = decode(body)
            except MessageDecodeError as exc:
                Log.error(f"Dropping undecodable result event: {exc}")
                channel.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
                payload = None
            if payload is not None and str(payload.get("id")) == job_id:
                channel.basic_ack(delivery_tag=method.delivery_tag)
                result = payload
                break
            if payload is not None:
                held.append(method.delivery_tag)
        if store is not None:
            record = store.get_by_id(job_id)
            if record is not None and record.status.is_failed:
                Log.error(f"Job {job_id} ended as {record.status.value}: {record.error}")
                result = record.to_dict()
                break
        if time.monotonic() >= deadline:
            break
    for delivery_tag in held:
        channel.basic_nack(delivery_tag=delivery_tag, requeue=True)
    channel.cancel()
    return result
