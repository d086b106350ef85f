import contextvars
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any

from doctranslate.broker.codec import decode, decode_job
from doctranslate.broker.exceptions import MessageDecodeError
from doctranslate.logging.logger import Log
from doctranslate.store.base import BaseJobStore, by_source_path
from doctranslate.store.exceptions import JobStoreError
from doctranslate.store.models import JobRecord
from doctranslate.worker.exceptions import StageTimeoutError
from doctranslate.worker.models import (
    BaseStageHandler,
    OutcomeKind,
    Publication,
    StageOutcome,
    StageSpec,
)


class JobRunner:
    """Run one delivery through a stage: look up, mark, handle, record the result.

    Never raises for handler failures; the job is moved to the stage's
    failed status instead. Store failures produce a REQUEUE outcome so the
    broker redelivers the message.
    """

    def __init__(
        self,
        stage: StageSpec,
        handler: BaseStageHandler,
        store: BaseJobStore,
        *,
        max_attempts: int = 1,
        retry_backoff_seconds: float = 0.0,
        dead_letter_queue: str = "",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._stage = stage
        self._handler = handler
        self._store = store
        self._max_attempts = max(1, max_attempts)
        self._retry_backoff_seconds = retry_backoff_seconds
        self._dead_letter_queue = dead_letter_queue
        self._sleep = sleep

    @property
    def stage(self) -> StageSpec:
        return self._stage

    def run(self, body: bytes) -> StageOutcome:
        try:
            message = decode_job(body)
        except MessageDecodeError as exc:
            Log.error(f"{self._stage.name}: dropping undecodable message: {exc}")
            return StageOutcome(OutcomeKind.REJECTED, publications=self._dead_letter(body, exc))

        with Log.job(message.id):
            Log.info(f"{self._stage.name}: processing {message.source_path}")
            try:
                return self._process(message, body)
            except JobStoreError as exc:
                Log.error(f"{self._stage.name}: job store unavailable, requeueing: {exc}")
                self._sleep(self._retry_backoff_seconds)
                return StageOutcome(OutcomeKind.REQUEUE, message)

    def _process(self, message: JobRecord, body: bytes) -> StageOutcome:
        record = self._store.get(message.source_path)
        if record is None:
            Log.warning(
                f"{self._stage.name}: no stored record for {message.source_path}, "
                "adopting message"
            )
            record = message

        if record.status is self._stage.completed_status:
            # Completed but possibly never forwarded: the previous delivery was
            # not acked, so publish again.
            Log.warning(
                f"{self._stage.name}: job {record.id} already {record.status.value}, "
                "republishing"
            )
            return StageOutcome(OutcomeKind.COMPLETED, record, self._forward(record))

        if record.status not in (self._stage.entry_status, self._stage.processing_status):
            Log.warning(
                f"{self._stage.name}: job {record.id} is {record.status.value}, "
                "skipping duplicate or stale delivery"
            )
            return StageOutcome(OutcomeKind.SKIPPED, record)

        record = record.with_status(self._stage.processing_status, error=None)
        self._save(record)

        try:
            changes = self._invoke(record)
            completed = record.merged(changes).with_status(self._stage.completed_status)
        except Exception as exc:
            return self._fail(record, exc, body)

        self._save(completed)
        Log.info(f"{self._stage.name}: job {completed.id} is {completed.status.value}")
        return StageOutcome(OutcomeKind.COMPLETED, completed, self._forward(completed))

    def _forward(self, record: JobRecord) -> list[Publication]:
        if not self._stage.output_queue:
            return []
        return [Publication(self._stage.output_queue, self._handler.output_payload(record))]

    def _fail(self, record: JobRecord, exc: Exception, body: bytes) -> StageOutcome:
        error = str(exc) or exc.__class__.__name__
        Log.error(f"{self._stage.name}: job {record.id} failed: {error}")
        failed = record.with_status(self._stage.failed_status, error=error)
        self._save(failed)
        return StageOutcome(OutcomeKind.FAILED, failed, self._dead_letter(body, exc))

    def _save(self, record: JobRecord) -> None:
        patch = record.to_patch(include_none=True)
        if self._store.update(by_source_path(record.source_path), patch) == 0:
            self._store.insert(record)

    def _invoke(self, record: JobRecord) -> dict[str, Any]:
        attempt = 1
        while True:
            try:
                return self._call_handler(record)
            except Exception as exc:
                if attempt >= self._max_attempts:
                    raise
                delay = self._retry_backoff_seconds * attempt
                Log.warning(
                    f"{self._stage.name}: job {record.id} attempt {attempt} failed: {exc}; "
                    f"retrying in {delay:.1f}s"
                )
                self._sleep(delay)
                attempt += 1

    def _call_handler(self, record: JobRecord) -> dict[str, Any]:
        timeout = self._stage.timeout_seconds
        if not timeout:
            return self._handler.handle(record)

        result: Future[dict[str, Any]] = Future()

        def target() -> None:
            try:
                result.set_result(self._handler.handle(record))
            except Exception as exc:
                result.set_exception(exc)

        # A timed-out handler keeps running in its daemon thread; only the
        # worker slot and the job are released.
        threading.Thread(
            target=contextvars.copy_context().run,
            args=(target,),
            name=f"{self._stage.name}-job-{record.id}",
            daemon=True,
        ).start()
        try:
            return result.result(timeout=timeout)
        except FutureTimeoutError as exc:
            if result.done():
                raise
            raise StageTimeoutError(
                f"{self._stage.name} timed out after {timeout:g}s"
            ) from exc

    def _dead_letter(self, body: bytes, exc: Exception) -> list[Publication]:
        if not self._dead_letter_queue:
            return []
        try:
            message: Any = decode(body)
        except MessageDecodeError:
            message = body.decode("utf-8", errors="replace")
        return [
            Publication(
                self._dead_letter_queue,
                {
                    "stage": self._stage.name,
                    "queue": self._stage.input_queue,
                    "error": str(exc) or exc.__class__.__name__,
                    "message": message,
                },
            )
        ]
