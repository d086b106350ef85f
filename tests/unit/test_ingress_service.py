import json
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, call

import pytest

from doctranslate.config.settings import Settings
from doctranslate.ingress.service import IngressService, wait_for_result
from doctranslate.store.models import JobStatus
from doctranslate.store.record_store import RecordFileJobStore


@pytest.fixture()
def publisher() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def service(record_store: RecordFileJobStore, publisher: MagicMock) -> IngressService:
    return IngressService(record_store, publisher, Settings())


class TestSubmit:
    def test_creates_uploaded_job_and_enqueues(
        self, service: IngressService, record_store: RecordFileJobStore, publisher: MagicMock
    ) -> None:
        record = service.submit("data/a.png")

        assert record.status is JobStatus.UPLOADED
        assert record.timestamp
        assert record_store.get("data/a.png") == record
        publisher.publish.assert_called_once_with("ocr_queue", record.to_dict())

    def test_job_ids_are_unique(self, service: IngressService) -> None:
        assert service.submit("a.png").id != service.submit("b.png").id

    def test_in_flight_job_is_not_requeued(
        self, service: IngressService, record_store, publisher: MagicMock, make_record
    ) -> None:
        existing = make_record(source_path="a.png", status=JobStatus.TRANSLATION_PROCESSING)
        record_store.insert(existing)

        assert service.submit("a.png") == existing
        publisher.publish.assert_not_called()

    def test_completed_job_with_output_is_returned(
        self, tmp_path: Path, service: IngressService, record_store, publisher, make_record
    ) -> None:
        output = tmp_path / "a_1.pdf"
        output.write_bytes(b"%PDF")
        existing = make_record(
            source_path="a.png", status=JobStatus.COMPLETED, output_path=str(output)
        )
        record_store.insert(existing)

        assert service.submit("a.png") == existing
        publisher.publish.assert_not_called()

    def test_completed_job_without_output_is_resubmitted(
        self, tmp_path: Path, service: IngressService, record_store, publisher, make_record
    ) -> None:
        record_store.insert(
            make_record(
                source_path="a.png",
                status=JobStatus.COMPLETED,
                output_path=str(tmp_path / "gone.pdf"),
            )
        )

        record = service.submit("a.png")

        assert record.status is JobStatus.UPLOADED
        assert record.id != "job-1"
        publisher.publish.assert_called_once()

    def test_failed_job_is_reset(
        self, service: IngressService, record_store, publisher: MagicMock, make_record
    ) -> None:
        record_store.insert(
            make_record(
                source_path="a.png",
                status=JobStatus.OCR_FAILED,
                original_text="old",
                error="boom",
            )
        )

        record = service.submit("a.png")

        stored = record_store.get("a.png")
        assert stored == record
        assert stored is not None
        assert stored.error is None
        assert stored.original_text is None
        assert len(record_store.read_all()) == 1
        publisher.publish.assert_called_once()


    def test_job_stranded_by_failed_publish_is_queued_on_resubmit(
        self, service: IngressService, record_store: RecordFileJobStore, publisher: MagicMock
    ) -> None:
        publisher.publish.side_effect = [ConnectionError("broker down"), None]
        with pytest.raises(ConnectionError):
            service.submit("a.png")
        stranded = record_store.get("a.png")

        record = service.submit("a.png")

        assert record == stranded
        assert publisher.publish.call_count == 2
        assert publisher.publish.call_args.args == ("ocr_queue", stranded.to_dict())


class TestStatus:
    def test_get_status_by_id(self, service: IngressService) -> None:
        record = service.submit("a.png")
        assert service.get_status(record.id) == record

    def test_unknown_id(self, service: IngressService) -> None:
        assert service.get_status("nope") is None

    def test_poll_returns_terminal_record(
        self, service: IngressService, record_store: RecordFileJobStore
    ) -> None:
        record = service.submit("a.png")
        sleeps: list[float] = []

        def finish(seconds: float) -> None:
            sleeps.append(seconds)
            record_store.update(lambda r: r.id == record.id, {"status": JobStatus.COMPLETED})

        result = service.poll_until_done(record.id, timeout_seconds=30, sleep=finish)

        assert result is not None
        assert result.status is JobStatus.COMPLETED
        assert sleeps == [1.0]

    def test_poll_gives_up_at_deadline(self, service: IngressService) -> None:
        record = service.submit("a.png")
        result = service.poll_until_done(record.id, timeout_seconds=0, sleep=lambda _: None)
        assert result is not None
        assert result.status is JobStatus.UPLOADED


def _delivery(tag: int, payload: object) -> tuple[SimpleNamespace, None, bytes]:
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    return SimpleNamespace(delivery_tag=tag), None, body


class TestWaitForResult:
    def test_acks_matching_event_and_requeues_others(self) -> None:
        channel = MagicMock()
        channel.consume.return_value = iter(
            [
                _delivery(1, {"id": "other", "status": "completed"}),
                _delivery(2, {"id": "job-1", "status": "completed", "outputPath": "o.pdf"}),
            ]
        )

        result = wait_for_result(channel, "result_queue", "job-1", timeout_seconds=30)

        assert result == {"id": "job-1", "status": "completed", "outputPath": "o.pdf"}
        channel.basic_nack.assert_called_once_with(delivery_tag=1, requeue=True)
        channel.basic_ack.assert_called_once_with(delivery_tag=2)
        channel.cancel.assert_called_once()

    def test_drops_undecodable_event(self) -> None:
        channel = MagicMock()
        channel.consume.return_value = iter(
            [_delivery(1, b"not json"), _delivery(2, {"id": "job-1"})]
        )

        assert wait_for_result(channel, "result_queue", "job-1", 30) == {"id": "job-1"}
        channel.basic_nack.assert_called_once_with(delivery_tag=1, requeue=False)

    def test_times_out(self) -> None:
        channel = MagicMock()
        channel.consume.return_value = iter([(None, None, None)])

        assert wait_for_result(channel, "result_queue", "job-1", timeout_seconds=0) is None
        channel.basic_ack.assert_not_called()
        channel.cancel.assert_called_once()

    def test_other_jobs_events_are_held_until_the_end(self) -> None:
        channel = MagicMock()
        channel.consume.return_value = iter(
            [
                _delivery(1, {"id": "other"}),
                _delivery(2, {"id": "another"}),
                _delivery(3, {"id": "job-1"}),
            ]
        )

        wait_for_result(channel, "result_queue", "job-1", timeout_seconds=30)

        assert channel.basic_nack.call_args_list == [
            call(delivery_tag=1, requeue=True),
            call(delivery_tag=2, requeue=True),
        ]
        names = [c[0] for c in channel.method_calls]
        assert names.index("basic_ack") < names.index("basic_nack")

    def test_failed_job_stops_the_wait(
        self, record_store: RecordFileJobStore, make_record
    ) -> None:
        record_store.insert(
            make_record(status=JobStatus.TRANSLATION_FAILED, error="provider down")
        )
        channel = MagicMock()
        channel.consume.return_value = iter([(None, None, None)] * 100)

        result = wait_for_result(
            channel, "result_queue", "job-1", timeout_seconds=300, store=record_store
        )

        assert result is not None
        assert result["status"] == "translation_failed"
        assert result["error"] == "provider down"
        channel.cancel.assert_called_once()

    def test_in_flight_job_keeps_waiting(self, record_store: RecordFileJobStore, make_record):
        record_store.insert(make_record(status=JobStatus.OCR_PROCESSING))
        channel = MagicMock()
        channel.consume.return_value = iter(
            [(None, None, None), _delivery(5, {"id": "job-1", "status": "completed"})]
        )

        result = wait_for_result(
            channel, "result_queue", "job-1", timeout_seconds=300, store=record_store
        )

        assert result == {"id": "job-1", "status": "completed"}
