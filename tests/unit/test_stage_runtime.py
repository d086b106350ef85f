from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, call, patch

from pika.exceptions import AMQPConnectionError, ConnectionWrongStateError

from doctranslate.config.settings import Settings
from doctranslate.store.models import JobStatus
from doctranslate.worker.models import OutcomeKind, Publication, StageOutcome, StageSpec
from doctranslate.worker.runtime import StageRuntime

STAGE = StageSpec(
    name="pdf",
    input_queue="pdf_queue",
    output_queue="result_queue",
    prefetch=1,
    entry_status=JobStatus.TRANSLATION_COMPLETED,
    processing_status=JobStatus.PDF_PROCESSING,
    completed_status=JobStatus.COMPLETED,
    failed_status=JobStatus.PDF_FAILED,
)


def _make_runtime(**settings: object) -> tuple[StageRuntime, MagicMock]:
    job_runner = MagicMock()
    job_runner.stage = STAGE
    runtime = StageRuntime(job_runner, Settings(**settings))
    return runtime, job_runner


class TestSettle:
    def test_publishes_before_ack(self) -> None:
        runtime, _ = _make_runtime()
        channel = MagicMock()
        outcome = StageOutcome(
            OutcomeKind.COMPLETED, publications=[Publication("result_queue", {"id": "1"})]
        )

        runtime._settle(channel, 7, outcome)

        names = [c[0] for c in channel.method_calls]
        assert names == ["basic_publish", "basic_ack"]
        channel.basic_ack.assert_called_once_with(delivery_tag=7)

    def test_failed_job_is_acked_without_publishing(self) -> None:
        runtime, _ = _make_runtime()
        channel = MagicMock()

        runtime._settle(channel, 3, StageOutcome(OutcomeKind.FAILED))

        channel.basic_publish.assert_not_called()
        channel.basic_ack.assert_called_once_with(delivery_tag=3)

    def test_requeue_outcome_is_nacked(self) -> None:
        runtime, _ = _make_runtime()
        channel = MagicMock()

        runtime._settle(channel, 9, StageOutcome(OutcomeKind.REQUEUE))

        channel.basic_nack.assert_called_once_with(delivery_tag=9, requeue=True)
        channel.basic_ack.assert_not_called()


class TestProcess:
    def test_hands_settlement_to_connection_thread(self) -> None:
        runtime, job_runner = _make_runtime()
        job_runner.run.return_value = StageOutcome(OutcomeKind.COMPLETED)
        connection, channel = MagicMock(), MagicMock()

        runtime._process(connection, channel, 5, b"{}")

        job_runner.run.assert_called_once_with(b"{}")
        channel.basic_ack.assert_not_called()
        callback = connection.add_callback_threadsafe.call_args.args[0]
        callback()
        channel.basic_ack.assert_called_once_with(delivery_tag=5)

    def test_closed_connection_does_not_raise(self) -> None:
        runtime, job_runner = _make_runtime()
        job_runner.run.return_value = StageOutcome(OutcomeKind.COMPLETED)
        connection = MagicMock()
        connection.add_callback_threadsafe.side_effect = ConnectionWrongStateError("closed")

        runtime._process(connection, MagicMock(), 5, b"{}")

    def test_on_message_submits_to_pool(self) -> None:
        runtime, _ = _make_runtime()
        executor = MagicMock(spec=ThreadPoolExecutor)
        connection, channel, method = MagicMock(), MagicMock(), MagicMock(delivery_tag=11)

        runtime._on_message(executor, connection, channel, method, MagicMock(), b"body")

        executor.submit.assert_called_once_with(runtime._process, connection, channel, 11, b"body")


class TestConsume:
    def test_declares_durable_queues_and_prefetch(self) -> None:
        runtime, _ = _make_runtime(dead_letter_queue="dead_letters")
        connection = MagicMock()
        channel = connection.channel.return_value

        runtime._consume(connection)

        assert channel.queue_declare.call_args_list == [
            call(queue="pdf_queue", durable=True),
            call(queue="result_queue", durable=True),
            call(queue="dead_letters", durable=True),
        ]
        channel.basic_qos.assert_called_once_with(prefetch_count=1)
        consume_kwargs = channel.basic_consume.call_args.kwargs
        assert consume_kwargs["queue"] == "pdf_queue"
        assert consume_kwargs["auto_ack"] is False
        channel.start_consuming.assert_called_once()


class TestRun:
    def test_reconnects_after_connection_loss(self) -> None:
        runtime, _ = _make_runtime()
        first, second = MagicMock(), MagicMock()

        with (
            patch(
                "doctranslate.worker.runtime.connect_with_retry", side_effect=[first, second]
            ) as mock_connect,
            patch.object(
                runtime,
                "_consume",
                side_effect=[AMQPConnectionError("reset"), KeyboardInterrupt],
            ),
        ):
            runtime.run()

        assert mock_connect.call_count == 2
        first.close.assert_called_once()
        second.close.assert_called_once()

    def test_stop_before_run_exits_without_connecting(self) -> None:
        runtime, _ = _make_runtime()
        runtime.stop()

        with patch("doctranslate.worker.runtime.connect_with_retry") as mock_connect:
            runtime.run()

        mock_connect.assert_not_called()

    def test_stop_interrupts_consuming(self) -> None:
        runtime, _ = _make_runtime()
        connection = MagicMock()
        channel = connection.channel.return_value
        channel.start_consuming.side_effect = lambda: runtime.stop()

        with patch("doctranslate.worker.runtime.connect_with_retry", return_value=connection):
            runtime.run()

        connection.add_callback_threadsafe.assert_called_once_with(channel.stop_consuming)
        connection.close.assert_called_once()


class TestShutdown:
    def test_in_flight_delivery_is_settled_after_consuming_stops(self) -> None:
        runtime, job_runner = _make_runtime()
        job_runner.run.return_value = StageOutcome(
            OutcomeKind.COMPLETED, publications=[Publication("result_queue", {"id": "1"})]
        )
        pending: list = []
        connection = MagicMock()
        connection.is_open = True
        connection.add_callback_threadsafe.side_effect = pending.append
        connection.process_data_events.side_effect = lambda time_limit: [
            cb() for cb in pending
        ]
        channel = connection.channel.return_value

        def deliver_then_stop() -> None:
            on_message = channel.basic_consume.call_args.kwargs["on_message_callback"]
            on_message(channel, MagicMock(delivery_tag=4), MagicMock(), b"{}")

        channel.start_consuming.side_effect = deliver_then_stop

        runtime._consume(connection)

        connection.process_data_events.assert_called_once_with(time_limit=0)
        channel.basic_publish.assert_called_once()
        channel.basic_ack.assert_called_once_with(delivery_tag=4)

    def test_closed_connection_skips_settlement(self) -> None:
        runtime, _ = _make_runtime()
        connection = MagicMock()
        connection.is_open = False

        runtime._consume(connection)

        connection.process_data_events.assert_not_called()
