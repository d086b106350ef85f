import functools
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import pika
from pika.adapters.blocking_connection import BlockingChannel
from pika.exceptions import AMQPError

from doctranslate.broker.connection import connect_with_retry, declare_queues, publish
from doctranslate.broker.retry import RetryPolicy
from doctranslate.config.settings import Settings
from doctranslate.logging.logger import Log
from doctranslate.worker.job_runner import JobRunner
from doctranslate.worker.models import StageOutcome


class StageRuntime:
    """Consumer loop for one stage: connect -> declare -> consume -> settle.

    Deliveries are handled on a thread pool sized to the stage's prefetch
    bound. pika channels are not thread-safe, so publishing and acking are
    handed back to the connection thread.
    """

    def __init__(
        self,
        job_runner: JobRunner,
        settings: Settings,
        *,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._job_runner = job_runner
        self._stage = job_runner.stage
        self._settings = settings
        self._retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self._stop = threading.Event()
        self._connection: pika.BlockingConnection | None = None
        self._channel: BlockingChannel | None = None

    def run(self) -> None:
        """Consume until stopped, reconnecting whenever the broker goes away."""
        Log.info(f"{self._stage.name} stage starting")
        try:
            while not self._stop.is_set():
                connection = connect_with_retry(
                    self._settings.broker_url,
                    self._retry_policy,
                    name=self._stage.name,
                    heartbeat=self._settings.broker_heartbeat_seconds,
                )
                try:
                    self._consume(connection)
                except AMQPError as exc:
                    if self._stop.is_set():
                        break
                    Log.error(f"{self._stage.name} lost broker connection: {exc!r}; reconnecting")
                finally:
                    self._close(connection)
        except KeyboardInterrupt:
            Log.info(f"{self._stage.name} stage shutting down gracefully")

    def stop(self) -> None:
        """Ask the consumer loop to exit. Safe to call from any thread."""
        self._stop.set()
        connection, channel = self._connection, self._channel
        if connection is not None and channel is not None:
            try:
                connection.add_callback_threadsafe(channel.stop_consuming)
            except AMQPError as exc:
                Log.debug(f"{self._stage.name} connection already closed: {exc!r}")

    def _consume(self, connection: pika.BlockingConnection) -> None:
        channel = connection.channel()
        declare_queues(
            channel,
            self._stage.input_queue,
            self._stage.output_queue,
            self._settings.dead_letter_queue,
        )
        channel.basic_qos(prefetch_count=self._stage.prefetch)
        self._connection, self._channel = connection, channel

        with ThreadPoolExecutor(
            max_workers=self._stage.prefetch, thread_name_prefix=self._stage.name
        ) as executor:
            channel.basic_consume(
                queue=self._stage.input_queue,
                on_message_callback=functools.partial(self._on_message, executor, connection),
                auto_ack=False,
            )
            Log.info(
                f"{self._stage.name} ready, consuming {self._stage.input_queue} "
                f"(prefetch={self._stage.prefetch})"
            )
            channel.start_consuming()

        # Workers that finished after consuming stopped have queued their
        # settlements; run them while the channel is still open.
        if connection.is_open:
            try:
                connection.process_data_events(time_limit=0)
            except AMQPError as exc:
                Log.warning(f"{self._stage.name} cannot settle in-flight deliveries: {exc!r}")

    def _on_message(
        self,
        executor: ThreadPoolExecutor,
        connection: pika.BlockingConnection,
        channel: BlockingChannel,
        method: Any,
        properties: pika.BasicProperties,
        body: bytes,
    ) -> None:
        _ = properties
        executor.submit(self._process, connection, channel, method.delivery_tag, body)

    def _process(
        self,
        connection: pika.BlockingConnection,
        channel: BlockingChannel,
        delivery_tag: int,
        body: bytes,
    ) -> None:
        """Worker-thread side: run the job, then schedule settlement."""
        outcome = self._job_runner.run(body)
        try:
            connection.add_callback_threadsafe(
                functools.partial(self._settle, channel, delivery_tag, outcome)
            )
        except AMQPError as exc:
            Log.warning(
                f"{self._stage.name} cannot settle delivery {delivery_tag}, "
                f"broker will redeliver: {exc!r}"
            )

    def _settle(self, channel: BlockingChannel, delivery_tag: int, outcome: StageOutcome) -> None:
        """Connection-thread side: publish results first, then ack or requeue."""
        if outcome.requeue:
            channel.basic_nack(delivery_tag=delivery_tag, requeue=True)
            return
        for publication in outcome.publications:
            publish(channel, publication.queue, publication.payload)
        channel.basic_ack(delivery_tag=delivery_tag)

    def _close(self, connection: pika.BlockingConnection) -> None:
        self._connection, self._channel = None, None
        if connection.is_open:
            try:
                connection.close()
            except AMQPError as exc:
                Log.debug(f"{self._stage.name} error closing connection: {exc!r}")
