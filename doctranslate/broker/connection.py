import time
from collections.abc import Callable
from typing import Any

import pika
from pika.adapters.blocking_connection import BlockingChannel
from pika.exceptions import AMQPError

from doctranslate.broker.codec import encode
from doctranslate.broker.retry import RetryPolicy
from doctranslate.logging.logger import Log

PERSISTENT = pika.BasicProperties(
    content_type="application/json",
    delivery_mode=pika.DeliveryMode.Persistent,
)


def connect_with_retry(
    url: str,
    policy: RetryPolicy,
    *,
    name: str = "broker",
    heartbeat: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> pika.BlockingConnection:
    """Block until a broker connection is established. Never gives up."""
    params = pika.URLParameters(url)
    if heartbeat is not None:
        params.heartbeat = heartbeat
    attempt = 0
    while True:
        try:
            connection = pika.BlockingConnection(params)
            Log.info(f"{name} connected to broker")
            return connection
        except AMQPError as exc:
            attempt += 1
            delay = policy.delay(attempt)
            Log.error(
                f"{name} cannot connect to broker (attempt {attempt}): {exc!r}; "
                f"retrying in {delay:.1f}s"
            )
            sleep(delay)


def declare_queues(channel: BlockingChannel, *queues: str | None) -> None:
    """Declare every named queue durable so it survives a broker restart."""
    for queue in queues:
        if queue:
            channel.queue_declare(queue=queue, durable=True)


def publish(channel: BlockingChannel, queue: str, payload: dict[str, Any]) -> None:
    """Publish a JSON payload with persistent delivery to the default exchange."""
    channel.basic_publish(
        exchange="",
        routing_key=queue,
        body=encode(payload),
        properties=PERSISTENT,
    )


class QueuePublisher:
    """Publishes JSON messages on a channel owned by the calling thread."""

    def __init__(self, channel: BlockingChannel) -> None:
        self._channel = channel

    def publish(self, queue: str, payload: dict[str, Any]) -> None:
        publish(self._channel, queue, payload)
