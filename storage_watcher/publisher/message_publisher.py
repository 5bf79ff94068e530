"""
Message publisher for sending watch events to RabbitMQ.

This module provides functionality to publish object change events
to RabbitMQ for consumption by other services.
"""

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

import aio_pika
import structlog

if TYPE_CHECKING:
    from storage_watcher.watchers.object_watcher import ObjectWatcher, WatchEventKind

logger = structlog.get_logger(__name__)


def build_event_message(kind: "WatchEventKind", watcher: "ObjectWatcher") -> Dict[str, Any]:
    """
    Build the JSON payload describing a change event.

    Args:
        kind: Kind of change detected
        watcher: Watcher that detected it

    Returns:
        Message dictionary
    """
    metadata = watcher.last_metadata
    return {
        "event_type": f"object.{kind.value}",
        "uri": watcher.watchable.uri,
        "etag": metadata.etag if metadata else None,
        "size": metadata.size if metadata else None,
        "run_count": watcher.run_count(),
        "elapsed_ms": round(watcher.elapsed()),
        "detected_at": datetime.now(timezone.utc).isoformat(),
    }


class MessagePublisher:
    """Publisher for sending watch events to RabbitMQ."""

    def __init__(
            self,
            host: str,
            port: int = 5672,
            username: str = "guest",
            password: str = "guest",
            queue: str = "storage-events",
            exchange: str = "",
            virtual_host: str = "/",
            connection_timeout: float = 5.0,
    ) -> None:
        """
        Initialize the message publisher.

        Args:
            host: RabbitMQ host
            port: RabbitMQ port
            username: RabbitMQ username
            password: RabbitMQ password
            queue: Queue name to publish to
            exchange: Exchange name (default is direct exchange)
            virtual_host: RabbitMQ virtual host
            connection_timeout: Connection timeout in seconds
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.queue_name = queue
        self.exchange_name = exchange
        self.virtual_host = virtual_host
        self.connection_timeout = connection_timeout

        self.connection: Optional[aio_pika.abc.AbstractRobustConnection] = None
        self.channel: Optional[aio_pika.abc.AbstractChannel] = None
        self.exchange: Optional[aio_pika.abc.AbstractExchange] = None

    @property
    def is_connected(self) -> bool:
        return self.channel is not None and self.exchange is not None

    async def connect(self) -> None:
        """
        Connect to RabbitMQ and set up the channel and queue.

        Raises:
            ConnectionError: If connection fails
        """
        try:
            self.connection = await aio_pika.connect_robust(
                host=self.host,
                port=self.port,
                login=self.username,
                password=self.password,
                virtualhost=self.virtual_host,
                timeout=self.connection_timeout,
            )
            self.channel = await self.connection.channel()
            await self.channel.declare_queue(self.queue_name, durable=True)

            if self.exchange_name:
                self.exchange = await self.channel.declare_exchange(
                    self.exchange_name, type=aio_pika.ExchangeType.TOPIC, durable=True
                )
            else:
                self.exchange = self.channel.default_exchange

            logger.info("Connected to RabbitMQ", host=self.host, port=self.port)

        except Exception as e:
            logger.error("Failed to connect to RabbitMQ", error=str(e))
            raise ConnectionError(f"Failed to connect to RabbitMQ: {str(e)}") from e

    async def publish_message(self, message: Dict[str, Any], routing_key: Optional[str] = None) -> None:
        """
        Publish a message to RabbitMQ.

        Args:
            message: Message to publish (will be converted to JSON)
            routing_key: Optional routing key (defaults to queue name)

        Raises:
            RuntimeError: If not connected to RabbitMQ
            ValueError: If message serialization fails
        """
        if not self.is_connected:
            raise RuntimeError("Not connected to RabbitMQ. Call connect() first.")

        if routing_key is None:
            routing_key = self.queue_name

        try:
            body = json.dumps(message).encode("utf-8")
        except (TypeError, ValueError) as e:
            logger.error("Failed to serialize message", error=str(e))
            raise ValueError(f"Failed to serialize message: {str(e)}") from e

        await self.exchange.publish(
            aio_pika.Message(
                body=body,
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                content_type="application/json",
                type=message.get("event_type"),
            ),
            routing_key=routing_key,
        )
        logger.debug("Published message", routing_key=routing_key, event_type=message.get("event_type"))

    async def close(self) -> None:
        """
        Close the connection to RabbitMQ.

        This should be called when shutting down the service.
        """
        if self.connection:
            try:
                await self.connection.close()
                logger.info("Closed RabbitMQ connection")
            except Exception as e:
                logger.error("Error closing RabbitMQ connection", error=str(e))

        self.connection = None
        self.channel = None
        self.exchange = None
