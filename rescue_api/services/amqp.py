# SPDX-License-Identifier: Apache-2.0

"""
AMQP lifecycle event publisher.

Lifecycle events (dog created, report promoted, adoption approved, ...) are
broadcast to a topic exchange so downstream consumers can react without
coupling to the API. Connections are opened per publish and always closed.

Retries with backoff live in the publish loop only; pika is limited to a
single connection attempt per try. Publishing blocks while it retries, so
the API runs it on a background executor (see NotificationDispatcher).
"""

import json
import logging
import os
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Generator
from urllib.parse import urlparse

import pika
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from opentelemetry.propagate import inject

from ..domain.events import LifecycleEvent


logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class AMQPConfig:
    """AMQP configuration settings."""
    url: str
    exchange: str = "rescue.events"
    connection_timeout: int = 30
    heartbeat: int = 600
    blocked_connection_timeout: int = 300
    retry_delay: float = 1.0
    max_retries: int = 3


@dataclass
class PublishResult:
    """Result of message publishing operation."""
    success: bool
    correlation_id: str
    exchange: str
    routing_key: str
    error: Optional[str] = None
    retry_count: int = 0


class AMQPConnectionError(Exception):
    """Raised when AMQP connection fails."""
    pass


class EventPublisher:
    """
    Publishes lifecycle events to a durable topic exchange.

    Routing keys are the event names, e.g. "adoption.approved", so
    consumers can bind with patterns such as "adoption.*".
    """

    def __init__(self, config: AMQPConfig):
        self.config = config
        self._connection_params = self._parse_connection_url(config.url)
        self._exchange_declared = False

    def _parse_connection_url(self, url: str) -> pika.ConnectionParameters:
        """Parse AMQP URL and create connection parameters."""
        parsed = urlparse(url)

        return pika.ConnectionParameters(
            host=parsed.hostname or 'localhost',
            port=parsed.port or 5672,
            virtual_host=parsed.path.lstrip('/') or '/',
            credentials=pika.PlainCredentials(
                username=parsed.username or 'guest',
                password=parsed.password or 'guest'
            ),
            connection_attempts=1,
            retry_delay=self.config.retry_delay,
            socket_timeout=self.config.connection_timeout,
            heartbeat=self.config.heartbeat,
            blocked_connection_timeout=self.config.blocked_connection_timeout
        )

    @contextmanager
    def _get_connection(self) -> Generator[Any, None, None]:
        """Open a fresh connection and channel, closing both afterwards."""
        connection = None
        channel = None

        try:
            with tracer.start_as_current_span("amqp.connection.create") as span:
                connection = pika.BlockingConnection(self._connection_params)
                channel = connection.channel()
                span.set_attributes({
                    "amqp.host": self._connection_params.host,
                    "amqp.port": self._connection_params.port,
                    "amqp.virtual_host": self._connection_params.virtual_host
                })

            yield channel

        except pika.exceptions.AMQPConnectionError as e:
            logger.error(
                "AMQP connection failed",
                extra={
                    "extra_fields": {
                        "error": str(e),
                        "host": self._connection_params.host,
                        "port": self._connection_params.port
                    }
                }
            )
            raise AMQPConnectionError(f"Failed to connect to AMQP broker: {e}")

        finally:
            if channel and not channel.is_closed:
                try:
                    channel.close()
                except pika.exceptions.AMQPError as e:
                    logger.warning(f"Error closing AMQP channel: {e}")

            if connection and not connection.is_closed:
                try:
                    connection.close()
                except pika.exceptions.AMQPError as e:
                    logger.warning(f"Error closing AMQP connection: {e}")

    def _declare_exchange(self, channel) -> None:
        if self._exchange_declared:
            return
        channel.exchange_declare(
            exchange=self.config.exchange,
            exchange_type='topic',
            durable=True,
            auto_delete=False
        )
        self._exchange_declared = True

    def build_message(self, event: LifecycleEvent, correlation_id: str) -> Dict[str, Any]:
        """Build the message envelope for an event."""
        trace_context: Dict[str, str] = {}
        inject(trace_context)
        return {
            "event": event.name,
            "entity_id": event.entity_id,
            "correlation_id": correlation_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "payload": event.payload,
            "trace_context": trace_context
        }

    def publish_event(self, event: LifecycleEvent, correlation_id: Optional[str] = None) -> PublishResult:
        """
        Publish a lifecycle event.

        Args:
            event: Event to publish; its name is the routing key
            correlation_id: Optional correlation ID for message tracking

        Returns:
            PublishResult: Result of the publishing operation
        """
        correlation_id = correlation_id or str(uuid.uuid4())

        with tracer.start_as_current_span("amqp.publish.event") as span:
            span.set_attributes({
                "event.name": event.name,
                "event.entity_id": event.entity_id,
                "amqp.exchange": self.config.exchange,
                "amqp.correlation_id": correlation_id
            })

            message = self.build_message(event, correlation_id)
            result = self._publish_with_retry(
                routing_key=event.name,
                message=message,
                correlation_id=correlation_id
            )
            if not result.success:
                span.set_status(Status(StatusCode.ERROR, result.error or "publish failed"))
            return result

    def _publish_with_retry(
        self,
        routing_key: str,
        message: Dict[str, Any],
        correlation_id: str
    ) -> PublishResult:
        """Publish message with exponential backoff retry logic."""
        exchange = self.config.exchange
        body = json.dumps(message, default=str)
        last_error = None

        for attempt in range(self.config.max_retries + 1):
            try:
                with self._get_connection() as channel:
                    self._declare_exchange(channel)
                    properties = pika.BasicProperties(
                        correlation_id=correlation_id,
                        timestamp=int(time.time()),
                        delivery_mode=2,  # Persistent message
                        content_type='application/json',
                        headers=message.get('trace_context', {})
                    )
                    channel.basic_publish(
                        exchange=exchange,
                        routing_key=routing_key,
                        body=body,
                        properties=properties
                    )

                    logger.info(
                        "Event published",
                        extra={
                            "extra_fields": {
                                "exchange": exchange,
                                "routing_key": routing_key,
                                "correlation_id": correlation_id,
                                "attempt": attempt + 1
                            }
                        }
                    )
                    return PublishResult(
                        success=True,
                        correlation_id=correlation_id,
                        exchange=exchange,
                        routing_key=routing_key,
                        retry_count=attempt
                    )

            except (AMQPConnectionError, pika.exceptions.AMQPError) as e:
                last_error = e
                self._exchange_declared = False

                if attempt < self.config.max_retries:
                    delay = self.config.retry_delay * (2 ** attempt)
                    logger.warning(
                        "Event publish failed, retrying",
                        extra={
                            "extra_fields": {
                                "routing_key": routing_key,
                                "attempt": attempt + 1,
                                "retry_delay": delay,
                                "error": str(e)
                            }
                        }
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        "Event publish failed after all retries",
                        extra={
                            "extra_fields": {
                                "routing_key": routing_key,
                                "correlation_id": correlation_id,
                                "total_attempts": attempt + 1,
                                "error": str(e)
                            }
                        }
                    )

        return PublishResult(
            success=False,
            correlation_id=correlation_id,
            exchange=exchange,
            routing_key=routing_key,
            error=str(last_error),
            retry_count=self.config.max_retries
        )

    def health_check(self) -> bool:
        """Check that the broker accepts connections."""
        try:
            with self._get_connection() as channel:
                channel.exchange_declare(exchange=self.config.exchange, exchange_type='topic', passive=True)
                return True
        except (AMQPConnectionError, pika.exceptions.AMQPError) as e:
            logger.warning(
                "AMQP health check failed",
                extra={"extra_fields": {"error": str(e), "host": self._connection_params.host}}
            )
            return False


def create_event_publisher() -> Optional[EventPublisher]:
    """
    Create the event publisher from environment variables.

    Returns:
        EventPublisher, or None when AMQP_URL is not set
    """
    amqp_url = os.getenv('AMQP_URL')
    if not amqp_url:
        logger.info("AMQP_URL not set, lifecycle event publishing disabled")
        return None

    config = AMQPConfig(
        url=amqp_url,
        exchange=os.getenv('AMQP_EXCHANGE', 'rescue.events'),
        connection_timeout=int(os.getenv('AMQP_CONNECTION_TIMEOUT', '30')),
        heartbeat=int(os.getenv('AMQP_HEARTBEAT', '600')),
        blocked_connection_timeout=int(os.getenv('AMQP_BLOCKED_TIMEOUT', '300')),
        retry_delay=float(os.getenv('AMQP_RETRY_DELAY', '1.0')),
        max_retries=int(os.getenv('AMQP_MAX_RETRIES', '3'))
    )
    return EventPublisher(config)
