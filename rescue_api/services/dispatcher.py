# SPDX-License-Identifier: Apache-2.0

"""
Post-commit notification dispatcher.

Drains the events returned by lifecycle transitions once their writes are
durable. Every delivery is best effort: a failure is logged and counted,
never raised, so a committed state change is never reported as failed.

Broker publishing can be handed to a background executor so a slow or
unreachable broker never holds up the request that committed the change.
"""

import logging
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from opentelemetry import trace

from ..domain.errors import CollaboratorException
from ..domain.events import EmailNotification, Event, InAppNotification, LifecycleEvent
from ..models.entities import Notification
from .amqp import EventPublisher
from .email import EmailSender
from .store import NOTIFICATIONS, EntityStore

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


@dataclass
class DispatchReport:
    """Outcome of draining one batch of events."""
    delivered: int = 0
    skipped: int = 0
    queued: int = 0
    failures: List[str] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)


class NotificationDispatcher:
    """Delivers in-app notifications, emails and lifecycle events."""

    def __init__(
        self,
        store: EntityStore,
        email_sender: Optional[EmailSender] = None,
        publisher: Optional[EventPublisher] = None,
        publish_executor: Optional[Executor] = None
    ):
        self.store = store
        self.email_sender = email_sender
        self.publisher = publisher
        self.publish_executor = publish_executor

    def dispatch(self, events: Iterable[Event]) -> DispatchReport:
        """
        Deliver a batch of events.

        Args:
            events: Events returned by committed transitions

        Returns:
            DispatchReport counting deliveries, skips, queued publishes and failures
        """
        report = DispatchReport()
        with tracer.start_as_current_span("notifications.dispatch") as span:
            for event in events:
                event_type = type(event).__name__
                try:
                    if isinstance(event, LifecycleEvent) and self._queue(event):
                        report.queued += 1
                    elif self._deliver(event):
                        report.delivered += 1
                    else:
                        report.skipped += 1
                except Exception as e:
                    report.failures.append(f"{event_type}: {e}")
                    span.record_exception(e)
                    logger.warning(
                        f"Failed to deliver {event_type}",
                        extra={"event_type": event_type, "error": str(e), "error_class": type(e).__name__}
                    )

            span.set_attributes({
                "dispatch.delivered": report.delivered,
                "dispatch.skipped": report.skipped,
                "dispatch.queued": report.queued,
                "dispatch.failed": report.failed
            })
        return report

    def _queue(self, event: LifecycleEvent) -> bool:
        if self.publish_executor is None or self.publisher is None:
            return False
        future = self.publish_executor.submit(self._publish, event)
        future.add_done_callback(self._log_background_failure(event))
        return True

    @staticmethod
    def _log_background_failure(event: LifecycleEvent):
        def callback(future: Future) -> None:
            error = future.exception()
            if error is not None:
                logger.warning(
                    "Background event publish failed",
                    extra={"event_name": event.name, "entity_id": event.entity_id, "error": str(error)}
                )
        return callback

    def _publish(self, event: LifecycleEvent) -> None:
        result = self.publisher.publish_event(event)
        if not result.success:
            raise CollaboratorException("publisher", result.error or "publish failed")

    def _deliver(self, event: Event) -> bool:
        if isinstance(event, InAppNotification):
            notification = Notification(
                account_id=event.account_id,
                title=event.title,
                message=event.message,
                type=event.type,
                link=event.link
            )
            self.store.insert(NOTIFICATIONS, notification.to_document())
            return True

        if isinstance(event, EmailNotification):
            if self.email_sender is None:
                return False
            self.email_sender.send(event.to, event.template, event.context)
            return True

        if isinstance(event, LifecycleEvent):
            if self.publisher is None:
                return False
            self._publish(event)
            return True

        raise CollaboratorException("dispatcher", f"Unsupported event type {type(event).__name__}")
