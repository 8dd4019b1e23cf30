# SPDX-License-Identifier: Apache-2.0

"""
Shared plumbing for the lifecycle services.

Services load entities from the store, authorize the actor, apply a pure
domain transition, commit it with a conditional write and dispatch the
transition's events once the write is durable.
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Type

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..domain.errors import ConflictException, NotFoundException
from ..domain.events import Event, Transition
from ..models.base import BaseEntity, utc_now
from ..models.entities import Account
from ..models.enums import AccountRole
from .dispatcher import DispatchReport, NotificationDispatcher
from .store import ACCOUNTS, DuplicateEntityError, EntityStore, TransactionConflictError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

Clock = Callable[[], Any]

CONCURRENT_UPDATE_MESSAGE = "{label} was modified by another request, please retry"


class LifecycleService:
    """Base class wiring the store, dispatcher and clock."""

    def __init__(
        self,
        store: EntityStore,
        dispatcher: NotificationDispatcher,
        clock: Optional[Clock] = None
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock or utc_now

    @contextmanager
    def _span(self, name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[Any]:
        """Run an operation in a span that records failures."""
        with tracer.start_as_current_span(name) as span:
            if attributes:
                span.set_attributes({k: v for k, v in attributes.items() if v is not None})
            try:
                yield span
            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise

    @contextmanager
    def _transaction(self) -> Iterator[EntityStore]:
        """Open a store transaction; aborted concurrent transactions surface as conflicts."""
        try:
            with self.store.transaction() as tx:
                yield tx
        except TransactionConflictError as e:
            logger.info(f"Transaction aborted by a concurrent write: {e}")
            raise ConflictException("The resource was modified by another request, please retry")

    def _load(
        self,
        collection: str,
        entity_cls: Type[BaseEntity],
        entity_id: str,
        label: str,
        store: Optional[EntityStore] = None
    ) -> Any:
        """
        Load an entity or raise NotFoundException.
        """
        document = (store or self.store).get(collection, entity_id)
        if document is None:
            raise NotFoundException(f"{label} not found")
        return entity_cls.from_document(document)

    def _insert(
        self,
        collection: str,
        entity: BaseEntity,
        duplicate_message: str = "Resource already exists",
        store: Optional[EntityStore] = None
    ) -> Any:
        """
        Insert a new entity.

        Raises:
            ConflictException: If a unique index rejects it
        """
        try:
            document = (store or self.store).insert(collection, entity.to_document())
        except DuplicateEntityError as e:
            logger.info(f"Duplicate rejected in {collection}", extra={"fields": list(e.fields)})
            raise ConflictException(duplicate_message)
        return type(entity).from_document(document)

    def _apply(
        self,
        collection: str,
        transition: Transition,
        label: str,
        store: Optional[EntityStore] = None,
        duplicate_message: str = "Resource already exists",
        conflict_message: Optional[str] = None
    ) -> Any:
        """
        Commit a transition with a conditional write.

        Raises:
            NotFoundException: If the entity disappeared
            ConflictException: If its state changed since it was read
        """
        target = store or self.store
        entity_id = transition.entity.id
        try:
            document = target.update_where(collection, entity_id, transition.expected, transition.changes)
        except DuplicateEntityError:
            raise ConflictException(duplicate_message)

        if document is None:
            if target.get(collection, entity_id) is None:
                raise NotFoundException(f"{label} not found")
            logger.info(
                f"Conditional write lost for {label.lower()} {entity_id}",
                extra={"collection": collection, "expected": list(transition.expected.keys())}
            )
            raise ConflictException(conflict_message or CONCURRENT_UPDATE_MESSAGE.format(label=label))
        return type(transition.entity).from_document(document)

    def _dispatch(self, *event_lists: Iterable[Event]) -> DispatchReport:
        """Deliver events after commit."""
        events: List[Event] = [event for events in event_lists for event in events]
        report = self.dispatcher.dispatch(events)
        if report.failures:
            logger.warning(
                "Some notifications could not be delivered",
                extra={"failed": report.failed, "delivered": report.delivered}
            )
        return report

    def _superadmin_ids(self) -> List[str]:
        return [
            document["id"]
            for document in self.store.find(ACCOUNTS, {"role": AccountRole.SUPERADMIN.value})
        ]

    def _load_account(self, account_id: str, label: str = "Account") -> Account:
        return self._load(ACCOUNTS, Account, account_id, label)
