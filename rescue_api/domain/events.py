# SPDX-License-Identifier: Apache-2.0

"""
Post-commit events produced by lifecycle transitions.

Transitions never perform I/O. They return these events, and the
notification dispatcher delivers them once the state change is durable.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..models.enums import NotificationType


@dataclass
class InAppNotification:
    """Notification record to create for one account."""
    account_id: str
    title: str
    message: str
    type: NotificationType = NotificationType.INFO
    link: Optional[str] = None


@dataclass
class EmailNotification:
    """Transactional email to send to one address."""
    to: str
    template: str
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LifecycleEvent:
    """Lifecycle event broadcast to downstream consumers."""
    name: str
    entity_id: str
    payload: Dict[str, Any] = field(default_factory=dict)


Event = Union[InAppNotification, EmailNotification, LifecycleEvent]


@dataclass
class Transition:
    """
    Result of applying a lifecycle transition to one entity.

    Attributes:
        entity: Entity after the transition
        expected: Fields the stored document must still match for the write
            to apply (camelCase keys)
        changes: Partial document to write (camelCase keys)
        events: Events to dispatch after commit
    """
    entity: Any
    expected: Dict[str, Any]
    changes: Dict[str, Any]
    events: List[Event] = field(default_factory=list)


def dashboard_link(section: str) -> str:
    """Deep link into the organization dashboard."""
    return f"/dashboard/{section}"


def dog_link(dog_id: str) -> str:
    """Deep link to a dog profile."""
    return f"/dogs/{dog_id}"
