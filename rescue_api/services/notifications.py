# SPDX-License-Identifier: Apache-2.0

"""
In-app notification inbox.
"""

import logging
from typing import Any, Dict, List, Optional

from ..domain.authorization import Action, require
from ..domain.errors import NotFoundException
from ..models.base import utc_now
from ..models.entities import ActorContext, Notification
from .lifecycle import Clock
from .store import NOTIFICATIONS, EntityStore

logger = logging.getLogger(__name__)


class NotificationService:
    """Read side of the notifications created by the dispatcher."""

    def __init__(self, store: EntityStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or utc_now

    def list_notifications(
        self,
        actor: ActorContext,
        unread_only: bool = False,
        limit: int = 50
    ) -> Dict[str, Any]:
        """
        List the caller's notifications, newest first.

        Returns:
            Dictionary with the notifications and the unread count
        """
        require(actor, Action.VIEW_NOTIFICATIONS)

        query: Dict[str, Any] = {"accountId": actor.account_id}
        if unread_only:
            query["isRead"] = False

        documents = self.store.find(NOTIFICATIONS, query, sort=[("createdAt", -1)], limit=limit)
        return {
            "items": [Notification.from_document(document) for document in documents],
            "unreadCount": self.store.count(NOTIFICATIONS, {"accountId": actor.account_id, "isRead": False})
        }

    def mark_read(self, actor: ActorContext, notification_id: str) -> Notification:
        """
        Mark one of the caller's notifications read.

        Raises:
            NotFoundException: If the notification does not exist or belongs
                to someone else
        """
        require(actor, Action.VIEW_NOTIFICATIONS)

        document = self.store.update_where(
            NOTIFICATIONS,
            notification_id,
            {"accountId": actor.account_id},
            {"isRead": True, "updatedAt": self.clock()}
        )
        if document is None:
            raise NotFoundException("Notification not found")
        return Notification.from_document(document)

    def mark_all_read(self, actor: ActorContext) -> int:
        """Mark every unread notification of the caller read."""
        require(actor, Action.VIEW_NOTIFICATIONS)

        updated = self.store.update_many(
            NOTIFICATIONS,
            {"accountId": actor.account_id, "isRead": False},
            {"isRead": True, "updatedAt": self.clock()}
        )
        logger.debug("Notifications marked read", extra={"account_id": actor.account_id, "count": updated})
        return updated

    def list_for_account(self, account_id: str) -> List[Notification]:
        """All notifications addressed to an account, newest first."""
        documents = self.store.find(NOTIFICATIONS, {"accountId": account_id}, sort=[("createdAt", -1)])
        return [Notification.from_document(document) for document in documents]
