# SPDX-License-Identifier: Apache-2.0

"""
Superadmin directory: organization overview and volunteer accounts.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from ..domain import accounts as account_rules
from ..domain.authorization import Action, require
from ..domain.errors import ConflictException, NotFoundException
from ..domain.events import LifecycleEvent
from ..domain.reports import REPORT_TRANSITIONS
from ..models.entities import Account, ActorContext, Dog, RescueReport
from ..models.enums import AccountRole, DogStatus, ReportStatus, VerificationStatus
from .accounts import DUPLICATE_EMAIL_MESSAGE
from .auth import AuthService
from .dispatcher import NotificationDispatcher
from .lifecycle import Clock, LifecycleService
from .store import ACCOUNTS, DOGS, REPORTS, EntityStore, matches

logger = logging.getLogger(__name__)

NGO_NOT_FOUND_MESSAGE = "NGO not found"
VOLUNTEER_HAS_TASKS_MESSAGE = "Volunteer still has open rescue tasks"
NEWEST_FIRST = [("createdAt", -1)]
RESCUE_OPERATIONS_WINDOW = timedelta(days=365)
RESCUE_OPERATIONS_LIMIT = 100
OPEN_REPORT_STATUSES = [status.value for status, moves in REPORT_TRANSITIONS.items() if moves]


class DirectoryService(LifecycleService):
    """Service behind the superadmin organization and volunteer screens."""

    def __init__(
        self,
        store: EntityStore,
        dispatcher: NotificationDispatcher,
        auth_service: AuthService,
        clock: Optional[Clock] = None
    ):
        super().__init__(store, dispatcher, clock)
        self.auth_service = auth_service

    # Organizations

    def _approved_ngo_query(self) -> Dict[str, Any]:
        return {
            "role": AccountRole.NGO_ADMIN.value,
            "verificationStatus": VerificationStatus.APPROVED.value
        }

    def _ngo_stats(self, ngo_id: str) -> Dict[str, int]:
        dog_ids = [document["id"] for document in self.store.find(DOGS, {"createdBy": ngo_id})]
        linked_reports = {"dogId": {"$in": dog_ids}}
        return {
            "totalDogs": len(dog_ids),
            "adoptedDogs": self.store.count(
                DOGS, {"createdBy": ngo_id, "status": DogStatus.ADOPTED.value}
            ),
            "totalReports": self.store.count(REPORTS, linked_reports),
            "completedRescues": self.store.count(
                REPORTS, {**linked_reports, "status": ReportStatus.COMPLETED.value}
            )
        }

    def list_ngos(self, actor: ActorContext) -> List[Dict[str, Any]]:
        """
        List approved organizations with their rescue statistics, newest first.
        """
        with self._span("ngo.list", {"actor.id": actor.account_id}) as span:
            require(actor, Action.MANAGE_NGOS)

            documents = self.store.find(ACCOUNTS, self._approved_ngo_query(), sort=NEWEST_FIRST)
            ngos = [
                {**Account.from_document(document).to_public_dict(), "stats": self._ngo_stats(document["id"])}
                for document in documents
            ]
            span.set_attribute("ngo.count", len(ngos))
            return ngos

    def get_ngo(self, actor: ActorContext, ngo_id: str) -> Dict[str, Any]:
        """
        Return one approved organization with its recent rescue operations.

        Rescue operations are the organization's dogs registered within the
        last year and the reports that were promoted into them.

        Raises:
            NotFoundException: If the account is not an approved organization
        """
        with self._span("ngo.get", {"ngo.id": ngo_id}):
            require(actor, Action.MANAGE_NGOS)

            document = self.store.get(ACCOUNTS, ngo_id)
            if document is None or not matches(document, self._approved_ngo_query()):
                raise NotFoundException(NGO_NOT_FOUND_MESSAGE)
            ngo = Account.from_document(document)

            since = self.clock() - RESCUE_OPERATIONS_WINDOW
            dogs = [
                Dog.from_document(item)
                for item in self.store.find(
                    DOGS,
                    {"createdBy": ngo.id, "createdAt": {"$gte": since}},
                    sort=NEWEST_FIRST,
                    limit=RESCUE_OPERATIONS_LIMIT
                )
            ]
            reports = [
                RescueReport.from_document(item)
                for item in self.store.find(
                    REPORTS,
                    {"dogId": {"$in": [dog.id for dog in dogs]}},
                    sort=NEWEST_FIRST,
                    limit=RESCUE_OPERATIONS_LIMIT
                )
            ]
            return {
                "ngo": {**ngo.to_public_dict(), "stats": self._ngo_stats(ngo.id)},
                "dogs": dogs,
                "reports": reports
            }

    # Volunteers

    def list_volunteers(self, actor: ActorContext) -> List[Dict[str, Any]]:
        """List volunteer accounts, newest first."""
        require(actor, Action.MANAGE_VOLUNTEERS)
        documents = self.store.find(ACCOUNTS, {"role": AccountRole.VOLUNTEER.value}, sort=NEWEST_FIRST)
        return [Account.from_document(document).to_public_dict() for document in documents]

    def _load_volunteer(self, volunteer_id: str) -> Account:
        document = self.store.get(ACCOUNTS, volunteer_id)
        return account_rules.ensure_volunteer(Account.from_document(document) if document else None)

    def get_volunteer(self, actor: ActorContext, volunteer_id: str) -> Dict[str, Any]:
        """
        Raises:
            NotFoundException: If the account is missing or not a volunteer
        """
        require(actor, Action.MANAGE_VOLUNTEERS)
        return self._load_volunteer(volunteer_id).to_public_dict()

    def create_volunteer(self, actor: ActorContext, attributes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a volunteer account on behalf of a volunteer.

        Args:
            actor: Superadmin
            attributes: email, password, name, phone, organization

        Raises:
            ValidationException: If the password is too short
            ConflictException: If the email is already registered
        """
        with self._span("volunteer.create", {"actor.id": actor.account_id}) as span:
            require(actor, Action.MANAGE_VOLUNTEERS)

            email = attributes["email"].strip().lower()
            if self.store.find_one(ACCOUNTS, {"email": email}) is not None:
                raise ConflictException(DUPLICATE_EMAIL_MESSAGE)
            account_rules.validate_new_password(attributes["password"])

            password_hash = self.auth_service.hash_password(attributes["password"])
            transition = account_rules.create_volunteer({**attributes, "email": email}, password_hash)
            volunteer = self._insert(ACCOUNTS, transition.entity, duplicate_message=DUPLICATE_EMAIL_MESSAGE)
            span.set_attribute("volunteer.id", volunteer.id)

            logger.info("Volunteer created", extra={"volunteer_id": volunteer.id, "created_by": actor.account_id})
            self._dispatch(transition.events)
            return volunteer.to_public_dict()

    def update_volunteer(self, actor: ActorContext, volunteer_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update a volunteer account.

        Args:
            actor: Superadmin
            volunteer_id: Volunteer account ID
            changes: Any of email, name, phone, organization and password

        Raises:
            NotFoundException: If the account is missing or not a volunteer
            ValidationException: If nothing changes or the password is too short
            ConflictException: If the new email is already registered
        """
        with self._span("volunteer.update", {"volunteer.id": volunteer_id}):
            require(actor, Action.MANAGE_VOLUNTEERS)
            volunteer = self._load_volunteer(volunteer_id)

            changes = dict(changes)
            if changes.get("email"):
                changes["email"] = changes["email"].strip().lower()
                existing = self.store.find_one(ACCOUNTS, {"email": changes["email"]})
                if existing is not None and existing["id"] != volunteer.id:
                    raise ConflictException(DUPLICATE_EMAIL_MESSAGE)

            password_hash = None
            if changes.get("password"):
                account_rules.validate_new_password(changes["password"])
                password_hash = self.auth_service.hash_password(changes["password"])

            transition = account_rules.update_volunteer(volunteer, changes, password_hash, self.clock())
            updated = self._apply(
                ACCOUNTS,
                transition,
                "Volunteer",
                duplicate_message=DUPLICATE_EMAIL_MESSAGE
            )

            logger.info(
                "Volunteer updated",
                extra={"volunteer_id": volunteer_id, "fields": transition.events[0].payload["fields"]}
            )
            self._dispatch(transition.events)
            return updated.to_public_dict()

    def delete_volunteer(self, actor: ActorContext, volunteer_id: str) -> None:
        """
        Delete a volunteer account.

        Raises:
            NotFoundException: If the account is missing or not a volunteer
            ConflictException: If rescue reports are still assigned to it
        """
        with self._span("volunteer.delete", {"volunteer.id": volunteer_id}):
            require(actor, Action.MANAGE_VOLUNTEERS)
            self._load_volunteer(volunteer_id)

            open_tasks = self.store.count(
                REPORTS, {"assignedTo": volunteer_id, "status": {"$in": OPEN_REPORT_STATUSES}}
            )
            if open_tasks:
                raise ConflictException(VOLUNTEER_HAS_TASKS_MESSAGE)

            if not self.store.delete_where(ACCOUNTS, volunteer_id, {"role": AccountRole.VOLUNTEER.value}):
                raise NotFoundException(account_rules.VOLUNTEER_NOT_FOUND_MESSAGE)

            logger.info("Volunteer deleted", extra={"volunteer_id": volunteer_id, "deleted_by": actor.account_id})
            self._dispatch([LifecycleEvent("volunteer.deleted", volunteer_id, {"deletedBy": actor.account_id})])
