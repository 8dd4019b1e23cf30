# SPDX-License-Identifier: Apache-2.0

"""
Adoption application service.
"""

import logging
from typing import Any, Dict, List, Optional

from ..domain import adoptions as adoption_rules
from ..domain.authorization import Action, require
from ..models.entities import ActorContext, AdoptionApplication, Dog
from ..models.enums import ApplicationStatus
from .lifecycle import LifecycleService
from .store import APPLICATIONS, DOGS

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("submittedAt", -1)]


class AdoptionService(LifecycleService):
    """Service for submitting and reviewing adoption applications."""

    def get_application(self, actor: ActorContext, application_id: str) -> AdoptionApplication:
        """Fetch an application visible to the actor."""
        application = self._load(APPLICATIONS, AdoptionApplication, application_id, "Application")
        require(actor, Action.VIEW_APPLICATION, application)
        return application

    def submit_application(
        self,
        actor: ActorContext,
        dog_id: str,
        attributes: Dict[str, Any]
    ) -> AdoptionApplication:
        """
        Apply to adopt a dog.

        Args:
            actor: Authenticated applicant (not a superadmin)
            dog_id: Dog to adopt
            attributes: Household details

        Returns:
            Created application

        Raises:
            NotFoundException: If the dog does not exist
            ConflictException: If the dog is not adoptable or the applicant
                already has an active application for it
        """
        with self._span("adoption.submit", {"dog.id": dog_id, "applicant.id": actor.account_id}) as span:
            require(actor, Action.SUBMIT_APPLICATION)

            dog = self._load(DOGS, Dog, dog_id, "Dog")
            applicant = self._load_account(actor.account_id)
            active = [
                AdoptionApplication.from_document(document)
                for document in self.store.find(APPLICATIONS, {
                    "dogId": dog_id,
                    "applicantId": actor.account_id,
                    "isActive": True
                })
            ]

            transition = adoption_rules.submit_application(dog, applicant, attributes, active, self.clock())
            application = self._insert(
                APPLICATIONS,
                transition.entity,
                duplicate_message=adoption_rules.DUPLICATE_MESSAGE
            )
            span.set_attribute("application.id", application.id)

            logger.info(
                "Adoption application submitted",
                extra={"application_id": application.id, "dog_id": dog_id, "ngo_id": application.ngo_id}
            )
            self._dispatch(transition.events)
            return application

    def decide_application(
        self,
        actor: ActorContext,
        application_id: str,
        decision: ApplicationStatus,
        notes: Optional[str] = None
    ) -> AdoptionApplication:
        """
        Review an application.

        Approval moves the dog to adopted in the same transaction; if the
        dog is no longer adoptable the whole decision is rolled back.

        Args:
            actor: Owning organization admin or superadmin
            application_id: Application to decide
            decision: under_review, approved or rejected
            notes: Reviewer notes

        Returns:
            Updated application
        """
        with self._span("adoption.decide", {"application.id": application_id, "decision": decision}):
            application = self._load(APPLICATIONS, AdoptionApplication, application_id, "Application")
            require(actor, Action.DECIDE_APPLICATION, application)

            dog = self._load(DOGS, Dog, application.dog_id, "Dog")
            app_transition, dog_transition = adoption_rules.decide_application(
                application, dog, decision, notes, actor.account_id, self.clock()
            )

            with self._transaction() as tx:
                updated = self._apply(APPLICATIONS, app_transition, "Application", store=tx)
                if dog_transition is not None:
                    self._apply(
                        DOGS,
                        dog_transition,
                        "Dog",
                        store=tx,
                        conflict_message=adoption_rules.NOT_AVAILABLE_MESSAGE
                    )

            logger.info(
                "Adoption application decided",
                extra={
                    "application_id": application_id,
                    "status": updated.status,
                    "dog_id": application.dog_id,
                    "reviewed_by": actor.account_id
                }
            )
            self._dispatch(app_transition.events)
            return updated

    def list_my_applications(self, actor: ActorContext) -> List[AdoptionApplication]:
        """List the caller's own applications, newest first."""
        require(actor, Action.VIEW_OWN_APPLICATIONS)
        documents = self.store.find(APPLICATIONS, {"applicantId": actor.account_id}, sort=NEWEST_FIRST)
        return [AdoptionApplication.from_document(document) for document in documents]

    def list_organization_applications(
        self,
        actor: ActorContext,
        status: Optional[str] = None
    ) -> List[AdoptionApplication]:
        """
        List applications an organization may review.

        Organization admins see applications for their own dogs; superadmins
        see every application.
        """
        require(actor, Action.VIEW_ORG_APPLICATIONS)

        query: Dict[str, Any] = {}
        if not actor.is_superadmin():
            query["ngoId"] = actor.account_id
        if status:
            query["status"] = status

        documents = self.store.find(APPLICATIONS, query, sort=NEWEST_FIRST)
        return [AdoptionApplication.from_document(document) for document in documents]
