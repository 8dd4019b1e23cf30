# SPDX-License-Identifier: Apache-2.0

"""
Rescue case and sighting report service.

Orchestrates the dog lifecycle (creation, edits, veterinary care, medical
records), citizen sighting reports and the promotion of a report into a
rescue case.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..domain import dogs as dog_rules
from ..domain import reports as report_rules
from ..domain.authorization import Action, authorize, require
from ..domain.errors import ConflictException, NotFoundException
from ..domain.events import LifecycleEvent
from ..models.entities import Account, ActorContext, Dog, MedicalRecord, RescueReport
from ..models.enums import AccountRole, ReportStatus, TreatmentStatus, VerificationStatus
from .lifecycle import LifecycleService
from .store import ACCOUNTS, DOGS, MEDICAL_RECORDS, REPORTS

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("createdAt", -1)]
DEFAULT_LIMIT = 200
MY_REPORTS_LIMIT = 100


class RescueService(LifecycleService):
    """Service for rescue cases, veterinary care and sighting reports."""

    # Dogs

    def get_dog(self, dog_id: str) -> Dog:
        """Fetch a dog profile."""
        return self._load(DOGS, Dog, dog_id, "Dog")

    def list_dogs(
        self,
        status: Optional[str] = None,
        district: Optional[str] = None,
        created_by: Optional[str] = None,
        limit: int = DEFAULT_LIMIT
    ) -> List[Dog]:
        """
        List dogs, newest first.

        Args:
            status: Only dogs in this status
            district: Only dogs found in this district
            created_by: Only dogs owned by this organization
            limit: Maximum number of dogs
        """
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if district:
            query["location.district"] = district
        if created_by:
            query["createdBy"] = created_by

        documents = self.store.find(DOGS, query, sort=NEWEST_FIRST, limit=limit)
        return [Dog.from_document(document) for document in documents]

    def create_dog(self, actor: ActorContext, attributes: Dict[str, Any]) -> Dog:
        """
        Create a rescue case in the reported state.

        Args:
            actor: Organization admin or superadmin
            attributes: Validated dog attributes

        Returns:
            Created dog
        """
        with self._span("dog.create", {"actor.id": actor.account_id}) as span:
            require(actor, Action.CREATE_DOG)

            transition = dog_rules.create_dog(attributes, actor)
            dog = self._insert(DOGS, transition.entity)
            span.set_attribute("dog.id", dog.id)

            logger.info("Dog created", extra={"dog_id": dog.id, "created_by": dog.created_by})
            self._dispatch(transition.events)
            return dog

    def update_dog(self, actor: ActorContext, dog_id: str, changes: Dict[str, Any]) -> Dog:
        """
        Apply a partial update to a rescue case.

        Args:
            actor: Organization admin or superadmin
            dog_id: Dog to edit
            changes: Only the fields the caller sent

        Returns:
            Updated dog
        """
        with self._span("dog.update", {"dog.id": dog_id, "actor.id": actor.account_id}):
            require(actor, Action.UPDATE_DOG)

            dog = self.get_dog(dog_id)
            transition = dog_rules.apply_dog_patch(dog, changes, actor, self.clock())
            updated = self._apply(DOGS, transition, "Dog")

            logger.info("Dog updated", extra={"dog_id": dog_id, "fields": sorted(changes.keys())})
            self._dispatch(transition.events)
            return updated

    def delete_dog(self, actor: ActorContext, dog_id: str) -> None:
        """
        Delete a rescue case that has not been adopted.

        Raises:
            NotFoundException: If the dog does not exist
            ConflictException: If the dog is adopted or was created from a report
        """
        with self._span("dog.delete", {"dog.id": dog_id, "actor.id": actor.account_id}):
            require(actor, Action.DELETE_DOG)

            dog = self.get_dog(dog_id)
            predicate = dog_rules.check_deletable(dog)
            if not self.store.delete_where(DOGS, dog_id, predicate):
                if self.store.get(DOGS, dog_id) is None:
                    raise NotFoundException("Dog not found")
                raise ConflictException(dog_rules.ADOPTED_MESSAGE)

            logger.info("Dog deleted", extra={"dog_id": dog_id, "actor_id": actor.account_id})
            self._dispatch([LifecycleEvent("dog.deleted", dog_id, {"deletedBy": actor.account_id})])

    def assign_vet(self, actor: ActorContext, dog_id: str, vet_id: Optional[str]) -> Dog:
        """
        Assign or unassign the veterinarian of a dog.

        Args:
            actor: Organization admin or superadmin
            dog_id: Dog to update
            vet_id: Veterinarian account ID, or None to unassign
        """
        with self._span("dog.assign_vet", {"dog.id": dog_id, "vet.id": vet_id}):
            require(actor, Action.ASSIGN_VET)

            dog = self.get_dog(dog_id)
            vet = self._load_account(vet_id, "Veterinarian") if vet_id else None
            transition = dog_rules.assign_vet(dog, vet, self.clock())
            updated = self._apply(DOGS, transition, "Dog")

            logger.info("Veterinarian assignment changed", extra={"dog_id": dog_id, "vet_id": vet_id})
            self._dispatch(transition.events)
            return updated

    def set_treatment_status(self, actor: ActorContext, dog_id: str, status: TreatmentStatus) -> Dog:
        """
        Update the treatment progress of a dog.

        Only the assigned veterinarian or a superadmin may do this.
        """
        with self._span("dog.set_treatment_status", {"dog.id": dog_id, "treatment.status": status}):
            dog = self.get_dog(dog_id)
            require(actor, Action.SET_TREATMENT_STATUS, dog)

            transition = dog_rules.set_treatment_status(dog, status, self.clock())
            updated = self._apply(DOGS, transition, "Dog")

            logger.info(
                "Treatment status updated",
                extra={"dog_id": dog_id, "treatment_status": updated.treatment_status}
            )
            self._dispatch(transition.events)
            return updated

    def record_medical_record(
        self,
        actor: ActorContext,
        dog_id: str,
        attributes: Dict[str, Any]
    ) -> MedicalRecord:
        """
        Record a medical event and update the dog's medical flags atomically.
        """
        with self._span("dog.record_medical", {"dog.id": dog_id, "actor.id": actor.account_id}):
            dog = self.get_dog(dog_id)
            require(actor, Action.RECORD_MEDICAL, dog)

            record, transition = dog_rules.record_medical(dog, actor.account_id, attributes, self.clock())
            with self._transaction() as tx:
                stored = self._insert(MEDICAL_RECORDS, record, store=tx)
                self._apply(DOGS, transition, "Dog", store=tx)

            logger.info(
                "Medical record added",
                extra={"dog_id": dog_id, "record_id": stored.id, "record_type": stored.record_type}
            )
            self._dispatch(transition.events)
            return stored

    def list_medical_records(self, actor: ActorContext, dog_id: str) -> List[MedicalRecord]:
        """List the medical history of a dog, newest first."""
        require(actor, Action.VIEW_MEDICAL_RECORDS)
        self.get_dog(dog_id)

        documents = self.store.find(MEDICAL_RECORDS, {"dogId": dog_id}, sort=NEWEST_FIRST)
        return [MedicalRecord.from_document(document) for document in documents]

    def list_vets(self) -> List[Dict[str, Any]]:
        """
        List veterinarians that can take patients.

        Approved vets and legacy vets without a verification status qualify.
        """
        documents = self.store.find(
            ACCOUNTS,
            {
                "role": AccountRole.VETERINARIAN.value,
                "verificationStatus": {"$in": [VerificationStatus.APPROVED.value, None]}
            },
            sort=[("name", 1)]
        )
        vets = []
        for document in documents:
            account = Account.from_document(document)
            vets.append({
                "id": account.id,
                "name": account.name,
                "email": account.email,
                "phone": account.phone,
                "organization": account.organization_name
            })
        return vets

    # Reports

    def get_report(self, report_id: str) -> RescueReport:
        """Fetch a sighting report."""
        return self._load(REPORTS, RescueReport, report_id, "Report")

    def get_report_for(self, actor: ActorContext, report_id: str) -> RescueReport:
        """
        Fetch a report visible to the actor.

        Staff see every report, volunteers the reports assigned to them and
        reporters their own submissions.
        """
        report = self.get_report(report_id)
        if report.reporter_id and report.reporter_id == actor.account_id:
            return report
        if authorize(actor, Action.VIEW_ALL_REPORTS).allowed:
            return report
        require(actor, Action.VIEW_OWN_TASKS, report)
        return report

    def submit_report(self, actor: Optional[ActorContext], attributes: Dict[str, Any]) -> RescueReport:
        """
        Submit a sighting report; anonymous callers are allowed.
        """
        with self._span("report.submit", {"report.urgency": attributes.get("urgency")}) as span:
            require(actor, Action.SUBMIT_REPORT)

            transition = report_rules.submit_report(attributes, actor, self._superadmin_ids())
            report = self._insert(REPORTS, transition.entity)
            span.set_attribute("report.id", report.id)

            logger.info(
                "Rescue report submitted",
                extra={"report_id": report.id, "urgency": report.urgency, "anonymous": actor is None}
            )
            self._dispatch(transition.events)
            return report

    def list_reports(self, actor: ActorContext, status: Optional[str] = None) -> List[RescueReport]:
        """List all reports in triage order."""
        require(actor, Action.VIEW_ALL_REPORTS)

        query = {"status": status} if status else {}
        documents = self.store.find(REPORTS, query, sort=report_rules.TRIAGE_SORT, limit=DEFAULT_LIMIT)
        return [RescueReport.from_document(document) for document in documents]

    def list_my_tasks(self, actor: ActorContext) -> List[RescueReport]:
        """List reports assigned to the calling volunteer, in triage order."""
        require(actor, Action.VIEW_OWN_TASKS)

        documents = self.store.find(
            REPORTS,
            {"assignedTo": actor.account_id},
            sort=report_rules.TRIAGE_SORT
        )
        return [RescueReport.from_document(document) for document in documents]

    def list_my_reports(self, actor: ActorContext) -> List[RescueReport]:
        """List reports the caller submitted, newest first."""
        require(actor, Action.VIEW_OWN_REPORTS)

        documents = self.store.find(
            REPORTS,
            {"reporterId": actor.account_id},
            sort=NEWEST_FIRST,
            limit=MY_REPORTS_LIMIT
        )
        return [RescueReport.from_document(document) for document in documents]

    def set_report_status(self, actor: ActorContext, report_id: str, status: ReportStatus) -> RescueReport:
        """Move a report forward in its lifecycle or cancel it."""
        with self._span("report.set_status", {"report.id": report_id, "report.status": status}):
            require(actor, Action.SET_REPORT_STATUS)

            report = self.get_report(report_id)
            transition = report_rules.set_report_status(report, status, self.clock())
            updated = self._apply(REPORTS, transition, "Report")

            logger.info("Report status updated", extra={"report_id": report_id, "status": updated.status})
            self._dispatch(transition.events)
            return updated

    def assign_report(self, actor: ActorContext, report_id: str, volunteer_id: str) -> RescueReport:
        """Assign a report to a volunteer."""
        with self._span("report.assign", {"report.id": report_id, "volunteer.id": volunteer_id}):
            require(actor, Action.ASSIGN_REPORT)

            report = self.get_report(report_id)
            volunteer = self._load_account(volunteer_id, "Volunteer")
            transition = report_rules.assign_report(report, volunteer, self.clock())
            updated = self._apply(REPORTS, transition, "Report")

            logger.info("Report assigned", extra={"report_id": report_id, "volunteer_id": volunteer_id})
            self._dispatch(transition.events)
            return updated

    def promote_report_to_dog(self, actor: ActorContext, report_id: str) -> Tuple[Dog, bool]:
        """
        Turn a report into a rescue case, at most once.

        Promoting a report that already has a dog returns that dog. The dog
        insert and the report link commit together; a concurrent promotion
        loses the conditional link write, rolls back and returns the
        winner's dog.

        Returns:
            Tuple of (dog, created)
        """
        with self._span("report.promote", {"report.id": report_id, "actor.id": actor.account_id}) as span:
            require(actor, Action.PROMOTE_REPORT)

            report = self.get_report(report_id)
            if report.dog_id is not None:
                span.set_attribute("report.already_promoted", True)
                return self._promoted_dog(report), False

            dog, transition = dog_rules.promote_report(report, actor, self.clock())
            try:
                with self._transaction() as tx:
                    created = self._insert(DOGS, dog, store=tx)
                    linked = tx.update_where(REPORTS, report.id, transition.expected, transition.changes)
                    if linked is None:
                        raise ConflictException("Report has already been promoted")
            except ConflictException:
                current = self.get_report(report_id)
                if current.dog_id is None:
                    raise
                logger.info("Report promoted concurrently", extra={"report_id": report_id})
                return self._promoted_dog(current), False

            span.set_attribute("dog.id", created.id)
            logger.info(
                "Report promoted to rescue case",
                extra={"report_id": report_id, "dog_id": created.id, "status": created.status}
            )
            self._dispatch(transition.events)
            return created, True

    def _promoted_dog(self, report: RescueReport) -> Dog:
        document = self.store.get(DOGS, report.dog_id)
        if document is None:
            raise NotFoundException("The rescue case created from this report no longer exists")
        return Dog.from_document(document)
