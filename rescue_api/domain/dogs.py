# SPDX-License-Identifier: Apache-2.0

"""
Dog lifecycle domain logic.

Pure functions for rescue case creation, edits, veterinary assignment,
treatment tracking, medical records and report promotion. Each function
validates the requested transition against the current state and returns
a Transition describing the conditional write and the events to dispatch.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from ..models.entities import Account, ActorContext, Dog, MedicalRecord, RescueReport
from ..models.enums import (
    AccountRole,
    DogStatus,
    MedicalRecordType,
    NotificationType,
    ReportStatus,
    TreatmentStatus,
    Urgency,
    VerificationStatus
)
from .errors import ConflictException, ValidationException
from .events import InAppNotification, LifecycleEvent, Transition, dashboard_link, dog_link


# Administrators may move a case between any non-terminal states by edit.
# Adoption is reached only from adoptable, through application approval.
DOG_TRANSITIONS: Dict[DogStatus, Tuple[DogStatus, ...]] = {
    DogStatus.REPORTED: (DogStatus.IN_PROGRESS, DogStatus.TREATED, DogStatus.ADOPTABLE),
    DogStatus.IN_PROGRESS: (DogStatus.REPORTED, DogStatus.TREATED, DogStatus.ADOPTABLE),
    DogStatus.TREATED: (DogStatus.REPORTED, DogStatus.IN_PROGRESS, DogStatus.ADOPTABLE),
    DogStatus.ADOPTABLE: (DogStatus.REPORTED, DogStatus.IN_PROGRESS, DogStatus.TREATED, DogStatus.ADOPTED),
    DogStatus.ADOPTED: (),
}

# Treatment corrections are allowed in any direction
TREATMENT_TRANSITIONS: Dict[TreatmentStatus, Tuple[TreatmentStatus, ...]] = {
    TreatmentStatus.PENDING: (TreatmentStatus.IN_PROGRESS, TreatmentStatus.COMPLETED),
    TreatmentStatus.IN_PROGRESS: (TreatmentStatus.PENDING, TreatmentStatus.COMPLETED),
    TreatmentStatus.COMPLETED: (TreatmentStatus.PENDING, TreatmentStatus.IN_PROGRESS),
}

for _table, _states in ((DOG_TRANSITIONS, DogStatus), (TREATMENT_TRANSITIONS, TreatmentStatus)):
    _missing = [state for state in _states if state not in _table]
    if _missing:
        raise RuntimeError(f"Transition table missing states: {_missing}")

# Report urgency implies how far along the promoted case starts
PROMOTION_STATUS: Dict[Urgency, DogStatus] = {
    Urgency.CRITICAL: DogStatus.IN_PROGRESS,
    Urgency.HIGH: DogStatus.IN_PROGRESS,
    Urgency.MEDIUM: DogStatus.REPORTED,
    Urgency.LOW: DogStatus.REPORTED,
}

# Fields an edit may not clear
NON_NULLABLE_FIELDS = ("name", "status", "gender", "vaccinated", "sterilized", "photos")

ADOPTED_MESSAGE = "Dog has already been adopted and can no longer be changed"
PROMOTED_MESSAGE = "Dog was created from a rescue report and cannot be deleted"

NOT_ADOPTED = {"status": {"$ne": DogStatus.ADOPTED.value}}


def validate_dog_transition(current: DogStatus, new: DogStatus) -> None:
    """
    Validate a dog status change.

    Raises:
        ConflictException: If the move is not allowed from the current status
    """
    current = DogStatus(current)
    new = DogStatus(new)
    if current == new:
        return
    if current == DogStatus.ADOPTED:
        raise ConflictException(ADOPTED_MESSAGE)
    if new not in DOG_TRANSITIONS[current]:
        raise ConflictException(f"Invalid dog status transition from {current.value} to {new.value}")


def _ensure_not_adopted(dog: Dog) -> None:
    if dog.is_adopted():
        raise ConflictException(ADOPTED_MESSAGE)


def _owner_for(actor: ActorContext) -> Optional[str]:
    """Organization admins own the cases they create; superadmins do not."""
    if actor.has_role(AccountRole.NGO_ADMIN):
        return actor.account_id
    return None


def create_dog(attributes: Dict[str, Any], actor: ActorContext) -> Transition:
    """
    Create a new rescue case in the reported state.

    Args:
        attributes: Validated dog attributes (python field names)
        actor: Creating administrator

    Returns:
        Transition holding the new dog
    """
    data = dict(attributes)
    data.pop("status", None)
    dog = Dog(**data, status=DogStatus.REPORTED, created_by=_owner_for(actor))

    return Transition(
        entity=dog,
        expected={},
        changes=dog.to_document(),
        events=[LifecycleEvent("dog.created", dog.id, {"status": dog.status, "createdBy": dog.created_by})]
    )


def apply_dog_patch(dog: Dog, changes: Dict[str, Any], actor: ActorContext, now: datetime) -> Transition:
    """
    Apply an explicit partial update to a rescue case.

    Args:
        dog: Current dog
        changes: Fields the caller sent (python field names)
        actor: Editing administrator
        now: Current time

    Returns:
        Transition guarded on the dog's current status

    Raises:
        ConflictException: If the dog is adopted or the status move is illegal
        ValidationException: If a required field is cleared
    """
    _ensure_not_adopted(dog)

    cleared = [name for name in NON_NULLABLE_FIELDS if name in changes and changes[name] is None]
    if cleared:
        raise ValidationException(
            "Fields cannot be cleared",
            [{"field": name, "message": "Field cannot be null", "type": "value_error"} for name in cleared]
        )

    if "status" in changes:
        if DogStatus(changes["status"]) == DogStatus.ADOPTED:
            raise ConflictException("Dogs can only be marked adopted by approving an adoption application")
        validate_dog_transition(dog.status, changes["status"])

    updates = dict(changes)
    # Cases without an owner are claimed by the first organization that edits them
    if dog.created_by is None and actor.has_role(AccountRole.NGO_ADMIN):
        updates["created_by"] = actor.account_id
    updates["updated_at"] = now

    updated = dog.with_changes(**updates)
    return Transition(
        entity=updated,
        expected={"status": dog.status},
        changes=updated.document_fields(*updates.keys()),
        events=[LifecycleEvent("dog.updated", dog.id, {"fields": sorted(changes.keys())})]
    )


def check_deletable(dog: Dog) -> Dict[str, Any]:
    """
    Validate that a rescue case can be deleted.

    A case promoted from a rescue report stays, since the report keeps a
    permanent link to it.

    Returns:
        Predicate the stored document must match for the delete to apply

    Raises:
        ConflictException: If the dog is adopted or was promoted from a report
    """
    _ensure_not_adopted(dog)
    if dog.from_report_id:
        raise ConflictException(PROMOTED_MESSAGE)
    return {**NOT_ADOPTED, "fromReportId": None}


def assign_vet(dog: Dog, vet: Optional[Account], now: datetime) -> Transition:
    """
    Assign or unassign the veterinarian responsible for a dog.

    A newly assigned vet restarts treatment at pending; unassigning leaves
    the treatment status as it was.

    Args:
        dog: Current dog
        vet: Veterinarian account, or None to unassign
        now: Current time

    Returns:
        Transition guarded on the current assignment
    """
    _ensure_not_adopted(dog)

    updates: Dict[str, Any] = {"updated_at": now}
    events = []

    if vet is None:
        updates["assigned_vet"] = None
    else:
        if vet.role != AccountRole.VETERINARIAN:
            raise ValidationException("Selected account is not a veterinarian")
        if vet.verification_status not in (None, VerificationStatus.APPROVED):
            raise ValidationException("Selected veterinarian is not verified")

        updates["assigned_vet"] = vet.id
        if vet.id != dog.assigned_vet:
            updates["treatment_status"] = TreatmentStatus.PENDING
            events.append(InAppNotification(
                account_id=vet.id,
                title="New Patient Assigned",
                message=f"{dog.name} has been assigned to you for treatment.",
                type=NotificationType.INFO,
                link=dashboard_link("patients")
            ))

    updated = dog.with_changes(**updates)
    events.append(LifecycleEvent("dog.vet_assigned", dog.id, {"assignedVet": updated.assigned_vet}))

    return Transition(
        entity=updated,
        expected={**NOT_ADOPTED, "assignedVet": dog.assigned_vet},
        changes=updated.document_fields(*updates.keys()),
        events=events
    )


def set_treatment_status(dog: Dog, status: TreatmentStatus, now: datetime) -> Transition:
    """
    Move the treatment of a dog to a new status.

    Args:
        dog: Current dog
        status: Requested treatment status
        now: Current time

    Returns:
        Transition guarded on the current vet and treatment status
    """
    _ensure_not_adopted(dog)
    if dog.assigned_vet is None:
        raise ConflictException("No veterinarian is assigned to this dog")

    new = TreatmentStatus(status)
    current = TreatmentStatus(dog.treatment_status or TreatmentStatus.PENDING)
    if new == current:
        raise ConflictException(f"Treatment is already {new.value}")
    if new not in TREATMENT_TRANSITIONS[current]:
        raise ConflictException(f"Invalid treatment transition from {current.value} to {new.value}")

    updated = dog.with_changes(treatment_status=new, updated_at=now)
    events = [LifecycleEvent("dog.treatment_updated", dog.id, {"treatmentStatus": new.value})]
    if dog.created_by:
        events.append(InAppNotification(
            account_id=dog.created_by,
            title="Treatment Update",
            message=f"Treatment for {dog.name} is now {new.value.replace('_', ' ')}.",
            type=NotificationType.SUCCESS if new == TreatmentStatus.COMPLETED else NotificationType.INFO,
            link=dog_link(dog.id)
        ))

    return Transition(
        entity=updated,
        expected={
            **NOT_ADOPTED,
            "assignedVet": dog.assigned_vet,
            "treatmentStatus": dog.treatment_status
        },
        changes=updated.document_fields("treatment_status", "updated_at"),
        events=events
    )


def record_medical(
    dog: Dog,
    vet_id: str,
    attributes: Dict[str, Any],
    now: datetime
) -> Tuple[MedicalRecord, Transition]:
    """
    Record a medical event and derive the dog's medical flags from it.

    Vaccination and sterilization records set the corresponding flag.

    Returns:
        Tuple of (new medical record, dog transition)
    """
    _ensure_not_adopted(dog)

    record = MedicalRecord(dog_id=dog.id, vet_id=vet_id, **attributes)

    updates: Dict[str, Any] = {"updated_at": now}
    if record.record_type == MedicalRecordType.VACCINATION:
        updates["vaccinated"] = True
    elif record.record_type == MedicalRecordType.STERILIZATION:
        updates["sterilized"] = True

    updated = dog.with_changes(**updates)
    transition = Transition(
        entity=updated,
        expected={**NOT_ADOPTED, "assignedVet": dog.assigned_vet},
        changes=updated.document_fields(*updates.keys()),
        events=[LifecycleEvent(
            "dog.medical_recorded",
            dog.id,
            {"recordId": record.id, "recordType": record.record_type}
        )]
    )
    return record, transition


def promote_report(report: RescueReport, actor: ActorContext, now: datetime) -> Tuple[Dog, Transition]:
    """
    Build the rescue case for a report that has not been promoted yet.

    Args:
        report: Report to promote (must not have a dog yet)
        actor: Promoting administrator
        now: Current time

    Returns:
        Tuple of (new dog, report transition linking it)
    """
    if report.dog_id is not None:
        raise ConflictException("Report has already been promoted")
    if report.status == ReportStatus.CANCELLED:
        raise ConflictException("Cancelled reports cannot be promoted")

    dog = Dog(
        name=f"Rescue #{report.id[-6:].upper()}",
        status=PROMOTION_STATUS[Urgency(report.urgency)],
        description=report.description,
        location=report.location,
        photos=list(report.photos),
        created_by=_owner_for(actor),
        from_report_id=report.id
    )

    updated = report.with_changes(dog_id=dog.id, updated_at=now)
    events = [LifecycleEvent("report.promoted", report.id, {"dogId": dog.id, "status": dog.status})]
    if report.reporter_id:
        events.append(InAppNotification(
            account_id=report.reporter_id,
            title="Your Report Became a Rescue Case",
            message="Thank you! The dog you reported is now being cared for.",
            type=NotificationType.SUCCESS,
            link=dog_link(dog.id)
        ))

    transition = Transition(
        entity=updated,
        expected={"dogId": None},
        changes=updated.document_fields("dog_id", "updated_at"),
        events=events
    )
    return dog, transition
