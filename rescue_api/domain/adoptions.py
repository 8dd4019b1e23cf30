# SPDX-License-Identifier: Apache-2.0

"""
Adoption application workflow domain logic.

Applications move forward only: pending, then optionally under_review,
then approved or rejected. Approval also moves the dog to adopted; both
writes are returned together so the caller can commit them atomically.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..models.entities import Account, AdoptionApplication, Dog
from ..models.enums import ApplicationStatus, DogStatus, NotificationType
from .errors import ConflictException
from .events import InAppNotification, LifecycleEvent, Transition, dashboard_link, dog_link


APPLICATION_TRANSITIONS: Dict[ApplicationStatus, Tuple[ApplicationStatus, ...]] = {
    ApplicationStatus.PENDING: (
        ApplicationStatus.UNDER_REVIEW, ApplicationStatus.APPROVED, ApplicationStatus.REJECTED
    ),
    ApplicationStatus.UNDER_REVIEW: (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED),
    ApplicationStatus.APPROVED: (),
    ApplicationStatus.REJECTED: (),
}

_missing = [status for status in ApplicationStatus if status not in APPLICATION_TRANSITIONS]
if _missing:
    raise RuntimeError(f"Transition table missing states: {_missing}")

ACTIVE_STATUSES = (ApplicationStatus.PENDING.value, ApplicationStatus.UNDER_REVIEW.value)

NOT_AVAILABLE_MESSAGE = "This dog is not currently available for adoption"
DUPLICATE_MESSAGE = "You already have an active application for this dog"


def is_terminal(status: ApplicationStatus) -> bool:
    """Check if an application status admits no further transitions."""
    return not APPLICATION_TRANSITIONS[ApplicationStatus(status)]


def validate_application_transition(current: ApplicationStatus, new: ApplicationStatus) -> None:
    """
    Validate an application status change.

    Raises:
        ConflictException: If the application is terminal or the move goes backwards
    """
    current = ApplicationStatus(current)
    new = ApplicationStatus(new)
    if is_terminal(current):
        raise ConflictException(f"Application has already been {current.value}")
    if new not in APPLICATION_TRANSITIONS[current]:
        raise ConflictException(
            f"Invalid application status transition from {current.value} to {new.value}"
        )


def submit_application(
    dog: Dog,
    applicant: Account,
    attributes: Dict[str, Any],
    active_applications: List[AdoptionApplication],
    now: datetime
) -> Transition:
    """
    Create an adoption application for an adoptable dog.

    Args:
        dog: Dog to adopt
        applicant: Applying account
        attributes: Household attributes (python field names)
        active_applications: Non-terminal applications by this applicant for this dog
        now: Current time

    Returns:
        Transition holding the new application

    Raises:
        ConflictException: If the dog is not adoptable or a duplicate is active
    """
    if not dog.can_accept_applications():
        raise ConflictException(NOT_AVAILABLE_MESSAGE)
    if active_applications:
        raise ConflictException(DUPLICATE_MESSAGE)

    data = dict(attributes)
    data.pop("dog_id", None)
    application = AdoptionApplication(
        **data,
        dog_id=dog.id,
        applicant_id=applicant.id,
        ngo_id=dog.created_by,
        status=ApplicationStatus.PENDING,
        is_active=True,
        submitted_at=now
    )

    events: List[Any] = []
    if application.ngo_id:
        events.append(InAppNotification(
            account_id=application.ngo_id,
            title="New Adoption Application",
            message=f"{applicant.name} applied to adopt {dog.name}.",
            type=NotificationType.INFO,
            link=dashboard_link("adoptions")
        ))
    events.append(InAppNotification(
        account_id=applicant.id,
        title="Adoption Application Submitted",
        message=f"Your application to adopt {dog.name} has been submitted.",
        type=NotificationType.SUCCESS,
        link=dog_link(dog.id)
    ))
    events.append(LifecycleEvent(
        "adoption.submitted",
        application.id,
        {"dogId": dog.id, "applicantId": applicant.id, "ngoId": application.ngo_id}
    ))

    return Transition(entity=application, expected={}, changes=application.to_document(), events=events)


def _decision_notification(
    application: AdoptionApplication,
    dog: Dog,
    decision: ApplicationStatus,
    notes: Optional[str]
) -> InAppNotification:
    if decision == ApplicationStatus.APPROVED:
        return InAppNotification(
            account_id=application.applicant_id,
            title="Adoption Approved",
            message=f"Congratulations! Your application to adopt {dog.name} has been approved.",
            type=NotificationType.SUCCESS,
            link=dog_link(dog.id)
        )
    if decision == ApplicationStatus.REJECTED:
        message = f"Your application to adopt {dog.name} was not approved."
        if notes:
            message += f" Reason: {notes}"
        return InAppNotification(
            account_id=application.applicant_id,
            title="Adoption Rejected",
            message=message,
            type=NotificationType.ERROR,
            link=dog_link(dog.id)
        )
    return InAppNotification(
        account_id=application.applicant_id,
        title="Adoption Under Review",
        message=f"Your application to adopt {dog.name} is now under review.",
        type=NotificationType.INFO,
        link=dog_link(dog.id)
    )


def decide_application(
    application: AdoptionApplication,
    dog: Dog,
    decision: ApplicationStatus,
    notes: Optional[str],
    reviewer_id: str,
    now: datetime
) -> Tuple[Transition, Optional[Transition]]:
    """
    Review an adoption application.

    Args:
        application: Application being decided
        dog: Dog the application refers to
        decision: under_review, approved or rejected
        notes: Reviewer notes (surfaced to the applicant on rejection)
        reviewer_id: Reviewing account ID
        now: Current time

    Returns:
        Tuple of (application transition, dog transition or None). The dog
        transition is present only for approvals.

    Raises:
        ConflictException: If the application is terminal, the move is not
            forward, or an approval targets a dog that is not adoptable
    """
    decision = ApplicationStatus(decision)
    validate_application_transition(application.status, decision)

    dog_transition = None
    if decision == ApplicationStatus.APPROVED:
        if not dog.can_accept_applications():
            raise ConflictException(NOT_AVAILABLE_MESSAGE)
        adopted = dog.with_changes(
            status=DogStatus.ADOPTED,
            adopted_at=now,
            adopter_id=application.applicant_id,
            updated_at=now
        )
        dog_transition = Transition(
            entity=adopted,
            expected={"status": DogStatus.ADOPTABLE.value, "adopterId": None},
            changes=adopted.document_fields("status", "adopted_at", "adopter_id", "updated_at")
        )

    updated = application.with_changes(
        status=decision,
        is_active=not is_terminal(decision),
        reviewed_at=now,
        reviewed_by=reviewer_id,
        notes=notes,
        updated_at=now
    )

    events = [
        _decision_notification(application, dog, decision, notes),
        LifecycleEvent(
            f"adoption.{decision.value}",
            application.id,
            {"dogId": dog.id, "applicantId": application.applicant_id, "reviewedBy": reviewer_id}
        )
    ]

    application_transition = Transition(
        entity=updated,
        expected={"status": application.status},
        changes=updated.document_fields(
            "status", "is_active", "reviewed_at", "reviewed_by", "notes", "updated_at"
        ),
        events=events
    )
    return application_transition, dog_transition
