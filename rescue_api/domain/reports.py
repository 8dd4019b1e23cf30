# SPDX-License-Identifier: Apache-2.0

"""
Rescue report lifecycle domain logic.

Reports move forward through pending, assigned, in_progress and completed;
administrators may skip ahead, and any non-terminal report may be cancelled.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..models.entities import Account, ActorContext, RescueReport
from ..models.enums import AccountRole, NotificationType, ReportStatus, URGENCY_RANK, Urgency
from .errors import ConflictException, ValidationException
from .events import InAppNotification, LifecycleEvent, Transition, dashboard_link


REPORT_TRANSITIONS: Dict[ReportStatus, Tuple[ReportStatus, ...]] = {
    ReportStatus.PENDING: (
        ReportStatus.ASSIGNED, ReportStatus.IN_PROGRESS, ReportStatus.COMPLETED, ReportStatus.CANCELLED
    ),
    ReportStatus.ASSIGNED: (ReportStatus.IN_PROGRESS, ReportStatus.COMPLETED, ReportStatus.CANCELLED),
    ReportStatus.IN_PROGRESS: (ReportStatus.COMPLETED, ReportStatus.CANCELLED),
    ReportStatus.COMPLETED: (),
    ReportStatus.CANCELLED: (),
}

_missing = [status for status in ReportStatus if status not in REPORT_TRANSITIONS]
if _missing:
    raise RuntimeError(f"Transition table missing states: {_missing}")

# Store sort order for triage views: most urgent first, then newest
TRIAGE_SORT = [("urgencyRank", 1), ("createdAt", -1)]


def triage_key(report: RescueReport) -> Tuple[int, float]:
    """Sort key equivalent to TRIAGE_SORT for in-process ordering."""
    return URGENCY_RANK[Urgency(report.urgency)], -report.created_at.timestamp()


def sort_for_triage(reports: List[RescueReport]) -> List[RescueReport]:
    """Order reports most urgent first, then most recent first."""
    return sorted(reports, key=triage_key)


def validate_report_transition(current: ReportStatus, new: ReportStatus) -> None:
    """
    Validate a report status change.

    Raises:
        ConflictException: If the move is not allowed from the current status
    """
    current = ReportStatus(current)
    new = ReportStatus(new)
    if not REPORT_TRANSITIONS[current]:
        raise ConflictException(f"Report is already {current.value}")
    if new not in REPORT_TRANSITIONS[current]:
        raise ConflictException(f"Invalid report status transition from {current.value} to {new.value}")


def submit_report(
    attributes: Dict[str, Any],
    actor: Optional[ActorContext],
    superadmin_ids: List[str]
) -> Transition:
    """
    Create a sighting report from any caller, anonymous or not.

    Args:
        attributes: Validated report attributes (python field names)
        actor: Reporter, or None for anonymous reports
        superadmin_ids: Accounts to alert about the new report

    Returns:
        Transition holding the new report
    """
    report = RescueReport(
        **attributes,
        reporter_id=actor.account_id if actor else None,
        status=ReportStatus.PENDING
    )

    events: List[Any] = [
        InAppNotification(
            account_id=admin_id,
            title="New Rescue Report",
            message=f"A {report.urgency} urgency rescue report was submitted.",
            type=NotificationType.WARNING if report.urgency_rank <= 1 else NotificationType.INFO,
            link=dashboard_link("reports")
        )
        for admin_id in superadmin_ids
    ]
    events.append(LifecycleEvent("report.submitted", report.id, {"urgency": report.urgency}))

    return Transition(entity=report, expected={}, changes=report.to_document(), events=events)


def set_report_status(report: RescueReport, status: ReportStatus, now: datetime) -> Transition:
    """
    Move a report to a new status.

    Returns:
        Transition guarded on the report's current status
    """
    validate_report_transition(report.status, status)

    updated = report.with_changes(status=status, updated_at=now)
    events: List[Any] = [LifecycleEvent(
        "report.status_changed", report.id, {"from": report.status, "to": updated.status}
    )]
    if report.reporter_id:
        events.append(InAppNotification(
            account_id=report.reporter_id,
            title="Rescue Report Update",
            message=f"Your rescue report is now {updated.status.replace('_', ' ')}.",
            type=NotificationType.INFO
        ))

    return Transition(
        entity=updated,
        expected={"status": report.status},
        changes=updated.document_fields("status", "updated_at"),
        events=events
    )


def assign_report(report: RescueReport, volunteer: Account, now: datetime) -> Transition:
    """
    Assign a report to a volunteer; pending reports become assigned.

    Raises:
        ConflictException: If the report is terminal
        ValidationException: If the account is not a volunteer
    """
    if report.is_terminal():
        raise ConflictException(f"Report is already {report.status}")
    if volunteer.role != AccountRole.VOLUNTEER:
        raise ValidationException("Selected account is not a volunteer")

    updates: Dict[str, Any] = {"assigned_to": volunteer.id, "updated_at": now}
    if report.status == ReportStatus.PENDING:
        updates["status"] = ReportStatus.ASSIGNED

    updated = report.with_changes(**updates)
    events = [
        InAppNotification(
            account_id=volunteer.id,
            title="New Rescue Task",
            message=f"You have been assigned a {report.urgency} urgency rescue report.",
            type=NotificationType.INFO,
            link=dashboard_link("tasks")
        ),
        LifecycleEvent("report.assigned", report.id, {"assignedTo": volunteer.id})
    ]

    return Transition(
        entity=updated,
        expected={"status": report.status},
        changes=updated.document_fields(*updates.keys()),
        events=events
    )
