# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for role and ownership based access control.

This module contains pure functions that decide whether an actor may
perform an action, optionally against a target entity. Rules are role
predicates combined with ownership predicates; there is no role
inheritance.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..models.entities import ActorContext, AdoptionApplication, Dog, RescueReport
from ..models.enums import AccountRole
from .errors import AuthenticationException, AuthorizationException


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None


class Action(str, Enum):
    """Operations guarded by the authorization rules."""
    MANAGE_NGOS = "manage_ngos"
    MANAGE_VOLUNTEERS = "manage_volunteers"
    MANAGE_VERIFICATIONS = "manage_verifications"
    CREATE_DOG = "create_dog"
    UPDATE_DOG = "update_dog"
    DELETE_DOG = "delete_dog"
    ASSIGN_VET = "assign_vet"
    SET_TREATMENT_STATUS = "set_treatment_status"
    RECORD_MEDICAL = "record_medical"
    VIEW_MEDICAL_RECORDS = "view_medical_records"
    SUBMIT_REPORT = "submit_report"
    SET_REPORT_STATUS = "set_report_status"
    ASSIGN_REPORT = "assign_report"
    PROMOTE_REPORT = "promote_report"
    VIEW_ALL_REPORTS = "view_all_reports"
    VIEW_OWN_TASKS = "view_own_tasks"
    SUBMIT_APPLICATION = "submit_application"
    DECIDE_APPLICATION = "decide_application"
    VIEW_APPLICATION = "view_application"
    VIEW_OWN_APPLICATIONS = "view_own_applications"
    VIEW_ORG_APPLICATIONS = "view_org_applications"
    VIEW_NOTIFICATIONS = "view_notifications"
    VIEW_OWN_REPORTS = "view_own_reports"
    MANAGE_PROFILE = "manage_profile"


Rule = Callable[[Optional[ActorContext], Any], AuthorizationResult]

ALLOW = AuthorizationResult(allowed=True)


def _deny(reason: str) -> AuthorizationResult:
    return AuthorizationResult(allowed=False, reason=reason)


def _authenticated(actor: Optional[ActorContext]) -> Optional[AuthorizationResult]:
    if actor is None:
        return _deny("Authentication required")
    return None


def _roles(*roles: AccountRole, message: str) -> Rule:
    """Rule that allows any actor holding one of the given roles."""
    def rule(actor: Optional[ActorContext], target: Any) -> AuthorizationResult:
        denied = _authenticated(actor)
        if denied:
            return denied
        if actor.has_role(*roles):
            return ALLOW
        return _deny(message)
    return rule


def _anyone(actor: Optional[ActorContext], target: Any) -> AuthorizationResult:
    return ALLOW


def _any_authenticated(actor: Optional[ActorContext], target: Any) -> AuthorizationResult:
    return _authenticated(actor) or ALLOW


def _assigned_vet(actor: Optional[ActorContext], target: Any) -> AuthorizationResult:
    denied = _authenticated(actor)
    if denied:
        return denied
    if actor.is_superadmin():
        return ALLOW
    if not actor.has_role(AccountRole.VETERINARIAN):
        return _deny("Only veterinarians can manage treatment")
    if isinstance(target, Dog) and target.assigned_vet == actor.account_id:
        return ALLOW
    return _deny("You can only manage treatment for dogs assigned to you")


def _own_tasks(actor: Optional[ActorContext], target: Any) -> AuthorizationResult:
    denied = _authenticated(actor)
    if denied:
        return denied
    if not actor.has_role(AccountRole.VOLUNTEER):
        return _deny("Only volunteers have assigned tasks")
    if isinstance(target, RescueReport) and target.assigned_to != actor.account_id:
        return _deny("This report is not assigned to you")
    return ALLOW


def _submit_application(actor: Optional[ActorContext], target: Any) -> AuthorizationResult:
    denied = _authenticated(actor)
    if denied:
        return denied
    if actor.is_superadmin():
        return _deny("Superadmin accounts cannot submit adoption applications")
    return ALLOW


def _decide_application(actor: Optional[ActorContext], target: Any) -> AuthorizationResult:
    denied = _authenticated(actor)
    if denied:
        return denied
    if actor.is_superadmin():
        return ALLOW
    if not actor.has_role(AccountRole.NGO_ADMIN):
        return _deny("Only organization administrators can review applications")
    if isinstance(target, AdoptionApplication) and target.ngo_id == actor.account_id:
        return ALLOW
    return _deny("You can only manage applications for your own dogs")


def _view_application(actor: Optional[ActorContext], target: Any) -> AuthorizationResult:
    denied = _authenticated(actor)
    if denied:
        return denied
    if actor.is_superadmin():
        return ALLOW
    if isinstance(target, AdoptionApplication):
        if target.applicant_id == actor.account_id:
            return ALLOW
        if actor.has_role(AccountRole.NGO_ADMIN) and target.ngo_id == actor.account_id:
            return ALLOW
    return _deny("You do not have access to this application")


_STAFF = (AccountRole.NGO_ADMIN, AccountRole.SUPERADMIN)
_STAFF_MESSAGE = "Only organization administrators can perform this action"
_SUPERADMIN_MESSAGE = "Only superadmins can perform this action"

RULES: Dict[Action, Rule] = {
    Action.MANAGE_NGOS: _roles(AccountRole.SUPERADMIN, message="Only superadmins can manage organizations"),
    Action.MANAGE_VOLUNTEERS: _roles(AccountRole.SUPERADMIN, message="Only superadmins can manage volunteers"),
    Action.MANAGE_VERIFICATIONS: _roles(AccountRole.SUPERADMIN, message=_SUPERADMIN_MESSAGE),
    Action.CREATE_DOG: _roles(*_STAFF, message=_STAFF_MESSAGE),
    Action.UPDATE_DOG: _roles(*_STAFF, message=_STAFF_MESSAGE),
    Action.DELETE_DOG: _roles(*_STAFF, message=_STAFF_MESSAGE),
    Action.ASSIGN_VET: _roles(*_STAFF, message=_STAFF_MESSAGE),
    Action.SET_TREATMENT_STATUS: _assigned_vet,
    Action.RECORD_MEDICAL: _assigned_vet,
    Action.VIEW_MEDICAL_RECORDS: _roles(
        AccountRole.VETERINARIAN, *_STAFF,
        message="Only veterinarians and administrators can view medical records"
    ),
    Action.SUBMIT_REPORT: _anyone,
    Action.SET_REPORT_STATUS: _roles(*_STAFF, message=_STAFF_MESSAGE),
    Action.ASSIGN_REPORT: _roles(*_STAFF, message=_STAFF_MESSAGE),
    Action.PROMOTE_REPORT: _roles(*_STAFF, message=_STAFF_MESSAGE),
    Action.VIEW_ALL_REPORTS: _roles(*_STAFF, message=_STAFF_MESSAGE),
    Action.VIEW_OWN_TASKS: _own_tasks,
    Action.SUBMIT_APPLICATION: _submit_application,
    Action.DECIDE_APPLICATION: _decide_application,
    Action.VIEW_APPLICATION: _view_application,
    Action.VIEW_OWN_APPLICATIONS: _any_authenticated,
    Action.VIEW_ORG_APPLICATIONS: _roles(*_STAFF, message=_STAFF_MESSAGE),
    Action.VIEW_NOTIFICATIONS: _any_authenticated,
    Action.VIEW_OWN_REPORTS: _any_authenticated,
    Action.MANAGE_PROFILE: _any_authenticated,
}

_missing_rules = [action for action in Action if action not in RULES]
if _missing_rules:
    raise RuntimeError(f"Authorization rules missing for: {_missing_rules}")


def authorize(actor: Optional[ActorContext], action: Action, target: Any = None) -> AuthorizationResult:
    """
    Decide whether an actor may perform an action.

    Args:
        actor: Authenticated actor, or None for anonymous callers
        action: Action to perform
        target: Entity the action applies to, when ownership matters

    Returns:
        AuthorizationResult with the decision and a denial reason
    """
    return RULES[action](actor, target)


def require(actor: Optional[ActorContext], action: Action, target: Any = None) -> None:
    """
    Enforce an authorization decision.

    Raises:
        AuthenticationException: If an anonymous caller needs to log in
        AuthorizationException: If the actor may not perform the action
    """
    result = authorize(actor, action, target)
    if not result.allowed:
        if actor is None:
            raise AuthenticationException(result.reason or "Authentication required")
        raise AuthorizationException(result.reason or "Insufficient permissions")
