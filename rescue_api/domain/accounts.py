# SPDX-License-Identifier: Apache-2.0

"""
Account verification and password reset domain logic.

Two independent state machines share the Account entity:

* the verification gate for roles that need manual vetting, moving from
  pending to approved or rejected (both terminal);
* single-use, time-boxed OTP challenges for self-service password reset.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..models.entities import Account, PasswordResetChallenge
from ..models.enums import AccountRole, NotificationType, VerificationStatus
from .errors import (
    AccountNotApprovedException,
    ConflictException,
    NotFoundException,
    ValidationException
)
from .events import EmailNotification, InAppNotification, LifecycleEvent, Transition, dashboard_link


OTP_TTL = timedelta(minutes=10)
OTP_MAX_ATTEMPTS = 5
MIN_PASSWORD_LENGTH = 8

INVALID_CHALLENGE_MESSAGE = "Invalid or expired code"
WRONG_CODE_MESSAGE = "Invalid OTP code"
NOT_PENDING_MESSAGE = "User is not pending verification"


# Verification gate

def register_account(
    attributes: Dict[str, Any],
    password_hash: str,
    document_url: Optional[str],
    superadmin_ids: List[str]
) -> Transition:
    """
    Build a new account from a registration request.

    Gated roles start pending and must carry a verification document;
    other roles need no verification.

    Args:
        attributes: email, name, role, phone, organization
        password_hash: Hashed credential
        document_url: Uploaded verification document reference
        superadmin_ids: Accounts to alert about a new verification request

    Returns:
        Transition holding the new account
    """
    role = AccountRole(attributes["role"])
    if role == AccountRole.SUPERADMIN:
        raise ValidationException("Superadmin accounts cannot be registered")

    gated = role in (AccountRole.NGO_ADMIN, AccountRole.VETERINARIAN)
    if gated and not document_url:
        raise ValidationException(
            f"A verification document is required for {role.value} accounts",
            [{"field": "verificationDocument", "message": "Field required", "type": "missing"}]
        )

    account = Account(
        email=attributes["email"],
        name=attributes["name"],
        password_hash=password_hash,
        role=role,
        phone=attributes.get("phone"),
        organization_name=attributes.get("organization"),
        verification_status=VerificationStatus.PENDING if gated else None,
        verification_document_url=document_url if gated else None
    )

    events: List[Any] = [LifecycleEvent("account.registered", account.id, {"role": account.role})]
    if gated:
        events.append(EmailNotification(
            to=account.email,
            template="verification_pending",
            context={"name": account.name, "role": account.role}
        ))
        events.extend(
            InAppNotification(
                account_id=admin_id,
                title="New Verification Request",
                message=f"{account.name} registered as {role.value} and awaits verification.",
                type=NotificationType.INFO,
                link=dashboard_link("verifications")
            )
            for admin_id in superadmin_ids
        )

    return Transition(entity=account, expected={}, changes=account.to_document(), events=events)


def check_login_allowed(account: Account, allow_legacy_unverified: bool = True) -> None:
    """
    Enforce the verification gate at login.

    Args:
        account: Account whose credentials were verified
        allow_legacy_unverified: Let gated accounts with no verification
            status (created before gating existed) log in

    Raises:
        AccountNotApprovedException: With a distinct reason per state
    """
    if not account.is_gated():
        return

    status = account.verification_status
    if status == VerificationStatus.APPROVED:
        return
    if status is None and allow_legacy_unverified:
        return

    if status == VerificationStatus.PENDING:
        raise AccountNotApprovedException(
            "Your account is pending verification. You will be notified by email once it is approved.",
            AccountNotApprovedException.PENDING
        )
    if status == VerificationStatus.REJECTED:
        message = "Your account verification was rejected."
        if account.rejection_reason:
            message += f" Your registration was rejected: {account.rejection_reason}"
        raise AccountNotApprovedException(
            message,
            AccountNotApprovedException.REJECTED,
            account.rejection_reason
        )
    raise AccountNotApprovedException(
        "Your account verification is required before you can login.",
        AccountNotApprovedException.REQUIRED
    )


def decide_verification(
    account: Account,
    approve: bool,
    reason: Optional[str],
    reviewer_id: str,
    now: datetime
) -> Transition:
    """
    Approve or reject a pending gated account.

    Args:
        account: Account under review
        approve: True to approve, False to reject
        reason: Rejection reason (required when rejecting)
        reviewer_id: Superadmin deciding
        now: Current time

    Returns:
        Transition guarded on the pending verification status

    Raises:
        NotFoundException: If the account has no verification gate
        ConflictException: If the account is not pending
    """
    if not account.is_gated():
        raise NotFoundException("Account not found or does not require verification")
    if account.verification_status != VerificationStatus.PENDING:
        raise ConflictException(NOT_PENDING_MESSAGE)
    if not approve and not (reason and reason.strip()):
        raise ValidationException("A rejection reason is required")

    updates: Dict[str, Any] = {
        "verification_status": VerificationStatus.APPROVED if approve else VerificationStatus.REJECTED,
        "verified_at": now,
        "verified_by": reviewer_id,
        "rejection_reason": None if approve else reason.strip(),
        "updated_at": now
    }
    updated = account.with_changes(**updates)

    template = "verification_approved" if approve else "verification_rejected"
    events = [
        EmailNotification(
            to=account.email,
            template=template,
            context={"name": account.name, "role": account.role, "reason": updated.rejection_reason}
        ),
        LifecycleEvent(
            f"account.{updated.verification_status}",
            account.id,
            {"role": account.role, "verifiedBy": reviewer_id}
        )
    ]

    return Transition(
        entity=updated,
        expected={"verificationStatus": VerificationStatus.PENDING.value},
        changes=updated.document_fields(*updates.keys()),
        events=events
    )


# Password reset

def validate_new_password(password: str) -> None:
    """
    Validate a replacement password.

    Raises:
        ValidationException: If the password is too short
    """
    if password is None or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationException(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            [{"field": "newPassword", "message": "Password too short", "type": "value_error"}]
        )


def generate_otp() -> str:
    """Generate a six digit one-time code."""
    return str(secrets.randbelow(900000) + 100000)


def hash_otp(code: str) -> str:
    """Hash a one-time code for storage."""
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def issue_challenge(account: Account, code: str, now: datetime) -> Transition:
    """
    Create a password reset challenge for an account.

    Args:
        account: Account requesting the reset (never a superadmin)
        code: Plain one-time code to deliver
        now: Current time

    Returns:
        Transition holding the new challenge and the email carrying the code
    """
    if account.is_superadmin():
        raise ValidationException("Superadmin accounts cannot use self-service password reset")

    challenge = PasswordResetChallenge(
        account_id=account.id,
        email=account.email,
        code_hash=hash_otp(code),
        expires_at=now + OTP_TTL,
        created_at=now,
        updated_at=now
    )
    events = [EmailNotification(
        to=account.email,
        template="password_reset",
        context={
            "name": account.name,
            "code": code,
            "expires_minutes": int(OTP_TTL.total_seconds() // 60)
        }
    )]
    return Transition(entity=challenge, expected={}, changes=challenge.to_document(), events=events)


@dataclass
class ChallengeVerdict:
    """Outcome of checking a code against a challenge."""
    valid: bool
    reason: Optional[str] = None
    wrong_code: bool = False


def evaluate_challenge(
    challenge: Optional[PasswordResetChallenge],
    code: str,
    now: datetime
) -> ChallengeVerdict:
    """
    Check a one-time code against the latest unused challenge.

    Expiry is checked before the code, so an expired challenge fails
    whatever code is supplied.

    Args:
        challenge: Latest unused challenge for the account, if any
        code: Code supplied by the caller
        now: Current time

    Returns:
        ChallengeVerdict describing whether the reset may proceed
    """
    if challenge is None or challenge.used:
        return ChallengeVerdict(valid=False, reason=INVALID_CHALLENGE_MESSAGE)
    if now >= challenge.expires_at:
        return ChallengeVerdict(valid=False, reason=INVALID_CHALLENGE_MESSAGE)
    if not hmac.compare_digest(challenge.code_hash, hash_otp(code or "")):
        return ChallengeVerdict(valid=False, reason=WRONG_CODE_MESSAGE, wrong_code=True)
    return ChallengeVerdict(valid=True)


def record_failed_attempt(challenge: PasswordResetChallenge, now: datetime) -> Transition:
    """
    Count a wrong code; the challenge is burned after too many attempts.

    Returns:
        Transition guarded on the challenge still being unused
    """
    attempts = challenge.attempts + 1
    burned = attempts >= OTP_MAX_ATTEMPTS
    updated = challenge.with_changes(
        attempts=attempts,
        used=burned,
        used_at=now if burned else None,
        updated_at=now
    )
    return Transition(
        entity=updated,
        expected={"used": False, "attempts": challenge.attempts},
        changes=updated.document_fields("attempts", "used", "used_at", "updated_at")
    )


def consume_challenge(challenge: PasswordResetChallenge, now: datetime) -> Transition:
    """
    Mark a verified challenge used.

    Returns:
        Transition guarded on the challenge still being unused
    """
    updated = challenge.with_changes(used=True, used_at=now, updated_at=now)
    return Transition(
        entity=updated,
        expected={"used": False},
        changes=updated.document_fields("used", "used_at", "updated_at"),
        events=[LifecycleEvent("account.password_reset", challenge.account_id)]
    )


# Profiles and volunteer accounts

PROFILE_FIELDS = {
    "name": "name",
    "phone": "phone",
    "organization": "organization_name",
    "avatar_url": "avatar_url",
}
VOLUNTEER_FIELDS = {
    "email": "email",
    "name": "name",
    "phone": "phone",
    "organization": "organization_name",
}
NO_CHANGES_MESSAGE = "No fields to update"
CURRENT_PASSWORD_REQUIRED_MESSAGE = "Current password is required to change password"
CURRENT_PASSWORD_INCORRECT_MESSAGE = "Current password is incorrect"
VOLUNTEER_NOT_FOUND_MESSAGE = "Volunteer not found"


def check_password_change(changes: Dict[str, Any]) -> Optional[str]:
    """
    Validate a self-service password change.

    Returns:
        The new password, or None when the request does not change it

    Raises:
        ValidationException: If the new password is too short or the
            current password is missing
    """
    new_password = changes.get("new_password")
    if not new_password:
        return None
    validate_new_password(new_password)
    if not changes.get("current_password"):
        raise ValidationException(
            CURRENT_PASSWORD_REQUIRED_MESSAGE,
            [{"field": "currentPassword", "message": "Field required", "type": "missing"}]
        )
    return new_password


def _account_update(
    account: Account,
    changes: Dict[str, Any],
    fields: Dict[str, str],
    password_hash: Optional[str],
    now: datetime,
    event_name: str
) -> Transition:
    updates: Dict[str, Any] = {
        fields[key]: value for key, value in changes.items() if key in fields
    }
    if password_hash:
        updates["password_hash"] = password_hash
    if not updates:
        raise ValidationException(NO_CHANGES_MESSAGE)

    updates["updated_at"] = now
    updated = account.with_changes(**updates)
    changed = sorted(key for key in updates if key not in ("password_hash", "updated_at"))
    return Transition(
        entity=updated,
        expected={"role": account.role},
        changes=updated.document_fields(*updates.keys()),
        events=[LifecycleEvent(
            event_name,
            account.id,
            {"fields": changed, "passwordChanged": password_hash is not None}
        )]
    )


def update_profile(
    account: Account,
    changes: Dict[str, Any],
    password_hash: Optional[str],
    now: datetime
) -> Transition:
    """
    Apply a self-service profile edit.

    Args:
        account: Caller's account
        changes: Fields the caller sent (name, phone, organization, avatar_url)
        password_hash: New credential hash when the password changes
        now: Current time

    Returns:
        Transition guarded on the account keeping its role

    Raises:
        ValidationException: If nothing would change
    """
    return _account_update(account, changes, PROFILE_FIELDS, password_hash, now, "account.profile_updated")


def create_volunteer(attributes: Dict[str, Any], password_hash: str) -> Transition:
    """
    Build a volunteer account created by a superadmin.

    Volunteers are not gated, so the account can log in at once.
    """
    account = Account(
        email=attributes["email"],
        name=attributes["name"],
        password_hash=password_hash,
        role=AccountRole.VOLUNTEER,
        phone=attributes.get("phone"),
        organization_name=attributes.get("organization")
    )
    return Transition(
        entity=account,
        expected={},
        changes=account.to_document(),
        events=[LifecycleEvent("volunteer.created", account.id)]
    )


def ensure_volunteer(account: Optional[Account]) -> Account:
    """
    Raises:
        NotFoundException: If the account is missing or not a volunteer
    """
    if account is None or account.role != AccountRole.VOLUNTEER:
        raise NotFoundException(VOLUNTEER_NOT_FOUND_MESSAGE)
    return account


def update_volunteer(
    account: Account,
    changes: Dict[str, Any],
    password_hash: Optional[str],
    now: datetime
) -> Transition:
    """
    Apply a superadmin edit to a volunteer account.

    The write is guarded on the role so an account that stopped being a
    volunteer is never edited through this path.
    """
    ensure_volunteer(account)
    return _account_update(account, changes, VOLUNTEER_FIELDS, password_hash, now, "volunteer.updated")
