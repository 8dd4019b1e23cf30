# SPDX-License-Identifier: Apache-2.0

"""
Account service: registration, login, verification gate and password reset.
"""

import logging
import os
from typing import Any, Dict, List, Optional

from ..domain import accounts as account_rules
from ..domain.authorization import Action, require
from ..domain.errors import AuthenticationException, ConflictException, NotFoundException, ValidationException
from ..models.entities import Account, ActorContext, PasswordResetChallenge
from ..models.enums import GATED_ROLES, AccountRole, VerificationStatus
from .auth import AuthService
from .dispatcher import NotificationDispatcher
from .lifecycle import Clock, LifecycleService
from .redis import RedisService
from .storage import DocumentUploader, resolve_verification_document
from .store import ACCOUNTS, RESET_CHALLENGES, EntityStore

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
DUPLICATE_EMAIL_MESSAGE = "Email already registered"
RESET_REQUESTED_MESSAGE = "If an account exists for this email, a reset code has been sent."
RESET_COMPLETED_MESSAGE = "Password has been reset successfully"


class AccountService(LifecycleService):
    """Service for account lifecycle and credentials."""

    def __init__(
        self,
        store: EntityStore,
        dispatcher: NotificationDispatcher,
        auth_service: AuthService,
        uploader: Optional[DocumentUploader] = None,
        redis_service: Optional[RedisService] = None,
        clock: Optional[Clock] = None,
        allow_legacy_unverified: Optional[bool] = None
    ):
        super().__init__(store, dispatcher, clock)
        self.auth_service = auth_service
        self.uploader = uploader
        self.redis_service = redis_service
        if allow_legacy_unverified is None:
            allow_legacy_unverified = os.getenv("ALLOW_LEGACY_UNVERIFIED_LOGIN", "true").lower() == "true"
        self.allow_legacy_unverified = allow_legacy_unverified

    def _find_by_email(self, email: str) -> Optional[Account]:
        document = self.store.find_one(ACCOUNTS, {"email": email.strip().lower()})
        return Account.from_document(document) if document else None

    # Registration and login

    def register(self, attributes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Register a new account.

        Gated roles (organization admins and veterinarians) upload a
        verification document, start pending and get no token until a
        superadmin approves them. Other roles are logged in immediately.

        Args:
            attributes: email, password, name, role, phone, organization,
                verification_document

        Returns:
            Dictionary with the public account, the token (or None) and
            whether verification is still required
        """
        with self._span("account.register", {"account.role": attributes.get("role")}) as span:
            email = attributes["email"].strip().lower()
            if self._find_by_email(email) is not None:
                raise ConflictException(DUPLICATE_EMAIL_MESSAGE)

            account_rules.validate_new_password(attributes["password"])
            role = AccountRole(attributes.get("role") or AccountRole.PUBLIC)
            document_url = None
            if role in GATED_ROLES:
                document_url = resolve_verification_document(attributes.get("verification_document"), self.uploader)

            password_hash = self.auth_service.hash_password(attributes["password"])
            transition = account_rules.register_account(
                {**attributes, "email": email, "role": role.value},
                password_hash,
                document_url,
                self._superadmin_ids()
            )
            account = self._insert(ACCOUNTS, transition.entity, duplicate_message=DUPLICATE_EMAIL_MESSAGE)
            span.set_attribute("account.id", account.id)

            logger.info(
                "Account registered",
                extra={"account_id": account.id, "role": account.role, "gated": account.is_gated()}
            )
            self._dispatch(transition.events)

            requires_verification = account.verification_status == VerificationStatus.PENDING
            return {
                "account": account.to_public_dict(),
                "token": None if requires_verification else self.auth_service.generate_token(account),
                "requiresVerification": requires_verification
            }

    def login(self, email: str, password: str) -> Dict[str, Any]:
        """
        Authenticate with email and password.

        Raises:
            AuthenticationException: If the credentials are wrong
            AccountNotApprovedException: If a gated account is not approved
        """
        with self._span("account.login") as span:
            account = self._find_by_email(email)
            if account is None or not self.auth_service.verify_password(password, account.password_hash):
                logger.warning("Failed login attempt", extra={"reason": "invalid_credentials"})
                raise AuthenticationException(INVALID_CREDENTIALS_MESSAGE)

            span.set_attributes({"account.id": account.id, "account.role": account.role})
            account_rules.check_login_allowed(account, self.allow_legacy_unverified)

            now = self.clock()
            document = self.store.update_where(ACCOUNTS, account.id, {}, {"lastLogin": now})
            if document is not None:
                account = Account.from_document(document)

            logger.info("Account logged in", extra={"account_id": account.id, "role": account.role})
            return {
                "account": account.to_public_dict(),
                "token": self.auth_service.generate_token(account)
            }

    def get_account(self, actor: ActorContext) -> Dict[str, Any]:
        """Return the caller's own account."""
        return self._load_account(actor.account_id).to_public_dict()

    # Profile

    def get_profile(self, actor: ActorContext) -> Dict[str, Any]:
        """Return the caller's profile."""
        require(actor, Action.MANAGE_PROFILE)
        return self._load_account(actor.account_id).to_public_dict()

    def update_profile(self, actor: ActorContext, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update the caller's own profile.

        Args:
            actor: Caller
            changes: Any of name, phone, organization, avatar,
                current_password and new_password

        Returns:
            The updated public account

        Raises:
            ValidationException: If nothing changes or the current password
                is missing or wrong
        """
        with self._span("account.update_profile", {"account.id": actor.account_id}) as span:
            require(actor, Action.MANAGE_PROFILE)
            account = self._load_account(actor.account_id)

            new_password = account_rules.check_password_change(changes)
            password_hash = None
            if new_password:
                if not self.auth_service.verify_password(changes["current_password"], account.password_hash):
                    logger.warning("Profile password change refused", extra={"account_id": account.id})
                    raise ValidationException(
                        account_rules.CURRENT_PASSWORD_INCORRECT_MESSAGE,
                        [{"field": "currentPassword", "message": "Incorrect password", "type": "value_error"}]
                    )
                password_hash = self.auth_service.hash_password(new_password)

            fields = {key: value for key, value in changes.items() if key in account_rules.PROFILE_FIELDS}
            if changes.get("avatar"):
                fields["avatar_url"] = resolve_verification_document(
                    changes["avatar"], self.uploader, folder="avatars", label="Avatar"
                )

            transition = account_rules.update_profile(account, fields, password_hash, self.clock())
            updated = self._apply(ACCOUNTS, transition, "Account")
            span.set_attribute("account.password_changed", password_hash is not None)

            logger.info(
                "Profile updated",
                extra={"account_id": account.id, "fields": transition.events[0].payload["fields"]}
            )
            self._dispatch(transition.events)
            return updated.to_public_dict()

    def logout(self, actor: ActorContext) -> bool:
        """
        Revoke the caller's token by blocklisting its identifier.

        Returns:
            True if the token was blocklisted
        """
        payload = actor.token_payload or {}
        jti = payload.get("jti")
        if not jti or self.redis_service is None:
            logger.warning("Token blocklist unavailable, logout is client-side only")
            return False

        blocked = self.redis_service.add_to_blocklist(jti, int(payload.get("exp", 0)))
        logger.info("Account logged out", extra={"account_id": actor.account_id, "blocklisted": blocked})
        return blocked

    # Verification gate

    def list_pending_verifications(self, actor: ActorContext) -> List[Dict[str, Any]]:
        """List gated accounts waiting for review, oldest first."""
        require(actor, Action.MANAGE_VERIFICATIONS)
        documents = self.store.find(
            ACCOUNTS,
            {
                "verificationStatus": VerificationStatus.PENDING.value,
                "role": {"$in": [role.value for role in GATED_ROLES]}
            },
            sort=[("createdAt", 1)]
        )
        return [Account.from_document(document).to_public_dict() for document in documents]

    def approve_account(self, actor: ActorContext, account_id: str) -> Dict[str, Any]:
        """Approve a pending gated account."""
        return self._decide(actor, account_id, approve=True, reason=None)

    def reject_account(self, actor: ActorContext, account_id: str, reason: str) -> Dict[str, Any]:
        """Reject a pending gated account with a reason."""
        return self._decide(actor, account_id, approve=False, reason=reason)

    def _decide(
        self,
        actor: ActorContext,
        account_id: str,
        approve: bool,
        reason: Optional[str]
    ) -> Dict[str, Any]:
        operation = "account.approve" if approve else "account.reject"
        with self._span(operation, {"account.id": account_id, "actor.id": actor.account_id}):
            require(actor, Action.MANAGE_VERIFICATIONS)

            document = self.store.get(ACCOUNTS, account_id)
            if document is None:
                raise NotFoundException("Account not found or does not require verification")
            account = Account.from_document(document)

            transition = account_rules.decide_verification(account, approve, reason, actor.account_id, self.clock())
            updated = self._apply(
                ACCOUNTS,
                transition,
                "Account",
                conflict_message=account_rules.NOT_PENDING_MESSAGE
            )

            logger.info(
                "Account verification decided",
                extra={
                    "account_id": account_id,
                    "verification_status": updated.verification_status,
                    "verified_by": actor.account_id
                }
            )
            self._dispatch(transition.events)
            return updated.to_public_dict()

    # Password reset

    def request_password_reset(self, email: str) -> Dict[str, Any]:
        """
        Issue a one-time reset code.

        The response is identical whether or not the email belongs to an
        account that may reset its password.
        """
        with self._span("account.request_password_reset") as span:
            account = self._find_by_email(email)
            if account is None or account.is_superadmin():
                span.set_attribute("reset.issued", False)
                logger.info("Password reset requested for ineligible email")
                return {"message": RESET_REQUESTED_MESSAGE}

            now = self.clock()
            code = account_rules.generate_otp()
            transition = account_rules.issue_challenge(account, code, now)

            with self._transaction() as tx:
                invalidated = tx.update_many(
                    RESET_CHALLENGES,
                    {"accountId": account.id, "used": False},
                    {"used": True, "usedAt": now, "updatedAt": now}
                )
                self._insert(RESET_CHALLENGES, transition.entity, store=tx)

            span.set_attributes({"reset.issued": True, "reset.invalidated": invalidated})
            logger.info(
                "Password reset code issued",
                extra={"account_id": account.id, "invalidated_challenges": invalidated}
            )
            self._dispatch(transition.events)
            return {"message": RESET_REQUESTED_MESSAGE}

    def confirm_password_reset(self, email: str, code: str, new_password: str) -> Dict[str, Any]:
        """
        Set a new password using a one-time code.

        Raises:
            ValidationException: If the new password is too short
            ConflictException: If the code is wrong, expired or already used
        """
        with self._span("account.confirm_password_reset") as span:
            account_rules.validate_new_password(new_password)

            account = self._find_by_email(email)
            if account is None or account.is_superadmin():
                raise ConflictException(account_rules.INVALID_CHALLENGE_MESSAGE)

            now = self.clock()
            document = self.store.find_one(
                RESET_CHALLENGES,
                {"accountId": account.id, "used": False},
                sort=[("createdAt", -1)]
            )
            challenge = PasswordResetChallenge.from_document(document) if document else None

            verdict = account_rules.evaluate_challenge(challenge, code, now)
            if not verdict.valid:
                span.set_attribute("reset.result", "wrong_code" if verdict.wrong_code else "invalid")
                if verdict.wrong_code:
                    failed = account_rules.record_failed_attempt(challenge, now)
                    self.store.update_where(RESET_CHALLENGES, challenge.id, failed.expected, failed.changes)
                logger.warning("Password reset confirmation failed", extra={"account_id": account.id})
                raise ConflictException(verdict.reason)

            transition = account_rules.consume_challenge(challenge, now)
            password_hash = self.auth_service.hash_password(new_password)
            with self._transaction() as tx:
                self._apply(
                    RESET_CHALLENGES,
                    transition,
                    "Reset code",
                    store=tx,
                    conflict_message=account_rules.INVALID_CHALLENGE_MESSAGE
                )
                if tx.update_where(ACCOUNTS, account.id, {}, {"passwordHash": password_hash, "updatedAt": now}) is None:
                    raise NotFoundException("Account not found")

            span.set_attribute("reset.result", "success")
            logger.info("Password reset completed", extra={"account_id": account.id})
            self._dispatch(transition.events)
            return {"message": RESET_COMPLETED_MESSAGE}
