# SPDX-License-Identifier: Apache-2.0

"""
Tests for registration, login and the verification gate.
"""

import base64
from pathlib import Path

import pytest

from rescue_api.domain.errors import (
    AccountNotApprovedException,
    AuthenticationException,
    AuthorizationException,
    ConflictException,
    NotFoundException,
    ValidationException
)
from rescue_api.models.enums import AccountRole, VerificationStatus
from rescue_api.services.accounts import AccountService
from rescue_api.services.store import ACCOUNTS, NOTIFICATIONS

from conftest import PASSWORD, make_account

DOCUMENT_URL = "https://docs.example.com/license.pdf"


def registration(email: str, role: str = "public", **extra):
    data = {"email": email, "password": PASSWORD, "name": "New Member", "role": role}
    data.update(extra)
    return data


class TestRegistration:
    """Test self-service registration."""

    def test_public_registration_logs_in(self, account_service, auth_service):
        result = account_service.register(registration("new@example.com"))

        assert result["requiresVerification"] is False
        assert result["account"]["role"] == "public"
        assert "passwordHash" not in result["account"]
        payload = auth_service.validate_token(result["token"]["access_token"])
        assert payload["sub"] == result["account"]["id"]

    def test_role_defaults_to_public(self, account_service):
        data = registration("norole@example.com")
        del data["role"]
        assert account_service.register(data)["account"]["role"] == "public"

    def test_email_is_unique(self, account_service):
        account_service.register(registration("dup@example.com"))
        with pytest.raises(ConflictException):
            account_service.register(registration("DUP@example.com"))

    def test_short_password_rejected(self, account_service):
        with pytest.raises(ValidationException):
            account_service.register(registration("short@example.com", password="short"))

    def test_gated_role_requires_document(self, account_service, store):
        with pytest.raises(ValidationException):
            account_service.register(registration("vet@new.org", "veterinarian"))
        assert store.count(ACCOUNTS, {"email": "vet@new.org"}) == 0

    def test_gated_registration_is_pending(self, account_service, store, accounts, email_sender):
        result = account_service.register(
            registration("vet@new.org", "veterinarian", verification_document=DOCUMENT_URL)
        )

        assert result["requiresVerification"] is True
        assert result["token"] is None
        assert result["account"]["verificationStatus"] == "pending"
        assert result["account"]["verificationDocumentUrl"] == DOCUMENT_URL
        assert email_sender.templates_for("vet@new.org") == ["verification_pending"]

        alerts = store.find(NOTIFICATIONS, {"accountId": accounts["superadmin"].id})
        assert [alert["title"] for alert in alerts] == ["New Verification Request"]

    def test_inline_document_is_uploaded(self, account_service, uploader):
        encoded = base64.b64encode(b"%PDF-1.4 license").decode("ascii")
        result = account_service.register(registration(
            "ngo@new.org", "ngo_admin", organization="New Paws",
            verification_document=f"data:application/pdf;base64,{encoded}"
        ))

        url = result["account"]["verificationDocumentUrl"]
        assert url.startswith("http://localhost/files/local/verification-documents/")
        assert url.endswith(".pdf")
        assert result["account"]["organizationName"] == "New Paws"
        stored = list(Path(uploader.base_dir).rglob("*.pdf"))
        assert len(stored) == 1
        assert stored[0].read_bytes() == b"%PDF-1.4 license"

    def test_invalid_inline_document(self, account_service):
        with pytest.raises(ValidationException):
            account_service.register(
                registration("vet@new.org", "veterinarian", verification_document="not base64 !!")
            )


class TestLogin:
    """Test login and the verification gate."""

    def test_login_success(self, account_service, accounts, clock):
        result = account_service.login("adopter@example.com", PASSWORD)

        assert result["account"]["id"] == accounts["adopter"].id
        assert result["token"]["token_type"] == "Bearer"
        assert result["account"]["lastLogin"] is not None

    def test_wrong_password(self, account_service, accounts):
        with pytest.raises(AuthenticationException):
            account_service.login("adopter@example.com", "wrong-password")

    def test_unknown_email(self, account_service):
        with pytest.raises(AuthenticationException):
            account_service.login("nobody@example.com", PASSWORD)

    def test_pending_account_refused(self, account_service):
        account_service.register(registration("vet@new.org", "veterinarian", verification_document=DOCUMENT_URL))

        with pytest.raises(AccountNotApprovedException) as exc_info:
            account_service.login("vet@new.org", PASSWORD)
        assert exc_info.value.reason_code == AccountNotApprovedException.PENDING
        assert exc_info.value.status_code == 403

    def test_rejected_account_refused_with_reason(self, account_service, actors):
        result = account_service.register(
            registration("vet@new.org", "veterinarian", verification_document=DOCUMENT_URL)
        )
        account_service.reject_account(actors["superadmin"], result["account"]["id"], "License expired")

        with pytest.raises(AccountNotApprovedException) as exc_info:
            account_service.login("vet@new.org", PASSWORD)
        assert exc_info.value.reason_code == AccountNotApprovedException.REJECTED
        assert exc_info.value.rejection_reason == "License expired"
        assert "License expired" in exc_info.value.message

    def test_legacy_gated_account(self, store, dispatcher, auth_service, clock):
        make_account(store, auth_service, AccountRole.VETERINARIAN, "legacy@clinic.org", "Dr. Legacy")

        lenient = AccountService(store, dispatcher, auth_service, clock=clock, allow_legacy_unverified=True)
        strict = AccountService(store, dispatcher, auth_service, clock=clock, allow_legacy_unverified=False)

        assert lenient.login("legacy@clinic.org", PASSWORD)["token"]
        with pytest.raises(AccountNotApprovedException) as exc_info:
            strict.login("legacy@clinic.org", PASSWORD)
        assert exc_info.value.reason_code == AccountNotApprovedException.REQUIRED

    def test_logout_blocklists_token(self, account_service, accounts, auth_service, redis_client):
        from rescue_api.models.entities import ActorContext

        token = auth_service.generate_token(accounts["adopter"])["access_token"]
        payload = auth_service.validate_token(token)
        actor = ActorContext.from_account(accounts["adopter"], token_payload=payload)

        assert account_service.logout(actor) is True
        key, ttl, _ = redis_client.setex.call_args[0]
        assert key == f"blocklist:jwt:{payload['jti']}"
        assert ttl > 0

    def test_logout_without_blocklist(self, store, dispatcher, auth_service, actors):
        service = AccountService(store, dispatcher, auth_service, redis_service=None)
        assert service.logout(actors["adopter"]) is False


class TestVerificationDecisions:
    """Test superadmin approval and rejection."""

    @pytest.fixture
    def pending_vet(self, account_service):
        result = account_service.register(
            registration("vet@new.org", "veterinarian", verification_document=DOCUMENT_URL)
        )
        return result["account"]

    def test_pending_list(self, account_service, actors, pending_vet):
        pending = account_service.list_pending_verifications(actors["superadmin"])
        assert [account["id"] for account in pending] == [pending_vet["id"]]

    def test_only_superadmin_decides(self, account_service, actors, pending_vet):
        with pytest.raises(AuthorizationException):
            account_service.approve_account(actors["ngo"], pending_vet["id"])
        with pytest.raises(AuthorizationException):
            account_service.list_pending_verifications(actors["ngo"])

    def test_approve_enables_login(self, account_service, actors, accounts, pending_vet, email_sender, clock):
        approved = account_service.approve_account(actors["superadmin"], pending_vet["id"])

        assert approved["verificationStatus"] == "approved"
        assert approved["verifiedBy"] == accounts["superadmin"].id
        assert "verification_approved" in email_sender.templates_for("vet@new.org")
        assert account_service.login("vet@new.org", PASSWORD)["token"]
        assert account_service.list_pending_verifications(actors["superadmin"]) == []

    def test_reject_requires_reason(self, account_service, actors, pending_vet):
        with pytest.raises(ValidationException):
            account_service.reject_account(actors["superadmin"], pending_vet["id"], "  ")

    def test_reject_sends_email_with_reason(self, account_service, actors, pending_vet, email_sender):
        rejected = account_service.reject_account(actors["superadmin"], pending_vet["id"], "Unreadable scan")

        assert rejected["verificationStatus"] == "rejected"
        assert rejected["rejectionReason"] == "Unreadable scan"
        message = [m for m in email_sender.sent if m["template"] == "verification_rejected"][0]
        assert message["context"]["reason"] == "Unreadable scan"

    def test_decision_is_final(self, account_service, actors, pending_vet):
        account_service.approve_account(actors["superadmin"], pending_vet["id"])

        with pytest.raises(ConflictException):
            account_service.approve_account(actors["superadmin"], pending_vet["id"])
        with pytest.raises(ConflictException):
            account_service.reject_account(actors["superadmin"], pending_vet["id"], "Changed my mind")

    def test_ungated_account_not_found(self, account_service, actors, accounts):
        with pytest.raises(NotFoundException):
            account_service.approve_account(actors["superadmin"], accounts["adopter"].id)
        with pytest.raises(NotFoundException):
            account_service.approve_account(actors["superadmin"], "missing")

    def test_approved_status_persisted(self, account_service, store, actors, pending_vet):
        account_service.approve_account(actors["superadmin"], pending_vet["id"])
        assert store.get(ACCOUNTS, pending_vet["id"])["verificationStatus"] == VerificationStatus.APPROVED.value


class TestProfile:
    """Test self-service profile edits."""

    def test_get_profile(self, account_service, actors, accounts):
        profile = account_service.get_profile(actors["adopter"])
        assert profile["id"] == accounts["adopter"].id
        assert "passwordHash" not in profile

    def test_update_contact_fields(self, account_service, store, actors, accounts, clock):
        clock.advance(minutes=5)
        updated = account_service.update_profile(
            actors["vet"], {"name": "Dr. Ana Lima", "phone": "5550142", "organization": "Harbor Clinic"}
        )

        assert updated["name"] == "Dr. Ana Lima"
        assert updated["organizationName"] == "Harbor Clinic"
        stored = store.get(ACCOUNTS, accounts["vet"].id)
        assert stored["phone"] == "5550142"
        assert stored["updatedAt"] == clock.now
        assert stored["verificationStatus"] == VerificationStatus.APPROVED.value

    def test_avatar_upload(self, account_service, actors, uploader):
        encoded = base64.b64encode(b"\x89PNG avatar").decode("ascii")
        updated = account_service.update_profile(
            actors["adopter"], {"avatar": f"data:image/png;base64,{encoded}"}
        )
        assert updated["avatarUrl"].startswith("http://localhost/files/local/avatars/")

    def test_avatar_url_kept(self, account_service, actors):
        updated = account_service.update_profile(actors["adopter"], {"avatar": "https://cdn.example.com/me.png"})
        assert updated["avatarUrl"] == "https://cdn.example.com/me.png"

    def test_password_change_requires_current_password(self, account_service, actors):
        with pytest.raises(ValidationException) as exc_info:
            account_service.update_profile(actors["adopter"], {"new_password": "another-pass-1"})
        assert exc_info.value.message == "Current password is required to change password"

    def test_wrong_current_password(self, account_service, actors):
        with pytest.raises(ValidationException) as exc_info:
            account_service.update_profile(
                actors["adopter"], {"current_password": "wrong-password", "new_password": "another-pass-1"}
            )
        assert exc_info.value.message == "Current password is incorrect"

    def test_password_change(self, account_service, actors):
        account_service.update_profile(
            actors["adopter"], {"current_password": PASSWORD, "new_password": "another-pass-1"}
        )

        assert account_service.login("adopter@example.com", "another-pass-1")
        with pytest.raises(AuthenticationException):
            account_service.login("adopter@example.com", PASSWORD)

    def test_nothing_to_update(self, account_service, actors):
        with pytest.raises(ValidationException) as exc_info:
            account_service.update_profile(actors["adopter"], {})
        assert exc_info.value.message == "No fields to update"

    def test_anonymous_refused(self, account_service):
        with pytest.raises(AuthenticationException):
            account_service.get_profile(None)
