# SPDX-License-Identifier: Apache-2.0

"""
Tests for one-time code password reset.
"""

import pytest

from rescue_api.domain import accounts as account_rules
from rescue_api.domain.errors import AuthenticationException, ConflictException, ValidationException
from rescue_api.services.accounts import RESET_REQUESTED_MESSAGE
from rescue_api.services.store import RESET_CHALLENGES

from conftest import PASSWORD

EMAIL = "adopter@example.com"
NEW_PASSWORD = "new-password-456"


class TestOtpHelpers:
    """Test code generation and evaluation."""

    def test_generated_code_has_six_digits(self):
        for _ in range(50):
            code = account_rules.generate_otp()
            assert len(code) == 6
            assert code.isdigit()

    def test_code_stored_hashed(self):
        assert account_rules.hash_otp("123456") != "123456"
        assert account_rules.hash_otp("123456") == account_rules.hash_otp("123456")


class TestRequestReset:
    """Test issuing reset codes."""

    def test_code_emailed_and_stored_hashed(self, account_service, store, accounts, email_sender):
        response = account_service.request_password_reset(EMAIL)

        assert response == {"message": RESET_REQUESTED_MESSAGE}
        code = email_sender.last_code_for(EMAIL)
        challenges = store.find(RESET_CHALLENGES, {"accountId": accounts["adopter"].id})
        assert len(challenges) == 1
        assert challenges[0]["codeHash"] == account_rules.hash_otp(code)

    def test_unknown_email_gets_same_response(self, account_service, store, email_sender):
        response = account_service.request_password_reset("ghost@example.com")

        assert response == {"message": RESET_REQUESTED_MESSAGE}
        assert email_sender.sent == []
        assert store.count(RESET_CHALLENGES) == 0

    def test_superadmin_excluded(self, account_service, store, accounts, email_sender):
        response = account_service.request_password_reset("admin@rescue.org")

        assert response == {"message": RESET_REQUESTED_MESSAGE}
        assert email_sender.sent == []
        assert store.count(RESET_CHALLENGES) == 0

    def test_new_request_invalidates_previous_code(self, account_service, store, accounts, email_sender):
        account_service.request_password_reset(EMAIL)
        first_code = email_sender.last_code_for(EMAIL)
        account_service.request_password_reset(EMAIL)
        second_code = email_sender.last_code_for(EMAIL)

        assert store.count(RESET_CHALLENGES, {"accountId": accounts["adopter"].id, "used": False}) == 1
        if first_code != second_code:
            with pytest.raises(ConflictException):
                account_service.confirm_password_reset(EMAIL, first_code, NEW_PASSWORD)
        account_service.confirm_password_reset(EMAIL, second_code, NEW_PASSWORD)


class TestConfirmReset:
    """Test completing a reset."""

    def test_reset_changes_password(self, account_service, accounts, email_sender):
        account_service.request_password_reset(EMAIL)
        code = email_sender.last_code_for(EMAIL)

        account_service.confirm_password_reset(EMAIL, code, NEW_PASSWORD)

        assert account_service.login(EMAIL, NEW_PASSWORD)["token"]
        with pytest.raises(AuthenticationException):
            account_service.login(EMAIL, PASSWORD)

    def test_code_is_single_use(self, account_service, accounts, email_sender):
        account_service.request_password_reset(EMAIL)
        code = email_sender.last_code_for(EMAIL)
        account_service.confirm_password_reset(EMAIL, code, NEW_PASSWORD)

        with pytest.raises(ConflictException) as exc_info:
            account_service.confirm_password_reset(EMAIL, code, "another-password")
        assert exc_info.value.message == account_rules.INVALID_CHALLENGE_MESSAGE

    def test_expired_code(self, account_service, accounts, email_sender, clock):
        account_service.request_password_reset(EMAIL)
        code = email_sender.last_code_for(EMAIL)
        clock.advance(minutes=10)

        with pytest.raises(ConflictException) as exc_info:
            account_service.confirm_password_reset(EMAIL, code, NEW_PASSWORD)
        assert exc_info.value.message == account_rules.INVALID_CHALLENGE_MESSAGE

    def test_code_valid_just_before_expiry(self, account_service, accounts, email_sender, clock):
        account_service.request_password_reset(EMAIL)
        code = email_sender.last_code_for(EMAIL)
        clock.advance(minutes=9, seconds=59)

        account_service.confirm_password_reset(EMAIL, code, NEW_PASSWORD)

    def test_wrong_code_counts_attempts(self, account_service, store, accounts, email_sender):
        account_service.request_password_reset(EMAIL)
        code = email_sender.last_code_for(EMAIL)
        wrong = "000000" if code != "000000" else "111111"

        with pytest.raises(ConflictException) as exc_info:
            account_service.confirm_password_reset(EMAIL, wrong, NEW_PASSWORD)
        assert exc_info.value.message == account_rules.WRONG_CODE_MESSAGE
        assert store.find(RESET_CHALLENGES)[0]["attempts"] == 1

        account_service.confirm_password_reset(EMAIL, code, NEW_PASSWORD)

    def test_too_many_attempts_burn_code(self, account_service, accounts, email_sender):
        account_service.request_password_reset(EMAIL)
        code = email_sender.last_code_for(EMAIL)
        wrong = "000000" if code != "000000" else "111111"

        for _ in range(account_rules.OTP_MAX_ATTEMPTS):
            with pytest.raises(ConflictException):
                account_service.confirm_password_reset(EMAIL, wrong, NEW_PASSWORD)

        with pytest.raises(ConflictException) as exc_info:
            account_service.confirm_password_reset(EMAIL, code, NEW_PASSWORD)
        assert exc_info.value.message == account_rules.INVALID_CHALLENGE_MESSAGE

    def test_short_new_password(self, account_service, accounts, email_sender):
        account_service.request_password_reset(EMAIL)
        code = email_sender.last_code_for(EMAIL)

        with pytest.raises(ValidationException):
            account_service.confirm_password_reset(EMAIL, code, "short")
        account_service.confirm_password_reset(EMAIL, code, NEW_PASSWORD)

    def test_no_challenge(self, account_service, accounts):
        with pytest.raises(ConflictException):
            account_service.confirm_password_reset(EMAIL, "123456", NEW_PASSWORD)

    def test_superadmin_cannot_confirm(self, account_service, accounts):
        with pytest.raises(ConflictException):
            account_service.confirm_password_reset("admin@rescue.org", "123456", NEW_PASSWORD)
