# SPDX-License-Identifier: Apache-2.0

"""
Tests for role and ownership based authorization rules.
"""

import pytest

from rescue_api.domain.authorization import Action, authorize, require
from rescue_api.domain.errors import AuthenticationException, AuthorizationException
from rescue_api.models.entities import ActorContext, AdoptionApplication, Dog, RescueReport
from rescue_api.models.enums import AccountRole


def actor(role: AccountRole, account_id: str = None) -> ActorContext:
    return ActorContext(account_id=account_id or f"{role.value}-1", role=role)


def application(ngo_id: str = "ngo-1", applicant_id: str = "adopter-1") -> AdoptionApplication:
    return AdoptionApplication(
        dog_id="dog-1",
        applicant_id=applicant_id,
        ngo_id=ngo_id,
        applicant_phone="5550100",
        home_type="house",
        experience="Raised a puppy",
        reason="Wants a companion"
    )


class TestRoleRules:
    """Test role-only rules."""

    @pytest.mark.parametrize("role,allowed", [
        (AccountRole.NGO_ADMIN, True),
        (AccountRole.SUPERADMIN, True),
        (AccountRole.VETERINARIAN, False),
        (AccountRole.VOLUNTEER, False),
        (AccountRole.ADOPTER, False),
        (AccountRole.PUBLIC, False),
    ])
    def test_create_dog(self, role, allowed):
        assert authorize(actor(role), Action.CREATE_DOG).allowed is allowed

    @pytest.mark.parametrize("role", [
        AccountRole.NGO_ADMIN, AccountRole.VETERINARIAN, AccountRole.VOLUNTEER,
        AccountRole.ADOPTER, AccountRole.PUBLIC
    ])
    def test_only_superadmin_manages_verifications(self, role):
        assert not authorize(actor(role), Action.MANAGE_VERIFICATIONS).allowed
        assert authorize(actor(AccountRole.SUPERADMIN), Action.MANAGE_VERIFICATIONS).allowed

    @pytest.mark.parametrize("action", [Action.MANAGE_NGOS, Action.MANAGE_VOLUNTEERS])
    def test_only_superadmin_manages_directory(self, action):
        assert authorize(actor(AccountRole.SUPERADMIN), action).allowed
        denied = authorize(actor(AccountRole.NGO_ADMIN), action)
        assert not denied.allowed
        assert denied.reason.startswith("Only superadmins can manage")

    @pytest.mark.parametrize("action", [Action.MANAGE_PROFILE, Action.VIEW_OWN_REPORTS])
    def test_any_account_manages_own_profile_and_reports(self, action):
        assert authorize(actor(AccountRole.PUBLIC), action).allowed
        assert authorize(actor(AccountRole.VETERINARIAN), action).allowed
        assert not authorize(None, action).allowed

    def test_medical_records_visible_to_vets_and_staff(self):
        assert authorize(actor(AccountRole.VETERINARIAN), Action.VIEW_MEDICAL_RECORDS).allowed
        assert authorize(actor(AccountRole.NGO_ADMIN), Action.VIEW_MEDICAL_RECORDS).allowed
        assert not authorize(actor(AccountRole.ADOPTER), Action.VIEW_MEDICAL_RECORDS).allowed

    def test_anyone_can_submit_report(self):
        assert authorize(None, Action.SUBMIT_REPORT).allowed
        assert authorize(actor(AccountRole.PUBLIC), Action.SUBMIT_REPORT).allowed


class TestOwnershipRules:
    """Test rules that combine a role with ownership of the target."""

    def test_assigned_vet_manages_treatment(self):
        dog = Dog(name="Rex", assigned_vet="vet-1")

        assert authorize(actor(AccountRole.VETERINARIAN, "vet-1"), Action.SET_TREATMENT_STATUS, dog).allowed
        assert not authorize(actor(AccountRole.VETERINARIAN, "vet-2"), Action.SET_TREATMENT_STATUS, dog).allowed

    def test_superadmin_overrides_vet_assignment(self):
        dog = Dog(name="Rex", assigned_vet="vet-1")
        assert authorize(actor(AccountRole.SUPERADMIN), Action.RECORD_MEDICAL, dog).allowed

    def test_org_admin_cannot_manage_treatment(self):
        dog = Dog(name="Rex", assigned_vet="vet-1")
        assert not authorize(actor(AccountRole.NGO_ADMIN), Action.SET_TREATMENT_STATUS, dog).allowed

    def test_owning_org_decides_application(self):
        target = application(ngo_id="ngo-1")

        assert authorize(actor(AccountRole.NGO_ADMIN, "ngo-1"), Action.DECIDE_APPLICATION, target).allowed
        result = authorize(actor(AccountRole.NGO_ADMIN, "ngo-2"), Action.DECIDE_APPLICATION, target)
        assert not result.allowed
        assert "your own dogs" in result.reason

    def test_superadmin_decides_any_application(self):
        assert authorize(actor(AccountRole.SUPERADMIN), Action.DECIDE_APPLICATION, application()).allowed

    def test_application_visible_to_applicant_and_owner(self):
        target = application(ngo_id="ngo-1", applicant_id="adopter-1")

        assert authorize(actor(AccountRole.ADOPTER, "adopter-1"), Action.VIEW_APPLICATION, target).allowed
        assert authorize(actor(AccountRole.NGO_ADMIN, "ngo-1"), Action.VIEW_APPLICATION, target).allowed
        assert not authorize(actor(AccountRole.ADOPTER, "adopter-2"), Action.VIEW_APPLICATION, target).allowed
        assert not authorize(actor(AccountRole.NGO_ADMIN, "ngo-2"), Action.VIEW_APPLICATION, target).allowed

    def test_superadmin_cannot_apply(self):
        assert not authorize(actor(AccountRole.SUPERADMIN), Action.SUBMIT_APPLICATION).allowed
        assert authorize(actor(AccountRole.PUBLIC), Action.SUBMIT_APPLICATION).allowed

    def test_volunteer_sees_only_assigned_reports(self):
        report = RescueReport(description="Dog stuck in a drain on 5th street", assigned_to="volunteer-1")

        assert authorize(actor(AccountRole.VOLUNTEER, "volunteer-1"), Action.VIEW_OWN_TASKS, report).allowed
        assert not authorize(actor(AccountRole.VOLUNTEER, "volunteer-2"), Action.VIEW_OWN_TASKS, report).allowed


class TestRequire:
    """Test enforcement of decisions."""

    def test_anonymous_denial_requires_login(self):
        with pytest.raises(AuthenticationException):
            require(None, Action.CREATE_DOG)

    def test_authenticated_denial_is_forbidden(self):
        with pytest.raises(AuthorizationException) as exc_info:
            require(actor(AccountRole.ADOPTER), Action.CREATE_DOG)
        assert exc_info.value.status_code == 403

    def test_allowed_passes(self):
        require(actor(AccountRole.NGO_ADMIN), Action.CREATE_DOG)

    def test_every_action_has_a_rule(self):
        for action in Action:
            assert isinstance(authorize(actor(AccountRole.SUPERADMIN), action).allowed, bool)
