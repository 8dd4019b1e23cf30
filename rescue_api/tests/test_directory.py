# SPDX-License-Identifier: Apache-2.0

"""
Tests for the superadmin organization overview and volunteer management.
"""

import pytest

from rescue_api.domain.accounts import NO_CHANGES_MESSAGE, VOLUNTEER_NOT_FOUND_MESSAGE
from rescue_api.domain.errors import (
    AuthorizationException,
    ConflictException,
    NotFoundException,
    ValidationException
)
from rescue_api.models.enums import AccountRole, ReportStatus, VerificationStatus
from rescue_api.services.accounts import DUPLICATE_EMAIL_MESSAGE
from rescue_api.services.directory import NGO_NOT_FOUND_MESSAGE, VOLUNTEER_HAS_TASKS_MESSAGE
from rescue_api.services.store import ACCOUNTS

from conftest import PASSWORD, make_account

DESCRIPTION = "Dog with a hurt paw sheltering behind the bakery"


def volunteer_attributes(email: str = "new.helper@example.com", **extra):
    data = {"email": email, "password": PASSWORD, "name": "New Helper", "phone": "5550199"}
    data.update(extra)
    return data


class TestOrganizations:
    """Test the organization overview."""

    def test_lists_only_approved_organizations(self, directory_service, store, auth_service, actors, accounts):
        make_account(
            store, auth_service, AccountRole.NGO_ADMIN, "ngo@pending.org", "Pending Paws",
            VerificationStatus.PENDING
        )

        ids = {ngo["id"] for ngo in directory_service.list_ngos(actors["superadmin"])}
        assert ids == {accounts["ngo"].id, accounts["other_ngo"].id}

    def test_stats_count_dogs_and_linked_reports(self, directory_service, rescue_service, adoption_service,
                                                 adoptable_dog, actors, accounts, application_details):
        report = rescue_service.submit_report(None, {"description": DESCRIPTION})
        rescue_service.promote_report_to_dog(actors["ngo"], report.id)
        rescue_service.set_report_status(actors["ngo"], report.id, ReportStatus.COMPLETED)
        application = adoption_service.submit_application(actors["adopter"], adoptable_dog.id, application_details)
        adoption_service.decide_application(actors["ngo"], application.id, "approved")

        ngos = {ngo["id"]: ngo for ngo in directory_service.list_ngos(actors["superadmin"])}

        assert ngos[accounts["ngo"].id]["stats"] == {
            "totalDogs": 2,
            "adoptedDogs": 1,
            "totalReports": 1,
            "completedRescues": 1
        }
        assert ngos[accounts["other_ngo"].id]["stats"]["totalDogs"] == 0
        assert "passwordHash" not in ngos[accounts["ngo"].id]

    def test_detail_includes_rescue_operations(self, directory_service, rescue_service, actors, accounts):
        report = rescue_service.submit_report(None, {"description": DESCRIPTION})
        dog, _ = rescue_service.promote_report_to_dog(actors["ngo"], report.id)
        rescue_service.create_dog(actors["other_ngo"], {"name": "Shadow"})

        detail = directory_service.get_ngo(actors["superadmin"], accounts["ngo"].id)

        assert detail["ngo"]["id"] == accounts["ngo"].id
        assert [d.id for d in detail["dogs"]] == [dog.id]
        assert [r.id for r in detail["reports"]] == [report.id]

    @pytest.mark.parametrize("key", ["vet", "adopter"])
    def test_detail_of_non_organization_not_found(self, directory_service, actors, accounts, key):
        with pytest.raises(NotFoundException) as exc_info:
            directory_service.get_ngo(actors["superadmin"], accounts[key].id)
        assert exc_info.value.message == NGO_NOT_FOUND_MESSAGE

    def test_only_superadmin(self, directory_service, actors, accounts):
        with pytest.raises(AuthorizationException):
            directory_service.list_ngos(actors["ngo"])
        with pytest.raises(AuthorizationException):
            directory_service.get_ngo(actors["ngo"], accounts["ngo"].id)


class TestVolunteers:
    """Test volunteer account management."""

    def test_create_volunteer_can_log_in(self, directory_service, account_service, actors):
        volunteer = directory_service.create_volunteer(actors["superadmin"], volunteer_attributes())

        assert volunteer["role"] == "volunteer"
        assert volunteer["verificationStatus"] is None
        assert "passwordHash" not in volunteer
        assert account_service.login("new.helper@example.com", PASSWORD)["account"]["id"] == volunteer["id"]

    def test_duplicate_email_rejected(self, directory_service, actors):
        with pytest.raises(ConflictException) as exc_info:
            directory_service.create_volunteer(actors["superadmin"], volunteer_attributes("Adopter@Example.com"))
        assert exc_info.value.message == DUPLICATE_EMAIL_MESSAGE

    def test_short_password_rejected(self, directory_service, actors):
        with pytest.raises(ValidationException):
            directory_service.create_volunteer(actors["superadmin"], volunteer_attributes(password="short"))

    def test_list_contains_only_volunteers(self, directory_service, actors, accounts):
        volunteers = directory_service.list_volunteers(actors["superadmin"])
        assert [v["id"] for v in volunteers] == [accounts["volunteer"].id]

    def test_get_non_volunteer_not_found(self, directory_service, actors, accounts):
        with pytest.raises(NotFoundException) as exc_info:
            directory_service.get_volunteer(actors["superadmin"], accounts["adopter"].id)
        assert exc_info.value.message == VOLUNTEER_NOT_FOUND_MESSAGE

    def test_update_fields_and_password(self, directory_service, account_service, actors, accounts, clock):
        clock.advance(hours=1)
        updated = directory_service.update_volunteer(
            actors["superadmin"],
            accounts["volunteer"].id,
            {"name": "Hana Helper", "organization": "Harbor Crew", "password": "new-password-1"}
        )

        assert updated["name"] == "Hana Helper"
        assert updated["organizationName"] == "Harbor Crew"
        assert account_service.login("helper@example.com", "new-password-1")

    def test_update_to_taken_email_conflicts(self, directory_service, actors, accounts):
        with pytest.raises(ConflictException):
            directory_service.update_volunteer(
                actors["superadmin"], accounts["volunteer"].id, {"email": "vet@clinic.org"}
            )

    def test_update_without_fields_rejected(self, directory_service, actors, accounts):
        with pytest.raises(ValidationException) as exc_info:
            directory_service.update_volunteer(actors["superadmin"], accounts["volunteer"].id, {})
        assert exc_info.value.message == NO_CHANGES_MESSAGE

    def test_update_non_volunteer_not_found(self, directory_service, actors, accounts):
        with pytest.raises(NotFoundException):
            directory_service.update_volunteer(actors["superadmin"], accounts["vet"].id, {"name": "Dr. Z"})

    def test_delete_volunteer(self, directory_service, store, actors, accounts):
        directory_service.delete_volunteer(actors["superadmin"], accounts["volunteer"].id)

        assert store.get(ACCOUNTS, accounts["volunteer"].id) is None
        with pytest.raises(NotFoundException):
            directory_service.delete_volunteer(actors["superadmin"], accounts["volunteer"].id)

    def test_delete_with_open_tasks_conflicts(self, directory_service, rescue_service, store, actors, accounts):
        report = rescue_service.submit_report(None, {"description": DESCRIPTION})
        rescue_service.assign_report(actors["ngo"], report.id, accounts["volunteer"].id)

        with pytest.raises(ConflictException) as exc_info:
            directory_service.delete_volunteer(actors["superadmin"], accounts["volunteer"].id)
        assert exc_info.value.message == VOLUNTEER_HAS_TASKS_MESSAGE

        rescue_service.set_report_status(actors["ngo"], report.id, ReportStatus.COMPLETED)
        directory_service.delete_volunteer(actors["superadmin"], accounts["volunteer"].id)
        assert store.get(ACCOUNTS, accounts["volunteer"].id) is None

    def test_delete_other_role_refused(self, directory_service, store, actors, accounts):
        with pytest.raises(NotFoundException):
            directory_service.delete_volunteer(actors["superadmin"], accounts["adopter"].id)
        assert store.get(ACCOUNTS, accounts["adopter"].id) is not None

    @pytest.mark.parametrize("key", ["ngo", "volunteer", "adopter"])
    def test_only_superadmin(self, directory_service, actors, key):
        with pytest.raises(AuthorizationException):
            directory_service.list_volunteers(actors[key])
