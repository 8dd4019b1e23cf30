# SPDX-License-Identifier: Apache-2.0

"""
Tests for sighting reports: submission, triage, assignment and promotion.
"""

from datetime import datetime, timedelta, timezone

import pytest

from rescue_api.domain import dogs as dog_rules
from rescue_api.domain import reports as report_rules
from rescue_api.domain.errors import (
    AuthenticationException,
    AuthorizationException,
    ConflictException,
    ValidationException
)
from rescue_api.models.entities import RescueReport
from rescue_api.models.enums import DogStatus, ReportStatus
from rescue_api.services.store import DOGS, NOTIFICATIONS, REPORTS

DESCRIPTION = "Injured brown dog limping near the central market"


def seed_report(store, urgency: str, created_at: datetime, **fields) -> RescueReport:
    report = RescueReport(description=DESCRIPTION, urgency=urgency, created_at=created_at, **fields)
    store.insert(REPORTS, report.to_document())
    return report


class TestReportTransitions:
    """Test the report transition table."""

    def test_forward_moves_allowed(self):
        report_rules.validate_report_transition(ReportStatus.PENDING, ReportStatus.ASSIGNED)
        report_rules.validate_report_transition(ReportStatus.ASSIGNED, ReportStatus.IN_PROGRESS)
        report_rules.validate_report_transition(ReportStatus.IN_PROGRESS, ReportStatus.COMPLETED)

    def test_backward_move_rejected(self):
        with pytest.raises(ConflictException):
            report_rules.validate_report_transition(ReportStatus.IN_PROGRESS, ReportStatus.PENDING)

    @pytest.mark.parametrize("terminal", [ReportStatus.COMPLETED, ReportStatus.CANCELLED])
    def test_terminal_states(self, terminal):
        with pytest.raises(ConflictException):
            report_rules.validate_report_transition(terminal, ReportStatus.IN_PROGRESS)


class TestSubmitReport:
    """Test report submission."""

    def test_anonymous_submission(self, rescue_service):
        report = rescue_service.submit_report(None, {"description": DESCRIPTION, "urgency": "high"})

        assert report.status == ReportStatus.PENDING
        assert report.reporter_id is None
        assert report.reported_by == "Anonymous"

    def test_logged_in_reporter_recorded(self, rescue_service, actors, accounts):
        report = rescue_service.submit_report(actors["public"], {"description": DESCRIPTION})
        assert report.reporter_id == accounts["public"].id

    def test_superadmins_alerted(self, rescue_service, store, accounts):
        rescue_service.submit_report(None, {"description": DESCRIPTION, "urgency": "critical"})

        alerts = store.find(NOTIFICATIONS, {"accountId": accounts["superadmin"].id})
        assert len(alerts) == 1
        assert alerts[0]["type"] == "warning"


class TestTriage:
    """Test report ordering and visibility."""

    def test_most_urgent_then_newest(self, rescue_service, store, actors):
        base = datetime(2026, 2, 1, tzinfo=timezone.utc)
        old_low = seed_report(store, "low", base)
        new_low = seed_report(store, "low", base + timedelta(hours=2))
        critical = seed_report(store, "critical", base - timedelta(days=1))
        medium = seed_report(store, "medium", base + timedelta(hours=1))

        ordered = [report.id for report in rescue_service.list_reports(actors["ngo"])]
        assert ordered == [critical.id, medium.id, new_low.id, old_low.id]

    def test_in_process_sort_matches_store_sort(self, rescue_service, store, actors):
        base = datetime(2026, 2, 1, tzinfo=timezone.utc)
        reports = [
            seed_report(store, "medium", base),
            seed_report(store, "high", base + timedelta(minutes=5)),
            seed_report(store, "medium", base + timedelta(minutes=10)),
        ]
        expected = [report.id for report in report_rules.sort_for_triage(reports)]
        assert [report.id for report in rescue_service.list_reports(actors["superadmin"])] == expected

    def test_status_filter(self, rescue_service, store, actors):
        base = datetime(2026, 2, 1, tzinfo=timezone.utc)
        seed_report(store, "low", base)
        done = seed_report(store, "high", base, status="completed")

        assert [r.id for r in rescue_service.list_reports(actors["ngo"], "completed")] == [done.id]

    def test_listing_requires_staff(self, rescue_service, actors):
        with pytest.raises(AuthorizationException):
            rescue_service.list_reports(actors["volunteer"])

    def test_reporter_reads_own_report(self, rescue_service, actors):
        report = rescue_service.submit_report(actors["public"], {"description": DESCRIPTION})
        assert rescue_service.get_report_for(actors["public"], report.id).id == report.id

        with pytest.raises(AuthorizationException):
            rescue_service.get_report_for(actors["adopter"], report.id)


class TestAssignment:
    """Test volunteer assignment and task lists."""

    def test_assign_pending_report(self, rescue_service, store, actors, accounts):
        report = rescue_service.submit_report(None, {"description": DESCRIPTION})
        assigned = rescue_service.assign_report(actors["ngo"], report.id, accounts["volunteer"].id)

        assert assigned.status == ReportStatus.ASSIGNED
        assert assigned.assigned_to == accounts["volunteer"].id
        titles = [n["title"] for n in store.find(NOTIFICATIONS, {"accountId": accounts["volunteer"].id})]
        assert titles == ["New Rescue Task"]

    def test_reassign_in_progress_keeps_status(self, rescue_service, actors, accounts):
        report = rescue_service.submit_report(None, {"description": DESCRIPTION})
        rescue_service.set_report_status(actors["ngo"], report.id, ReportStatus.IN_PROGRESS)

        assigned = rescue_service.assign_report(actors["ngo"], report.id, accounts["volunteer"].id)
        assert assigned.status == ReportStatus.IN_PROGRESS

    def test_assign_requires_volunteer(self, rescue_service, actors, accounts):
        report = rescue_service.submit_report(None, {"description": DESCRIPTION})
        with pytest.raises(ValidationException):
            rescue_service.assign_report(actors["ngo"], report.id, accounts["adopter"].id)

    def test_assign_terminal_report_rejected(self, rescue_service, actors, accounts):
        report = rescue_service.submit_report(None, {"description": DESCRIPTION})
        rescue_service.set_report_status(actors["ngo"], report.id, ReportStatus.CANCELLED)

        with pytest.raises(ConflictException):
            rescue_service.assign_report(actors["ngo"], report.id, accounts["volunteer"].id)

    def test_my_tasks(self, rescue_service, actors, accounts):
        mine = rescue_service.submit_report(None, {"description": DESCRIPTION})
        rescue_service.submit_report(None, {"description": DESCRIPTION})
        rescue_service.assign_report(actors["ngo"], mine.id, accounts["volunteer"].id)

        tasks = rescue_service.list_my_tasks(actors["volunteer"])
        assert [task.id for task in tasks] == [mine.id]
        assert rescue_service.get_report_for(actors["volunteer"], mine.id).id == mine.id

    def test_my_reports_newest_first(self, rescue_service, store, actors, accounts):
        base = datetime(2026, 2, 1, tzinfo=timezone.utc)
        first = seed_report(store, "critical", base, reporter_id=accounts["public"].id)
        second = seed_report(store, "low", base + timedelta(hours=1), reporter_id=accounts["public"].id)
        seed_report(store, "high", base, reporter_id=accounts["adopter"].id)
        seed_report(store, "high", base)

        mine = rescue_service.list_my_reports(actors["public"])
        assert [report.id for report in mine] == [second.id, first.id]

    def test_my_reports_requires_login(self, rescue_service):
        with pytest.raises(AuthenticationException):
            rescue_service.list_my_reports(None)

    def test_status_change_notifies_reporter(self, rescue_service, store, actors, accounts):
        report = rescue_service.submit_report(actors["public"], {"description": DESCRIPTION})
        rescue_service.set_report_status(actors["ngo"], report.id, ReportStatus.COMPLETED)

        messages = [n["message"] for n in store.find(NOTIFICATIONS, {"accountId": accounts["public"].id})]
        assert "Your rescue report is now completed." in messages


class TestPromotion:
    """Test turning a report into a rescue case."""

    def test_promote_creates_linked_dog(self, rescue_service, store, actors, accounts):
        report = rescue_service.submit_report(
            actors["public"],
            {"description": DESCRIPTION, "urgency": "critical", "location": {"district": "Harbor"}}
        )
        dog, created = rescue_service.promote_report_to_dog(actors["ngo"], report.id)

        assert created is True
        assert dog.status == DogStatus.IN_PROGRESS
        assert dog.from_report_id == report.id
        assert dog.created_by == accounts["ngo"].id
        assert dog.location.district == "Harbor"
        assert rescue_service.get_report(report.id).dog_id == dog.id
        titles = [n["title"] for n in store.find(NOTIFICATIONS, {"accountId": accounts["public"].id})]
        assert "Your Report Became a Rescue Case" in titles

    def test_low_urgency_dog_starts_reported(self, rescue_service, actors):
        report = rescue_service.submit_report(None, {"description": DESCRIPTION, "urgency": "low"})
        dog, _ = rescue_service.promote_report_to_dog(actors["ngo"], report.id)
        assert dog.status == DogStatus.REPORTED

    def test_promotion_is_idempotent(self, rescue_service, store, actors):
        report = rescue_service.submit_report(None, {"description": DESCRIPTION})
        first, created = rescue_service.promote_report_to_dog(actors["ngo"], report.id)
        second, created_again = rescue_service.promote_report_to_dog(actors["superadmin"], report.id)

        assert created is True
        assert created_again is False
        assert second.id == first.id
        assert store.count(DOGS) == 1

    def test_promoted_dog_cannot_be_deleted(self, rescue_service, store, actors):
        """The report keeps resolving to its rescue case."""
        report = rescue_service.submit_report(None, {"description": DESCRIPTION})
        dog, _ = rescue_service.promote_report_to_dog(actors["ngo"], report.id)

        with pytest.raises(ConflictException) as exc_info:
            rescue_service.delete_dog(actors["ngo"], dog.id)
        assert exc_info.value.message == dog_rules.PROMOTED_MESSAGE

        again, created = rescue_service.promote_report_to_dog(actors["ngo"], report.id)
        assert created is False
        assert again.id == dog.id
        assert store.count(DOGS) == 1

    def test_concurrent_promotion_keeps_one_dog(self, rescue_service, store, actors, monkeypatch):
        report = rescue_service.submit_report(None, {"description": DESCRIPTION})
        stale = rescue_service.get_report(report.id)
        winner, _ = rescue_service.promote_report_to_dog(actors["ngo"], report.id)

        real_get_report = rescue_service.get_report
        calls = []

        def get_report(report_id):
            calls.append(report_id)
            return stale if len(calls) == 1 else real_get_report(report_id)

        monkeypatch.setattr(rescue_service, "get_report", get_report)
        dog, created = rescue_service.promote_report_to_dog(actors["ngo"], report.id)

        assert created is False
        assert dog.id == winner.id
        assert store.count(DOGS) == 1

    def test_cancelled_report_cannot_be_promoted(self, rescue_service, actors):
        report = rescue_service.submit_report(None, {"description": DESCRIPTION})
        rescue_service.set_report_status(actors["ngo"], report.id, ReportStatus.CANCELLED)

        with pytest.raises(ConflictException):
            rescue_service.promote_report_to_dog(actors["ngo"], report.id)

    def test_promotion_requires_staff(self, rescue_service, actors):
        report = rescue_service.submit_report(None, {"description": DESCRIPTION})
        with pytest.raises(AuthorizationException):
            rescue_service.promote_report_to_dog(actors["volunteer"], report.id)
