"""Tests for dashboard refresh tracking and notices (F5)."""

import pytest

from ecertify.core.notifications import (
    ACCESS_GRANTS,
    CERTIFICATES,
    TRANSFER_REQUESTS,
    ChangeEvent,
    ChangeOperation,
    RefreshTracker,
    subscribe_institute_feed,
    subscribe_student_feed,
)

INSERT = ChangeOperation.INSERT
UPDATE = ChangeOperation.UPDATE


def _event(table, operation, **row):
    return ChangeEvent(table=table, operation=operation, new_row=row)


class TestInstituteNotices:
    """Notices shown on the institute dashboard."""

    @pytest.mark.parametrize(
        "table,operation,title",
        [
            (CERTIFICATES, INSERT, "New Certificate"),
            (CERTIFICATES, UPDATE, "Certificate Updated"),
            (TRANSFER_REQUESTS, INSERT, "New Institute Change Request"),
            (TRANSFER_REQUESTS, UPDATE, "Change Request Updated"),
        ],
    )
    def test_titles(self, table, operation, title):
        tracker = RefreshTracker(role="institute")
        notice = tracker.handle(_event(table, operation, id=1))
        assert notice.title == title
        assert tracker.needs_refresh

    def test_new_certificate_description(self):
        notice = RefreshTracker(role="institute").handle(_event(CERTIFICATES, INSERT, id=1))
        assert notice.description == "A new certificate has been uploaded for approval"


class TestStudentNotices:
    """Notices shown on the student dashboard."""

    def test_certificate_added(self):
        notice = RefreshTracker(role="student").handle(_event(CERTIFICATES, INSERT, id=1))
        assert notice.title == "Certificate Added"

    def test_certificate_approved(self):
        notice = RefreshTracker(role="student").handle(
            _event(CERTIFICATES, UPDATE, id=1, approved=True)
        )
        assert notice.title == "Certificate Approved"
        assert notice.description == "Your certificate has been approved by the institute"

    def test_unapproved_update_refreshes_silently(self):
        tracker = RefreshTracker(role="student")
        assert tracker.handle(_event(CERTIFICATES, UPDATE, id=1, approved=False)) is None
        assert tracker.needs_refresh

    def test_access_granted(self):
        notice = RefreshTracker(role="student").handle(_event(ACCESS_GRANTS, INSERT, id=1))
        assert notice.title == "Access Granted"

    @pytest.mark.parametrize(
        "status,title",
        [("approved", "Institute Change Approved"), ("declined", "Institute Change Declined")],
    )
    def test_transfer_resolution(self, status, title):
        notice = RefreshTracker(role="student").handle(
            _event(TRANSFER_REQUESTS, UPDATE, id=1, status=status)
        )
        assert notice.title == title


class TestTrackerState:
    def test_reset_and_drain(self):
        tracker = RefreshTracker(role="institute")
        tracker(_event(CERTIFICATES, INSERT, id=1))
        tracker(_event(TRANSFER_REQUESTS, INSERT, id=2))

        assert [n.title for n in tracker.drain_notices()] == [
            "New Certificate",
            "New Institute Change Request",
        ]
        assert tracker.drain_notices() == []

        tracker.reset()
        assert not tracker.needs_refresh
        tracker.trigger_refresh()
        assert tracker.needs_refresh


class TestDashboardFlow:
    """Trackers wired to the live feed of real workflows."""

    def test_institute_sees_upload_and_request(self, world, services):
        tracker = RefreshTracker(role="institute")
        subscribe_institute_feed(services.feed, world.institute_b, tracker)

        services.certificates.issue(world.student, world.institute_a, "cid-a")
        assert not tracker.needs_refresh

        services.certificates.issue(world.student, world.institute_b, "cid-b")
        services.transfers.request(world.student, world.institute_a, world.institute_b)

        assert [n.title for n in tracker.drain_notices()] == [
            "New Certificate",
            "New Institute Change Request",
        ]

    def test_student_sees_approval_and_transfer(self, world, services):
        tracker = RefreshTracker(role="student")
        subscribe_student_feed(services.feed, world.student, tracker)

        certificate = services.certificates.issue(world.student, world.institute_a, "cid-a")
        services.certificates.approve(certificate.id)
        request = services.transfers.request(world.student, world.institute_a, world.institute_b)
        services.transfers.decline(request.id, world.institute_b)

        titles = [n.title for n in tracker.drain_notices()]
        assert titles == [
            "Certificate Added",
            "Certificate Approved",
            "Institute Change Declined",
        ]
