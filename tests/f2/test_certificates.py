"""Tests for certificate issuance and approval (F2)."""

import pytest

from ecertify.core.notifications import CERTIFICATES, ChangeOperation
from ecertify.errors import NotFoundError, UnauthorizedError, ValidationError

INSTITUTE_A = "0x" + "a" * 40
STUDENT_ADDR = "0x" + "1" * 40


@pytest.fixture
def events(services):
    """Collect every certificate change event."""
    received = []
    services.feed.subscribe(CERTIFICATES, {}, received.append)
    return received


class TestIssue:
    """Tests for CertificateService.issue."""

    def test_issue_is_pending(self, world, services):
        """A new certificate shows up pending for its institute."""
        certificate = services.certificates.issue(world.student, world.institute_a, "cid123")
        assert certificate.approved is False

        pending = services.certificates.list_pending_for_institute(world.institute_a)
        assert [c.id for c in pending] == [certificate.id]
        assert pending[0].approved is False

    def test_issue_emits_insert(self, world, services, events):
        certificate = services.certificates.issue(world.student, world.institute_a, "cid123")
        assert len(events) == 1
        assert events[0].operation is ChangeOperation.INSERT
        assert events[0].new_row["id"] == certificate.id
        assert events[0].new_row["institute_id"] == world.institute_a

    def test_issue_unknown_student(self, world, services):
        with pytest.raises(NotFoundError):
            services.certificates.issue(999, world.institute_a, "cid123")

    def test_issue_unknown_institute(self, world, services):
        with pytest.raises(NotFoundError):
            services.certificates.issue(world.student, 999, "cid123")

    def test_issue_requires_content_id(self, world, services):
        with pytest.raises(ValidationError):
            services.certificates.issue(world.student, world.institute_a, "")


class TestApprove:
    """Tests for CertificateService.approve."""

    def test_approve_scenario(self, world, services):
        """Approved certificates leave the pending list and stay with the student."""
        certificates = services.certificates
        certificate = certificates.issue(world.student, world.institute_a, "cid123")

        certificates.approve(certificate.id)

        assert certificates.list_pending_for_institute(world.institute_a) == []
        owned = certificates.list_for_student(world.student)
        assert [(c.id, c.approved) for c in owned] == [(certificate.id, True)]

    def test_approve_idempotent(self, world, services, events):
        """Approving twice ends in the same state and emits one update."""
        certificate = services.certificates.issue(world.student, world.institute_a, "cid123")
        first = services.certificates.approve(certificate.id)
        second = services.certificates.approve(certificate.id)

        assert first.approved and second.approved
        assert services.certificates.get(certificate.id).approved is True
        updates = [e for e in events if e.operation is ChangeOperation.UPDATE]
        assert len(updates) == 1
        assert updates[0].new_row["approved"] is True

    def test_approve_by_other_institute(self, world, services):
        certificate = services.certificates.issue(world.student, world.institute_a, "cid123")
        with pytest.raises(UnauthorizedError):
            services.certificates.approve(certificate.id, world.institute_b)
        assert services.certificates.get(certificate.id).approved is False

    def test_approve_by_issuer(self, world, services):
        certificate = services.certificates.issue(world.student, world.institute_a, "cid123")
        assert services.certificates.approve(certificate.id, world.institute_a).approved

    def test_approve_unknown(self, services):
        with pytest.raises(NotFoundError):
            services.certificates.approve(12345)


class TestUpload:
    """Tests for CertificateService.upload."""

    def test_upload_stores_content(self, world, services):
        certificate = services.certificates.upload(
            INSTITUTE_A, STUDENT_ADDR, b"%PDF diploma", "diploma.pdf"
        )
        assert services.content_store.get(certificate.content_id) == b"%PDF diploma"
        assert certificate.institute_id == world.institute_a
        assert certificate.student_id == world.student
        assert services.certificates.content_url(certificate) == (
            f"https://ipfs.io/ipfs/{certificate.content_id}"
        )

    def test_upload_links_unaffiliated_student(self, world, services):
        student_id = services.directory.upsert_student("0xcafe", "Luis", "", None)
        services.certificates.upload(INSTITUTE_A, "0xCAFE", b"%PDF", "c.pdf")
        assert services.directory.get_student(student_id).current_institute_id == world.institute_a

    def test_upload_unknown_addresses(self, world, services):
        """Unknown addresses are rejected unless provisioning is asked for."""
        with pytest.raises(NotFoundError):
            services.certificates.upload(INSTITUTE_A, "0xdead", b"%PDF", "c.pdf")
        assert services.directory.find_student_id("0xdead") is None

    def test_upload_auto_provision(self, services):
        certificate = services.certificates.upload(
            "0xABCDEF99", "0x12345678", b"%PDF", "c.pdf", auto_provision=True
        )
        institute = services.directory.get_institute(certificate.institute_id)
        student = services.directory.get_student(certificate.student_id)
        assert institute.name == "Institute (0xabcd...)"
        assert student.current_institute_id == institute.id

    def test_upload_empty_file(self, world, services):
        with pytest.raises(ValidationError):
            services.certificates.upload(INSTITUTE_A, STUDENT_ADDR, b"", "c.pdf")
        assert services.certificates.list_for_student(world.student) == []


class TestListing:
    def test_list_for_student_newest_first(self, world, services):
        first = services.certificates.issue(world.student, world.institute_a, "cid-1")
        second = services.certificates.issue(world.student, world.institute_a, "cid-2")
        ids = [c.id for c in services.certificates.list_for_student(world.student)]
        assert ids == [second.id, first.id]

    def test_pending_scoped_to_institute(self, world, services):
        services.certificates.issue(world.student, world.institute_a, "cid-1")
        assert services.certificates.list_pending_for_institute(world.institute_b) == []
