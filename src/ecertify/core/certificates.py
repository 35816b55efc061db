"""Certificate issuance and approval.

A certificate is created unapproved and can only move to approved, once.
Every committed mutation is published on the change feed.
"""

from __future__ import annotations

import structlog

from ecertify.core.content_store import ContentStore
from ecertify.core.directory import DirectoryService
from ecertify.core.models import Certificate
from ecertify.core.notifications import CERTIFICATES, ChangeFeed, ChangeOperation
from ecertify.db.certificates_repository import CertificateRepository
from ecertify.errors import NotFoundError, UnauthorizedError, ValidationError

logger = structlog.get_logger(__name__)


class CertificateService:
    """Issue, approve and list certificates."""

    def __init__(
        self,
        repository: CertificateRepository,
        directory: DirectoryService,
        content_store: ContentStore,
        feed: ChangeFeed,
    ):
        self._repo = repository
        self._directory = directory
        self._content = content_store
        self._feed = feed

    def issue(self, student_id: int, institute_id: int, content_id: str) -> Certificate:
        """Create an unapproved certificate.

        Re-issuing the same content for the same student creates a new row.

        Args:
            student_id: Owning student
            institute_id: Issuing institute
            content_id: Content store reference

        Returns:
            The new Certificate with approved=False

        Raises:
            NotFoundError: If the student or institute does not exist
            ValidationError: If content_id is empty
        """
        if not content_id or not content_id.strip():
            raise ValidationError("Content id must not be empty")

        self._directory.get_student(student_id)
        self._directory.get_institute(institute_id)

        certificate = self._repo.insert(student_id, institute_id, content_id.strip())
        self._feed.emit(CERTIFICATES, ChangeOperation.INSERT, certificate.to_dict())

        logger.info(
            "certificate_issued",
            certificate_id=certificate.id,
            student_id=student_id,
            institute_id=institute_id,
        )
        return certificate

    def upload(
        self,
        institute_address: str,
        student_address: str,
        data: bytes,
        file_name: str,
        file_type: str | None = None,
        auto_provision: bool = False,
    ) -> Certificate:
        """Store a certificate file and issue it.

        Args:
            institute_address: Wallet address of the issuing institute
            student_address: Wallet address of the student
            data: Certificate file bytes
            file_name: Original file name
            file_type: MIME type
            auto_provision: Create placeholder records for unknown addresses

        Returns:
            The new Certificate

        Raises:
            NotFoundError: If an address is unknown and auto_provision is off
        """
        if auto_provision:
            institute_id = self._directory.provision_institute(institute_address)
            student_id = self._directory.provision_student(student_address)
        else:
            institute_id = self._directory.require_institute_id(institute_address)
            student_id = self._directory.require_student_id(student_address)

        content_id = self._content.put(data, file_name, file_type)
        self._directory.link_if_unaffiliated(student_id, institute_id)

        return self.issue(student_id, institute_id, content_id)

    def approve(
        self, certificate_id: int, approver_institute_id: int | None = None
    ) -> Certificate:
        """Mark a certificate approved.

        Approving an already approved certificate returns it unchanged.

        Args:
            certificate_id: Certificate to approve
            approver_institute_id: Acting institute; must be the issuer if given

        Returns:
            The approved Certificate

        Raises:
            NotFoundError: If the certificate does not exist
            UnauthorizedError: If the approver is not the issuing institute
        """
        certificate = self.get(certificate_id)

        if (
            approver_institute_id is not None
            and approver_institute_id != certificate.institute_id
        ):
            raise UnauthorizedError(
                f"Institute {approver_institute_id} did not issue certificate {certificate_id}",
                extra={"certificate_id": certificate_id},
            )

        if certificate.approved:
            logger.debug("certificate_already_approved", certificate_id=certificate_id)
            return certificate

        if self._repo.mark_approved(certificate_id):
            certificate.approved = True
            self._feed.emit(CERTIFICATES, ChangeOperation.UPDATE, certificate.to_dict())
            logger.info(
                "certificate_approved",
                certificate_id=certificate_id,
                institute_id=certificate.institute_id,
            )
            return certificate

        # Approved concurrently between the read and the write
        return self.get(certificate_id)

    def get(self, certificate_id: int) -> Certificate:
        certificate = self._repo.get(certificate_id)
        if certificate is None:
            raise NotFoundError("Certificate", certificate_id)
        return certificate

    def list_for_student(self, student_id: int) -> list[Certificate]:
        """All certificates of a student, newest first."""
        return self._repo.list_for_student(student_id)

    def list_pending_for_institute(self, institute_id: int) -> list[Certificate]:
        """Unapproved certificates issued by an institute."""
        return self._repo.list_pending_for_institute(institute_id)

    def content_url(self, certificate: Certificate) -> str:
        """Gateway URL of the certificate's file."""
        return self._content.gateway_url(certificate.content_id)
