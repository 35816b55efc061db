"""Directory of institutes and students keyed by wallet address.

Lookups are case-insensitive on address. Placeholder records for unknown
addresses are only ever created through the explicit ``provision_*`` calls.
"""

from __future__ import annotations

import structlog

from ecertify.core.addresses import normalize_address, short_address
from ecertify.core.models import Institute, Student
from ecertify.db.directory_repository import DirectoryRepository
from ecertify.errors import NotFoundError

logger = structlog.get_logger(__name__)


class DirectoryService:
    """Registration and lookup of institutes and students."""

    def __init__(self, repository: DirectoryRepository, strict_addresses: bool = False):
        self._repo = repository
        self._strict = strict_addresses

    def normalize(self, address: str) -> str:
        """Normalize an address using this directory's strictness."""
        return normalize_address(address, strict=self._strict)

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def upsert_institute(self, address: str, name: str, email: str) -> int:
        """Register an institute or refresh its display fields.

        Args:
            address: Institute wallet address (any casing)
            name: Display name
            email: Contact email

        Returns:
            The institute id, stable across repeated calls
        """
        institute_id, created = self._repo.upsert_institute(
            self.normalize(address), name, email
        )
        logger.info(
            "institute_registered" if created else "institute_updated",
            institute_id=institute_id,
        )
        return institute_id

    def upsert_student(
        self, address: str, name: str, email: str, institute_id: int | None = None
    ) -> int:
        """Register a student or refresh its display fields.

        Args:
            address: Student wallet address (any casing)
            name: Display name
            email: Contact email
            institute_id: Initial institute, applied only if none is set yet

        Returns:
            The student id, stable across repeated calls

        Raises:
            NotFoundError: If institute_id does not exist
        """
        normalized = self.normalize(address)
        if institute_id is not None:
            self.get_institute(institute_id)

        student_id, created = self._repo.upsert_student(normalized, name, email, institute_id)
        logger.info(
            "student_registered" if created else "student_updated",
            student_id=student_id,
            institute_id=institute_id,
        )
        return student_id

    def provision_institute(self, address: str) -> int:
        """Create a placeholder institute for an unknown address.

        Returns the existing id unchanged if the address is already known.
        """
        normalized = self.normalize(address)
        existing = self._repo.get_institute_by_address(normalized)
        if existing is not None:
            return existing.id

        prefix = short_address(normalized)
        institute_id, _ = self._repo.upsert_institute(
            normalized,
            f"Institute ({prefix}...)",
            f"institute-{prefix}@placeholder.com",
        )
        logger.info("institute_provisioned", institute_id=institute_id)
        return institute_id

    def provision_student(self, address: str) -> int:
        """Create a placeholder student for an unknown address.

        Returns the existing id unchanged if the address is already known.
        """
        normalized = self.normalize(address)
        existing = self._repo.get_student_by_address(normalized)
        if existing is not None:
            return existing.id

        prefix = short_address(normalized)
        student_id, _ = self._repo.upsert_student(
            normalized,
            f"Student ({prefix}...)",
            f"student-{prefix}@placeholder.com",
            None,
        )
        logger.info("student_provisioned", student_id=student_id)
        return student_id

    def link_if_unaffiliated(self, student_id: int, institute_id: int) -> bool:
        """Attach a student with no institute to ``institute_id``.

        A student waiting on a transfer request is not linked.

        Returns:
            True if the student was linked
        """
        self.get_student(student_id)
        if not self._repo.link_unaffiliated(student_id, institute_id):
            return False

        logger.info("student_linked", student_id=student_id, institute_id=institute_id)
        return True

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def find_institute_id(self, address: str) -> int | None:
        institute = self._repo.get_institute_by_address(self.normalize(address))
        return institute.id if institute is not None else None

    def find_student_id(self, address: str) -> int | None:
        student = self._repo.get_student_by_address(self.normalize(address))
        return student.id if student is not None else None

    def require_institute_id(self, address: str) -> int:
        """Resolve an institute address or raise NotFoundError."""
        institute_id = self.find_institute_id(address)
        if institute_id is None:
            raise NotFoundError("Institute", address)
        return institute_id

    def require_student_id(self, address: str) -> int:
        """Resolve a student address or raise NotFoundError."""
        student_id = self.find_student_id(address)
        if student_id is None:
            raise NotFoundError("Student", address)
        return student_id

    def get_institute(self, institute_id: int) -> Institute:
        institute = self._repo.get_institute(institute_id)
        if institute is None:
            raise NotFoundError("Institute", institute_id)
        return institute

    def get_student(self, student_id: int) -> Student:
        student = self._repo.get_student(student_id)
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    def get_institute_by_address(self, address: str) -> Institute:
        institute = self._repo.get_institute_by_address(self.normalize(address))
        if institute is None:
            raise NotFoundError("Institute", address)
        return institute

    def get_student_by_address(self, address: str) -> Student:
        student = self._repo.get_student_by_address(self.normalize(address))
        if student is None:
            raise NotFoundError("Student", address)
        return student

    def list_institutes(self) -> list[Institute]:
        return self._repo.list_institutes()

    def list_students_for_institute(self, institute_id: int) -> list[Student]:
        """Students currently affiliated with an institute."""
        self.get_institute(institute_id)
        return self._repo.list_students_for_institute(institute_id)
