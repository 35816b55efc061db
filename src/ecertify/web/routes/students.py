"""Student endpoints."""

from fastapi import APIRouter, Depends, Response, status

from ecertify.core.container import Services
from ecertify.core.models import Student
from ecertify.web.deps import services
from ecertify.web.routes.certificates import to_certificate_response
from ecertify.web.routes.transfers import to_transfer_response
from ecertify.web.schemas import (
    CertificateListResponse,
    StudentCreate,
    StudentResponse,
    TransferListResponse,
)

router = APIRouter(prefix="/api/students", tags=["students"])


def to_student_response(student: Student) -> StudentResponse:
    return StudentResponse(**student.to_dict())


@router.post("", response_model=StudentResponse)
def upsert_student(
    data: StudentCreate,
    response: Response,
    svc: Services = Depends(services),
) -> StudentResponse:
    """Register a student, optionally enrolled at an institute.

    An existing student keeps its current institute; the given one is only
    applied when the student has none yet.
    """
    institute_id = None
    if data.institute_address:
        institute_id = svc.directory.require_institute_id(data.institute_address)

    existed = svc.directory.find_student_id(data.address) is not None
    student_id = svc.directory.upsert_student(
        data.address, data.name, data.email, institute_id
    )
    if not existed:
        response.status_code = status.HTTP_201_CREATED
    return to_student_response(svc.directory.get_student(student_id))


@router.get("/{address}", response_model=StudentResponse)
def get_student(address: str, svc: Services = Depends(services)) -> StudentResponse:
    """Get a student by wallet address."""
    return to_student_response(svc.directory.get_student_by_address(address))


@router.get("/{student_id}/certificates", response_model=CertificateListResponse)
def list_certificates(
    student_id: int, svc: Services = Depends(services)
) -> CertificateListResponse:
    """All certificates of a student, newest first."""
    svc.directory.get_student(student_id)
    certificates = [
        to_certificate_response(svc, c)
        for c in svc.certificates.list_for_student(student_id)
    ]
    return CertificateListResponse(certificates=certificates, count=len(certificates))


@router.get("/{student_id}/transfers", response_model=TransferListResponse)
def list_transfers(
    student_id: int, svc: Services = Depends(services)
) -> TransferListResponse:
    """Transfer requests made by a student."""
    svc.directory.get_student(student_id)
    transfers = [to_transfer_response(t) for t in svc.transfers.list_for_student(student_id)]
    return TransferListResponse(transfers=transfers, count=len(transfers))
