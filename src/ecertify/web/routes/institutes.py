"""Institute endpoints."""

from fastapi import APIRouter, Depends, Response, status

from ecertify.core.container import Services
from ecertify.web.deps import services
from ecertify.web.routes.certificates import to_certificate_response
from ecertify.web.routes.students import to_student_response
from ecertify.web.routes.transfers import to_transfer_response
from ecertify.web.schemas import (
    CertificateListResponse,
    InstituteCreate,
    InstituteListResponse,
    InstituteResponse,
    StudentListResponse,
    TransferListResponse,
)

router = APIRouter(prefix="/api/institutes", tags=["institutes"])


@router.get("", response_model=InstituteListResponse)
def list_institutes(svc: Services = Depends(services)) -> InstituteListResponse:
    """List all institutes."""
    institutes = [
        InstituteResponse(**i.to_dict()) for i in svc.directory.list_institutes()
    ]
    return InstituteListResponse(institutes=institutes, count=len(institutes))


@router.post("", response_model=InstituteResponse)
def upsert_institute(
    data: InstituteCreate,
    response: Response,
    svc: Services = Depends(services),
) -> InstituteResponse:
    """Register an institute, or update the name and email of a known one."""
    existed = svc.directory.find_institute_id(data.address) is not None
    institute_id = svc.directory.upsert_institute(data.address, data.name, data.email)
    if not existed:
        response.status_code = status.HTTP_201_CREATED
    return InstituteResponse(**svc.directory.get_institute(institute_id).to_dict())


@router.get("/{address}", response_model=InstituteResponse)
def get_institute(
    address: str, svc: Services = Depends(services)
) -> InstituteResponse:
    """Get an institute by wallet address."""
    return InstituteResponse(**svc.directory.get_institute_by_address(address).to_dict())


@router.get("/{institute_id}/students", response_model=StudentListResponse)
def list_students(
    institute_id: int, svc: Services = Depends(services)
) -> StudentListResponse:
    """Students currently enrolled at an institute."""
    svc.directory.get_institute(institute_id)
    students = [
        to_student_response(s)
        for s in svc.directory.list_students_for_institute(institute_id)
    ]
    return StudentListResponse(students=students, count=len(students))


@router.get(
    "/{institute_id}/certificates/pending", response_model=CertificateListResponse
)
def list_pending_certificates(
    institute_id: int, svc: Services = Depends(services)
) -> CertificateListResponse:
    """Certificates issued by an institute and waiting for approval."""
    svc.directory.get_institute(institute_id)
    certificates = [
        to_certificate_response(svc, c)
        for c in svc.certificates.list_pending_for_institute(institute_id)
    ]
    return CertificateListResponse(certificates=certificates, count=len(certificates))


@router.get("/{institute_id}/transfers/pending", response_model=TransferListResponse)
def list_pending_transfers(
    institute_id: int, svc: Services = Depends(services)
) -> TransferListResponse:
    """Transfer requests waiting on an institute's decision."""
    svc.directory.get_institute(institute_id)
    transfers = [
        to_transfer_response(t)
        for t in svc.transfers.list_pending_for_institute(institute_id)
    ]
    return TransferListResponse(transfers=transfers, count=len(transfers))
