"""Institute transfer endpoints."""

from fastapi import APIRouter, Depends, status

from ecertify.core.container import Services
from ecertify.core.models import TransferRequest
from ecertify.web.deps import actor_address, services
from ecertify.web.schemas import (
    TransferApproveRequest,
    TransferCreate,
    TransferResponse,
)

router = APIRouter(prefix="/api/transfers", tags=["transfers"])


def to_transfer_response(request: TransferRequest) -> TransferResponse:
    return TransferResponse(**request.to_dict())


@router.post("", response_model=TransferResponse, status_code=status.HTTP_201_CREATED)
def request_transfer(
    data: TransferCreate,
    actor: str = Depends(actor_address),
    svc: Services = Depends(services),
) -> TransferResponse:
    """Ask to move the acting student from its current institute."""
    student = svc.directory.get_student_by_address(actor)
    to_institute_id = svc.directory.require_institute_id(data.to_institute_address)
    request = svc.transfers.request(
        student.id, student.current_institute_id, to_institute_id
    )
    return to_transfer_response(request)


@router.get("/{request_id}", response_model=TransferResponse)
def get_transfer(request_id: int, svc: Services = Depends(services)) -> TransferResponse:
    """Get a transfer request by ID."""
    return to_transfer_response(svc.transfers.get(request_id))


@router.post("/{request_id}/approve", response_model=TransferResponse)
def approve_transfer(
    request_id: int,
    data: TransferApproveRequest,
    actor: str = Depends(actor_address),
    svc: Services = Depends(services),
) -> TransferResponse:
    """Approve a request as the destination institute."""
    institute_id = svc.directory.require_institute_id(actor)
    request = svc.transfers.approve(request_id, data.student_id, institute_id)
    return to_transfer_response(request)


@router.post("/{request_id}/decline", response_model=TransferResponse)
def decline_transfer(
    request_id: int,
    actor: str = Depends(actor_address),
    svc: Services = Depends(services),
) -> TransferResponse:
    """Decline a request as the destination institute."""
    institute_id = svc.directory.require_institute_id(actor)
    return to_transfer_response(svc.transfers.decline(request_id, institute_id))
