"""Certificate and access grant endpoints."""

import base64
import binascii

from fastapi import APIRouter, Depends, Response, status

from ecertify.core.container import Services
from ecertify.core.models import AccessGrant, Certificate
from ecertify.errors import ValidationError
from ecertify.web.deps import actor_address, services
from ecertify.web.schemas import (
    AccessGrantListResponse,
    AccessGrantRequest,
    AccessGrantResponse,
    AccessLogListResponse,
    AccessLogResponse,
    CertificateIssueRequest,
    CertificateResponse,
    CertificateUploadRequest,
)

router = APIRouter(prefix="/api/certificates", tags=["certificates"])


def to_certificate_response(svc: Services, certificate: Certificate) -> CertificateResponse:
    return CertificateResponse(
        **certificate.to_dict(),
        content_url=svc.certificates.content_url(certificate),
    )


def to_grant_response(grant: AccessGrant) -> AccessGrantResponse:
    return AccessGrantResponse(**grant.to_dict(), active=grant.is_active())


@router.post("", response_model=CertificateResponse, status_code=status.HTTP_201_CREATED)
def issue_certificate(
    data: CertificateIssueRequest, svc: Services = Depends(services)
) -> CertificateResponse:
    """Issue a certificate for content that is already stored."""
    certificate = svc.certificates.issue(data.student_id, data.institute_id, data.content_id)
    return to_certificate_response(svc, certificate)


@router.post(
    "/upload", response_model=CertificateResponse, status_code=status.HTTP_201_CREATED
)
def upload_certificate(
    data: CertificateUploadRequest,
    actor: str = Depends(actor_address),
    svc: Services = Depends(services),
) -> CertificateResponse:
    """Upload a certificate file as the acting institute."""
    try:
        payload = base64.b64decode(data.content_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"content_base64 is not valid base64: {e}") from e

    certificate = svc.certificates.upload(
        institute_address=actor,
        student_address=data.student_address,
        data=payload,
        file_name=data.file_name,
        file_type=data.file_type,
        auto_provision=data.auto_provision,
    )
    return to_certificate_response(svc, certificate)


@router.get("/{certificate_id}", response_model=CertificateResponse)
def get_certificate(
    certificate_id: int, svc: Services = Depends(services)
) -> CertificateResponse:
    """Get a certificate by ID."""
    return to_certificate_response(svc, svc.certificates.get(certificate_id))


@router.post("/{certificate_id}/approve", response_model=CertificateResponse)
def approve_certificate(
    certificate_id: int,
    actor: str = Depends(actor_address),
    svc: Services = Depends(services),
) -> CertificateResponse:
    """Approve a certificate as its issuing institute."""
    institute_id = svc.directory.require_institute_id(actor)
    certificate = svc.certificates.approve(certificate_id, institute_id)
    return to_certificate_response(svc, certificate)


@router.get("/{certificate_id}/content")
def get_certificate_content(
    certificate_id: int,
    actor: str = Depends(actor_address),
    svc: Services = Depends(services),
) -> Response:
    """Download a certificate file as the acting viewer.

    Every successful read is recorded in the access log.
    """
    data = svc.access.open_certificate(certificate_id, actor)
    info = svc.content_store.info(svc.certificates.get(certificate_id).content_id)
    media_type = (info.file_type if info else None) or "application/octet-stream"
    headers = {}
    if info and info.file_name:
        headers["Content-Disposition"] = f'inline; filename="{info.file_name}"'
    return Response(content=data, media_type=media_type, headers=headers)


@router.post(
    "/{certificate_id}/grants",
    response_model=AccessGrantResponse,
    status_code=status.HTTP_201_CREATED,
)
def grant_access(
    certificate_id: int,
    data: AccessGrantRequest,
    actor: str = Depends(actor_address),
    svc: Services = Depends(services),
) -> AccessGrantResponse:
    """Grant a viewer time-bounded access as the owning student."""
    student_id = svc.directory.require_student_id(actor)
    duration = (
        data.duration_hours
        if data.duration_hours is not None
        else svc.config.access.default_duration_hours
    )
    grant = svc.access.grant(certificate_id, data.viewer_address, student_id, duration)
    return to_grant_response(grant)


@router.get("/{certificate_id}/grants", response_model=AccessGrantListResponse)
def list_grants(
    certificate_id: int, svc: Services = Depends(services)
) -> AccessGrantListResponse:
    """All grants on a certificate."""
    grants = [to_grant_response(g) for g in svc.access.list_grants(certificate_id)]
    return AccessGrantListResponse(grants=grants, count=len(grants))


@router.get("/{certificate_id}/access-logs", response_model=AccessLogListResponse)
def list_access_logs(
    certificate_id: int, svc: Services = Depends(services)
) -> AccessLogListResponse:
    """Access log of a certificate, newest first."""
    logs = [
        AccessLogResponse(**entry.to_dict())
        for entry in svc.access.list_access_logs(certificate_id)
    ]
    return AccessLogListResponse(logs=logs, count=len(logs))
