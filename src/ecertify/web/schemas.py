"""Pydantic schemas for Web API.

Serialization models for institutes, students, certificates, access
grants, transfer requests and health.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field


# =============================================================================
# INSTITUTE SCHEMAS
# =============================================================================


class InstituteCreate(BaseModel):
    """Request body for registering an institute."""

    address: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(default="", max_length=200)


class InstituteResponse(BaseModel):
    """Response for an institute."""

    id: int
    address: str
    name: str
    email: str
    created_at: str


class InstituteListResponse(BaseModel):
    """Response for list of institutes."""

    institutes: list[InstituteResponse]
    count: int


# =============================================================================
# STUDENT SCHEMAS
# =============================================================================


class StudentCreate(BaseModel):
    """Request body for registering a student."""

    address: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(default="", max_length=200)
    institute_address: str | None = Field(default=None, max_length=100)


class StudentResponse(BaseModel):
    """Response for a student."""

    id: int
    address: str
    name: str
    email: str
    current_institute_id: int | None = None
    pending_institute_id: int | None = None
    created_at: str


class StudentListResponse(BaseModel):
    """Response for list of students."""

    students: list[StudentResponse]
    count: int


# =============================================================================
# CERTIFICATE SCHEMAS
# =============================================================================


class CertificateIssueRequest(BaseModel):
    """Issue a certificate for already-stored content."""

    student_id: int
    institute_id: int
    content_id: str = Field(..., min_length=1, max_length=200)


class CertificateUploadRequest(BaseModel):
    """Upload a certificate file on behalf of the acting institute."""

    student_address: str = Field(..., min_length=1, max_length=100)
    file_name: str = Field(..., min_length=1, max_length=255)
    file_type: str | None = None
    content_base64: str = Field(..., min_length=1)
    auto_provision: bool = False


class CertificateResponse(BaseModel):
    """Response for a certificate."""

    id: int
    student_id: int
    institute_id: int
    content_id: str
    approved: bool
    issued_at: str
    content_url: str = ""


class CertificateListResponse(BaseModel):
    """Response for list of certificates."""

    certificates: list[CertificateResponse]
    count: int


# =============================================================================
# ACCESS SCHEMAS
# =============================================================================


class AccessGrantRequest(BaseModel):
    """Grant a viewer time-bounded access."""

    viewer_address: str = Field(..., min_length=1, max_length=100)
    duration_hours: int | None = Field(default=None, ge=1)


class AccessGrantResponse(BaseModel):
    """Response for an access grant."""

    id: int
    certificate_id: int
    viewer_address: str
    granted_by_student_id: int
    expires_at: str
    created_at: str
    active: bool = True


class AccessGrantListResponse(BaseModel):
    """Response for list of access grants."""

    grants: list[AccessGrantResponse]
    count: int


class AccessLogResponse(BaseModel):
    """Response for an access log entry."""

    id: int
    certificate_id: int
    viewer_address: str
    accessed_at: str


class AccessLogListResponse(BaseModel):
    """Response for list of access logs."""

    logs: list[AccessLogResponse]
    count: int


# =============================================================================
# TRANSFER SCHEMAS
# =============================================================================


class TransferCreate(BaseModel):
    """Request by the acting student to move to another institute."""

    to_institute_address: str = Field(..., min_length=1, max_length=100)


class TransferApproveRequest(BaseModel):
    """Approval by the destination institute."""

    student_id: int


class TransferResponse(BaseModel):
    """Response for a transfer request."""

    id: int
    student_id: int
    from_institute_id: int | None = None
    to_institute_id: int
    status: str  # pending | approved | declined
    created_at: str
    updated_at: str


class TransferListResponse(BaseModel):
    """Response for list of transfer requests."""

    transfers: list[TransferResponse]
    count: int


# =============================================================================
# HEALTH SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
