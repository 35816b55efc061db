"""Domain records shared by repositories, services and the web layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

# =============================================================================
# TIME HELPERS
# =============================================================================


def utc_now() -> datetime:
    """Current time, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def to_timestamp(value: datetime) -> str:
    """Serialize a datetime as ISO-8601 UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse a stored ISO-8601 timestamp (naive values are UTC)."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# RECORDS
# =============================================================================


class TransferStatus(str, Enum):
    """Lifecycle of an institute transfer request."""

    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


@dataclass
class Institute:
    """Institute record from database."""

    id: int
    address: str
    name: str
    email: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Student:
    """Student record from database."""

    id: int
    address: str
    name: str
    email: str
    current_institute_id: int | None
    pending_institute_id: int | None
    created_at: str

    @property
    def has_pending_transfer(self) -> bool:
        return self.pending_institute_id is not None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Certificate:
    """Certificate record from database."""

    id: int
    student_id: int
    institute_id: int
    content_id: str
    approved: bool
    issued_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AccessGrant:
    """Time-bounded viewer permission over a certificate."""

    id: int
    certificate_id: int
    viewer_address: str
    granted_by_student_id: int
    expires_at: str
    created_at: str

    def is_active(self, now: datetime | None = None) -> bool:
        """True while ``now`` has not passed the expiry."""
        now = now or utc_now()
        return now <= parse_timestamp(self.expires_at)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AccessLog:
    """One successful read of certificate content."""

    id: int
    certificate_id: int
    viewer_address: str
    accessed_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TransferRequest:
    """A student's proposal to move to another institute."""

    id: int
    student_id: int
    from_institute_id: int | None
    to_institute_id: int
    status: TransferStatus
    created_at: str
    updated_at: str

    @property
    def is_pending(self) -> bool:
        return self.status is TransferStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["status"] = self.status.value
        return result
