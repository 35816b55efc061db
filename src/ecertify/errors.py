"""Error taxonomy shared by stores, workflows, the web API and the CLI.

Every failure surfaced to a caller carries a stable ``code`` and a human
``message``. ``status`` is the HTTP status the web layer answers with.
"""

from __future__ import annotations

from typing import Any


class ECertifyError(Exception):
    """Base class for all E-Certify failures."""

    code = "ERROR"
    status = 500

    def __init__(self, message: str, *, extra: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to the error envelope used by the web API."""
        result: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.extra:
            result["extra"] = self.extra
        return result


class NotFoundError(ECertifyError):
    """Referenced id or address is absent."""

    code = "NOT_FOUND"
    status = 404

    def __init__(self, entity: str, key: Any):
        self.entity = entity
        self.key = key
        super().__init__(
            f"{entity} not found: {key}",
            extra={"entity": entity, "key": str(key)},
        )


class InvalidStateError(ECertifyError):
    """Operation violates the entity's current state."""

    code = "INVALID_STATE"
    status = 409


class UnauthorizedError(ECertifyError):
    """Actor lacks rights over the entity."""

    code = "UNAUTHORIZED"
    status = 403


class ValidationError(ECertifyError):
    """Malformed input."""

    code = "VALIDATION_ERROR"
    status = 422


class TransientStoreError(ECertifyError):
    """Store failure that may succeed when retried."""

    code = "STORE_UNAVAILABLE"
    status = 503

    def __init__(self, operation: str, cause: Exception | str):
        self.operation = operation
        super().__init__(
            f"Store unavailable during {operation}: {cause}",
            extra={"operation": operation},
        )
