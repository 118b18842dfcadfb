"""
Error taxonomy for tenant isolation, authorization and validation failures.

Every error carries the HTTP status and machine code the API boundary renders;
services raise them and never build HTTP responses themselves.
"""

from __future__ import annotations

from typing import Any, Optional


class TenancyError(Exception):
    """Base class for all tenancy-core errors."""

    status_code: int = 400
    code: str = "TENANCY_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "status": self.status_code}


class MissingTenantError(TenancyError):
    """A tenant-scoped record was created with no active account."""

    status_code = 422
    code = "MISSING_TENANT"

    def __init__(self, model_name: str):
        super().__init__(f"{model_name} requires an active account")
        self.model_name = model_name


class NotFoundError(TenancyError):
    """Record absent or outside the active tenant. The two are indistinguishable."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, model_name: str):
        super().__init__(f"{model_name} not found")
        self.model_name = model_name


class AuthorizationDeniedError(TenancyError):
    status_code = 403
    code = "NOT_AUTHORIZED"

    def __init__(self, message: str = "You are not authorized to perform this action."):
        super().__init__(message)


class RecordInvalid(TenancyError):
    """A uniqueness, format or cross-entity consistency check failed."""

    status_code = 422
    code = "VALIDATION_FAILED"

    def __init__(self, field: str, message: str):
        super().__init__(f"{field} {message}")
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["field"] = self.field
        return body


class SlugExhaustedError(TenancyError):
    status_code = 500
    code = "SLUG_EXHAUSTED"

    def __init__(self, base: str, attempts: int):
        super().__init__(f"Could not allocate a unique slug for '{base}' after {attempts} attempts")
        self.base = base
        self.attempts = attempts


class AuditWriteError(TenancyError):
    """An audit entry could not be persisted. ``entry`` holds what was lost."""

    status_code = 500
    code = "AUDIT_WRITE_FAILED"

    def __init__(self, entry: dict[str, Any], cause: Optional[BaseException] = None):
        super().__init__(f"Failed to record audit event '{entry.get('action')}'")
        self.entry = entry
        self.__cause__ = cause


class StaleRecordError(TenancyError):
    """Optimistic-concurrency conflict; the caller should reload and retry."""

    status_code = 409
    code = "STALE_RECORD"

    def __init__(self, model_name: str):
        super().__init__(f"{model_name} was modified by another request; reload and retry")
        self.model_name = model_name


class InvalidTransitionError(TenancyError):
    status_code = 409
    code = "INVALID_TRANSITION"
