"""Business-rule failures raised by the services and rendered by the core blueprint."""
from __future__ import annotations
from typing import Any


class ServiceError(Exception):
    status = 400
    default_code = "ERROR"

    def __init__(self, message: str, *, code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationFailure(ServiceError):
    """Malformed or missing input. ``details["field"]`` names the offending field."""
    status = 400
    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: str | None = None, code: str | None = None,
                 details: dict[str, Any] | None = None):
        details = dict(details or {})
        if field is not None:
            details.setdefault("field", field)
        super().__init__(message, code=code, details=details)
        self.field = field


class NotFound(ServiceError):
    status = 404
    default_code = "NOT_FOUND"


class Forbidden(ServiceError):
    status = 403
    default_code = "FORBIDDEN"


class ConflictFailure(ServiceError):
    status = 409
    default_code = "CONFLICT"


class ExpiredFailure(ServiceError):
    status = 410
    default_code = "SESSION_EXPIRED"
