from __future__ import annotations
from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base for caller-visible failures: stable `reason` code plus a human message."""

    reason = "service_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.reason, "message": self.message}


class ValidationError(ServiceError, ValueError):
    reason = "validation_error"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, reason: Optional[str] = None):
        super().__init__(message, reason=reason)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.field:
            body["field"] = self.field
        return body


class NotFoundError(ServiceError, LookupError):
    reason = "not_found"
    status_code = 404


class PersistenceFailure(ServiceError):
    reason = "persistence_unavailable"
    status_code = 503
    retryable = True
