from typing import Dict, List, Optional


class TaskAPIError(Exception):
    """Base class for every failure the service reports to a caller."""

    kind = "internal_failure"
    status_code = 500
    default_message = "Internal server error"
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict:
        return {"success": False, "kind": self.kind, "message": self.message}


class CredentialRequired(TaskAPIError):
    kind = "credential_required"
    status_code = 401
    default_message = "Access token required"
    headers = {"WWW-Authenticate": "Bearer"}


class CredentialRejected(TaskAPIError):
    kind = "credential_rejected"
    status_code = 403
    default_message = "Invalid or expired token"


class InvalidCredentials(TaskAPIError):
    kind = "invalid_credentials"
    status_code = 401
    default_message = "Invalid credentials"
    headers = {"WWW-Authenticate": "Bearer"}


class EmailInUse(TaskAPIError):
    kind = "email_in_use"
    status_code = 409
    default_message = "Email is already in use"


class EmailInUseByOther(TaskAPIError):
    kind = "email_in_use_by_other"
    status_code = 409
    default_message = "Email is already in use by another user"


class NotFound(TaskAPIError):
    kind = "not_found"
    status_code = 404
    default_message = "Resource not found"


class AccessDenied(TaskAPIError):
    kind = "access_denied"
    status_code = 403
    default_message = "Access denied to this task"


class ValidationFailed(TaskAPIError):
    kind = "validation_failed"
    status_code = 400
    default_message = "Invalid data"

    def __init__(self, errors: List[Dict[str, str]], message: Optional[str] = None):
        super().__init__(message)
        self.errors = errors

    def to_dict(self) -> Dict:
        payload = super().to_dict()
        payload["errors"] = self.errors
        return payload


class RateLimited(TaskAPIError):
    kind = "rate_limited"
    status_code = 429
    default_message = "Too many requests. Try again later."


class InternalFailure(TaskAPIError):
    pass
