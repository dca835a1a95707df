from dataclasses import dataclass
from typing import Any

from fastapi import status


class AppError(Exception):
    code: str = "APP_ERROR"
    message: str = "Application error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    details: Any | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: Any | None = None,
    ):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        if details is not None:
            self.details = details

        super().__init__(self.message)


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    message = "Validation error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    code = "NOT_FOUND"
    message = "Resource not found"
    status_code = status.HTTP_404_NOT_FOUND


class AuthError(AppError):
    code = "AUTH_ERROR"
    message = "Authentication failed"
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDeniedError(AppError):
    code = "PERMISSION_DENIED"
    message = "Insufficient permissions"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidTransitionError(AppError):
    code = "INVALID_TRANSITION"
    message = "Transition not allowed from the current state"
    status_code = status.HTTP_409_CONFLICT


class ReasonRequiredError(AppError):
    code = "REASON_REQUIRED"
    message = "A non-empty reason is required"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ImmutableRoleError(AppError):
    code = "IMMUTABLE_ROLE"
    message = "System roles cannot be modified"
    status_code = status.HTTP_409_CONFLICT


class ConcurrentModificationError(AppError):
    code = "CONCURRENT_MODIFICATION"
    message = "Entity was modified concurrently"
    status_code = status.HTTP_409_CONFLICT


class ConflictError(AppError):
    code = "CONFLICT_ERROR"
    message = "Resource conflict"
    status_code = status.HTTP_409_CONFLICT


class InternalError(AppError):
    code = "INTERNAL_ERROR"
    message = "Internal server error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


@dataclass(frozen=True)
class AuditWriteFailed:
    """Warning returned next to a committed mutation whose audit append failed.

    Never raised: the mutation is already persisted when this is produced.
    """

    audit_entry_id: str
    action: str
    target_id: str
    message: str
    code: str = "AUDIT_WRITE_FAILED"

    def as_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": {
                "auditEntryId": self.audit_entry_id,
                "action": self.action,
                "targetId": self.target_id,
            },
        }


ERROR_CODE_BY_STATUS: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: ValidationError.code,
    status.HTTP_401_UNAUTHORIZED: AuthError.code,
    status.HTTP_403_FORBIDDEN: PermissionDeniedError.code,
    status.HTTP_404_NOT_FOUND: NotFoundError.code,
    status.HTTP_409_CONFLICT: ConflictError.code,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ValidationError.code,
}


def error_payload(
    code: str,
    message: str,
    details: Any | None = None,
) -> dict[str, Any]:
    return {"error": {"code": code, "message": message, "details": details}}


def resolve_error_code(status_code: int) -> str:
    if status_code in ERROR_CODE_BY_STATUS:
        return ERROR_CODE_BY_STATUS[status_code]
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return InternalError.code
    return "UNKNOWN_ERROR"
