"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
"""

from enum import Enum
from typing import Any


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"
    E_INVALID_CREDENTIALS = "E_INVALID_CREDENTIALS"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_CHAT_NOT_FOUND = "E_CHAT_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_MESSAGE_EMPTY = "E_MESSAGE_EMPTY"
    E_MESSAGE_TOO_LONG = "E_MESSAGE_TOO_LONG"
    E_EMAIL_TAKEN = "E_EMAIL_TAKEN"
    E_CONSTRAINT_VIOLATION = "E_CONSTRAINT_VIOLATION"

    # Forbidden (403)
    E_FORBIDDEN = "E_FORBIDDEN"

    # Server errors
    E_INTERNAL = "E_INTERNAL"  # 500
    E_STORAGE_ERROR = "E_STORAGE_ERROR"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_INVALID_CREDENTIALS: 401,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_CHAT_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_MESSAGE_EMPTY: 400,
    ApiErrorCode.E_MESSAGE_TOO_LONG: 400,
    ApiErrorCode.E_EMAIL_TAKEN: 400,
    ApiErrorCode.E_CONSTRAINT_VIOLATION: 400,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_INTERNAL: 500,
    ApiErrorCode.E_STORAGE_ERROR: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
        errors: Optional list of field-level problems (validation errors only)
    """

    def __init__(
        self,
        code: ApiErrorCode,
        message: str,
        errors: list[dict[str, Any]] | None = None,
    ):
        self.code = code
        self.message = message
        self.errors = errors
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found (or not owned by the viewer)."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class UnauthenticatedError(ApiError):
    """Missing, invalid or expired session."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_UNAUTHENTICATED, message: str = "Unauthorized"
    ):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST,
        message: str = "Invalid request",
        errors: list[dict[str, Any]] | None = None,
    ):
        super().__init__(code, message, errors)


class ConstraintViolationError(ApiError):
    """A write was rejected by a uniqueness or integrity constraint."""

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_CONSTRAINT_VIOLATION,
        message: str = "Constraint violation",
    ):
        super().__init__(code, message)


class StorageError(ApiError):
    """The database was unreachable or rejected a statement unexpectedly."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_STORAGE_ERROR, message: str = "Storage error"
    ):
        super().__init__(code, message)
