"""Error response helpers and exception handlers.

Success responses are plain JSON documents (a user, a chat, a list of chats...).
Errors share one shape:
- { "message": "...", "code": "E_...", "requestId": "..." }
- validation failures additionally carry "errors": [{ "path": [...], "message": "..." }]

The requestId is included in error responses for debugging and support.
"""

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from euroassist.errors import ApiError, ApiErrorCode
from euroassist.logging import get_logger, get_request_id

logger = get_logger(__name__)


def error_response(
    code: ApiErrorCode,
    message: str,
    request_id: str | None = None,
    errors: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Create an error response body.

    Args:
        code: The error code enum value.
        message: Human-readable error message.
        request_id: Optional request ID for correlation (auto-populated from context if None).
        errors: Optional field-level validation problems.

    Returns:
        Dict with message, code, and (when known) requestId.
    """
    # Get request_id from context if not explicitly provided
    if request_id is None:
        request_id = get_request_id()

    body: dict[str, Any] = {"message": message, "code": code.value}
    if request_id:
        body["requestId"] = request_id
    if errors:
        body["errors"] = errors

    return body


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Handle ApiError exceptions and return proper JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, errors=exc.errors),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render pydantic/FastAPI validation failures as 400 with per-field details."""
    errors = [
        {
            "path": [str(part) for part in err.get("loc", ()) if part != "body"],
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    message = "Invalid request data"
    if len(errors) == 1:
        message = errors[0]["message"]
    return JSONResponse(
        status_code=400,
        content=error_response(ApiErrorCode.E_INVALID_REQUEST, message, errors=errors),
    )


async def http_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle FastAPI HTTPException and return proper JSON response."""
    # Map common HTTP status codes to our error codes
    status_to_code = {
        400: ApiErrorCode.E_INVALID_REQUEST,
        401: ApiErrorCode.E_UNAUTHENTICATED,
        403: ApiErrorCode.E_FORBIDDEN,
        404: ApiErrorCode.E_NOT_FOUND,
        405: ApiErrorCode.E_INVALID_REQUEST,
        422: ApiErrorCode.E_INVALID_REQUEST,
    }
    code = status_to_code.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    message = str(exc.detail) if exc.detail else "An error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, message),
        headers=getattr(exc, "headers", None),
    )


async def storage_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle database failures that escaped the service layer.

    The driver message is logged but never returned to the client.
    """
    logger.error("storage.error", error_type=type(exc).__name__, exc_info=exc)

    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_STORAGE_ERROR, "Storage error"),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions and return 500 with E_INTERNAL.

    Logs the exception server-side but never leaks details to client.
    """
    logger.exception("Unhandled exception: %s", exc)

    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
    )
