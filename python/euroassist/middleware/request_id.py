"""X-Request-ID middleware for request correlation and tracing.

This middleware:
- Accepts a well-formed incoming X-Request-ID or generates a UUID4
- Puts request_id, path and method into the logging context
- Echoes the ID in the response header (auth failures included)
- Emits one request_completed access log entry per request

Must be added LAST so it runs FIRST (outermost).
"""

import re
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from euroassist.logging import clear_request_context, get_logger, set_request_context

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

# Alphanumeric plus dots, hyphens, underscores; UUIDs match this too
VALID_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

logger = get_logger(__name__)


def parse_request_id(value: str | None) -> str | None:
    """Return the normalized request ID, or None if the header is unusable.

    UUIDs are canonicalized to lowercase hyphenated form; other IDs are kept as-is.
    """
    if not value or len(value.encode("utf-8")) > MAX_REQUEST_ID_LENGTH:
        return None
    if not VALID_REQUEST_ID_PATTERN.match(value):
        return None
    try:
        return str(uuid.UUID(value)) if len(value) == 36 else value
    except ValueError:
        return value


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware for X-Request-ID handling and access logging.

    Args:
        app: The ASGI application.
        log_requests: If True, log access entries for each request.
    """

    def __init__(self, app, log_requests: bool = True):
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.monotonic()

        request_id = parse_request_id(request.headers.get(REQUEST_ID_HEADER)) or str(uuid.uuid4())
        request.state.request_id = request_id
        set_request_context(request_id, path=request.url.path, method=request.method)

        try:
            response = await call_next(request)

            response.headers[REQUEST_ID_HEADER] = request_id

            if self.log_requests:
                viewer = getattr(request.state, "viewer", None)
                logger.info(
                    "request_completed",
                    status_code=response.status_code,
                    duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                    user_id=str(viewer.user_id) if viewer else None,
                )

            return response

        except Exception:
            # Log and re-raise - unhandled_exception_handler will catch this
            logger.exception("request_failed")
            raise

        finally:
            clear_request_context()
