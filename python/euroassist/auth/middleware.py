"""Authentication middleware for FastAPI.

Provides:
- AuthMiddleware: Global middleware resolving the session cookie on protected paths
- get_viewer: Dependency for accessing authenticated viewer identity
"""

from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from euroassist.auth.sessions import resolve_session
from euroassist.db.session import session_scope
from euroassist.errors import ApiError, ApiErrorCode, UnauthenticatedError
from euroassist.logging import get_logger, set_user_id
from euroassist.responses import error_response

logger = get_logger(__name__)

# Paths that don't require authentication
PUBLIC_PATHS = {
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/logout",
}


@dataclass
class Viewer:
    """Authenticated viewer identity.

    Attributes:
        user_id: The viewer's user ID (from the session row).
    """

    user_id: UUID


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for FastAPI.

    Order of checks:
    1. Skip if public path (or a CORS preflight)
    2. Read the session cookie
    3. Resolve it against the sessions table
    4. Attach Viewer to request state
    """

    def __init__(
        self,
        app: ASGIApp,
        cookie_name: str,
        session_factory: Callable[[], Session] | None = None,
    ):
        """Initialize the auth middleware.

        Args:
            app: The ASGI application.
            cookie_name: Name of the session cookie.
            session_factory: Database session factory. None uses the default factory.
        """
        super().__init__(app)
        self.cookie_name = cookie_name
        self.session_factory = session_factory

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        """Process the request through auth checks."""
        if request.url.path in PUBLIC_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        cookie_value = request.cookies.get(self.cookie_name)
        if not cookie_value:
            logger.info("auth_failure", reason="missing_cookie")
            return self._error_json_response(ApiErrorCode.E_UNAUTHENTICATED, "Unauthorized", 401)

        try:
            user_id = await run_in_threadpool(self._resolve, cookie_value)
        except UnauthenticatedError as e:
            logger.info("auth_failure", reason="invalid_session")
            return self._error_json_response(e.code, "Unauthorized", e.status_code)
        except (ApiError, SQLAlchemyError):
            logger.exception("auth_session_lookup_failed")
            return self._error_json_response(
                ApiErrorCode.E_STORAGE_ERROR, "Storage error", 500
            )

        set_user_id(str(user_id))
        request.state.viewer = Viewer(user_id=user_id)

        return await call_next(request)

    def _resolve(self, cookie_value: str) -> UUID:
        with session_scope(self.session_factory) as db:
            return resolve_session(db, cookie_value)

    def _error_json_response(
        self, code: ApiErrorCode, message: str, status_code: int
    ) -> JSONResponse:
        """Create a JSON error response."""
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, message),
        )


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        UnauthenticatedError: If viewer is not set (middleware didn't run or path is public).
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise UnauthenticatedError()
    return viewer
