"""Authentication API routes.

- GET  /api/auth/user      current user (requires session)
- POST /api/auth/login     email + password → session cookie
- POST /api/auth/register  create account → session cookie
- POST /api/auth/logout    revoke session, clear cookie

The session cookie is HttpOnly, SameSite=Lax, and Secure outside local/test.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from euroassist.api.deps import get_db
from euroassist.auth import accounts, sessions
from euroassist.auth.middleware import Viewer, get_viewer
from euroassist.config import get_settings
from euroassist.errors import UnauthenticatedError
from euroassist.schemas.user import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserOut,
)
from euroassist.services import users as users_service

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _set_session_cookie(response: Response, cookie_value: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=cookie_value,
        max_age=settings.session_ttl_s,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        path="/",
    )


@router.get("/user")
def get_current_user(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Return the authenticated user.

    Errors:
        E_UNAUTHENTICATED (401): No session, or the user row is gone.
    """
    user = users_service.get_user(db, viewer.user_id)
    if user is None:
        raise UnauthenticatedError()
    return users_service.user_to_out(user).to_json()


@router.post("/login")
def login(
    body: LoginRequest,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Log in with email and password.

    Errors:
        E_INVALID_CREDENTIALS (401): Unknown email or wrong password (same message).
    """
    user = accounts.authenticate(db, body.email, body.password)
    _set_session_cookie(response, sessions.create_session(db, user.id))
    return AuthResponse(
        message="Login successful", user=users_service.user_to_out(user)
    ).to_json()


@router.post("/register")
def register(
    body: RegisterRequest,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create an account and log in.

    Errors:
        E_EMAIL_TAKEN (400): "User already exists".
    """
    user = accounts.register(
        db,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    _set_session_cookie(response, sessions.create_session(db, user.id))
    return AuthResponse(
        message="User registered successfully", user=users_service.user_to_out(user)
    ).to_json()


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Revoke the current session (if any) and clear the cookie. Idempotent."""
    settings = get_settings()
    sessions.destroy_session(db, request.cookies.get(settings.session_cookie_name))
    response.delete_cookie(settings.session_cookie_name, path="/")
    return MessageResponse(message="Logged out").to_json()
