"""Cookie sessions - server-side session rows referenced by a signed cookie.

- Each login inserts a `sessions` row (random sid, expire = now + SESSION_TTL_S)
- The cookie value is an HS256 JWT signed with SESSION_SECRET
- Claims: iss=euroassist-session, sub=user_id, sid, iat, exp
- A cookie is only valid while its row exists, is unexpired and names the same user,
  so logout (row deletion) revokes it immediately
"""

import secrets
import time
from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt
from sqlalchemy import delete
from sqlalchemy.orm import Session

from euroassist.config import get_settings
from euroassist.db.models import UserSession, utcnow
from euroassist.db.session import transaction
from euroassist.errors import UnauthenticatedError
from euroassist.logging import get_logger

logger = get_logger(__name__)

SESSION_TOKEN_ISSUER = "euroassist-session"
SESSION_TOKEN_ALGORITHM = "HS256"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def purge_expired_sessions(db: Session) -> int:
    """Delete every session row whose expiry has passed.

    Returns:
        Number of rows removed.
    """
    with transaction(db):
        result = db.execute(delete(UserSession).where(UserSession.expire <= utcnow()))
    return result.rowcount or 0


def create_session(db: Session, user_id: UUID) -> str:
    """Start a session for user_id and return the cookie value."""
    settings = get_settings()
    now = int(time.time())
    sid = secrets.token_urlsafe(32)
    expire = datetime.fromtimestamp(now, tz=UTC) + timedelta(seconds=settings.session_ttl_s)

    purge_expired_sessions(db)
    with transaction(db):
        db.add(
            UserSession(
                sid=sid,
                user_id=user_id,
                sess={"user_id": str(user_id), "created_at": now},
                expire=expire,
            )
        )

    payload = {
        "iss": SESSION_TOKEN_ISSUER,
        "sub": str(user_id),
        "sid": sid,
        "iat": now,
        "exp": now + settings.session_ttl_s,
    }
    return jwt.encode(payload, settings.session_secret, algorithm=SESSION_TOKEN_ALGORITHM)


def _decode(cookie_value: str) -> dict:
    settings = get_settings()
    try:
        return jwt.decode(
            cookie_value,
            settings.session_secret,
            algorithms=[SESSION_TOKEN_ALGORITHM],
            issuer=SESSION_TOKEN_ISSUER,
            options={"require": ["exp", "iss", "sub", "sid"]},
        )
    except jwt.ExpiredSignatureError as err:
        raise UnauthenticatedError(message="Session expired") from err
    except jwt.InvalidTokenError as err:
        logger.warning("session_cookie_invalid", error_type=type(err).__name__)
        raise UnauthenticatedError() from err


def resolve_session(db: Session, cookie_value: str) -> UUID:
    """Resolve a session cookie to the user id it authenticates.

    Raises:
        UnauthenticatedError: Bad signature, unknown/expired session, or user mismatch.
    """
    payload = _decode(cookie_value)

    row = db.get(UserSession, payload["sid"])
    if row is None:
        raise UnauthenticatedError()

    if _as_utc(row.expire) <= utcnow():
        with transaction(db):
            db.delete(row)
        raise UnauthenticatedError(message="Session expired")

    if str(row.user_id) != payload["sub"]:
        logger.warning("session_user_mismatch")
        raise UnauthenticatedError()

    return row.user_id


def destroy_session(db: Session, cookie_value: str | None) -> None:
    """Delete the session a cookie points at. Idempotent.

    Cookies that fail verification are ignored; there is nothing to revoke.
    """
    if not cookie_value:
        return
    try:
        payload = jwt.decode(
            cookie_value,
            get_settings().session_secret,
            algorithms=[SESSION_TOKEN_ALGORITHM],
            issuer=SESSION_TOKEN_ISSUER,
            options={"verify_exp": False, "require": ["sid"]},
        )
    except jwt.InvalidTokenError:
        return

    with transaction(db):
        db.execute(delete(UserSession).where(UserSession.sid == payload["sid"]))
