"""User storage layer.

Emails are normalized to lower case on every write and lookup, so lookups are
effectively case-insensitive while the unique constraint stays a plain one.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from euroassist.db.models import User, utcnow
from euroassist.db.session import transaction
from euroassist.errors import ApiErrorCode, ConstraintViolationError
from euroassist.logging import get_logger
from euroassist.schemas.user import UserOut

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def user_to_out(user: User) -> UserOut:
    """Convert User ORM model to UserOut schema (drops the password hash)."""
    return UserOut(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        profile_image_url=user.profile_image_url,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def get_user(db: Session, user_id: UUID) -> User | None:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(User.email == normalize_email(email)))


def create_user(
    db: Session,
    email: str,
    password_hash: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    profile_image_url: str | None = None,
) -> User:
    """Insert a new user.

    Raises:
        ConstraintViolationError(E_EMAIL_TAKEN): If the email is already registered.
    """
    now = utcnow()
    user = User(
        email=normalize_email(email),
        password_hash=password_hash,
        first_name=first_name,
        last_name=last_name,
        profile_image_url=profile_image_url,
        created_at=now,
        updated_at=now,
    )

    try:
        with transaction(db):
            db.add(user)
    except ConstraintViolationError:
        raise ConstraintViolationError(
            ApiErrorCode.E_EMAIL_TAKEN, "User already exists"
        ) from None

    logger.info("user.created", user_id=str(user.id))
    return user


def upsert_user(
    db: Session,
    user_id: UUID,
    email: str,
    first_name: str | None = None,
    last_name: str | None = None,
    profile_image_url: str | None = None,
) -> User:
    """Insert or update a user by id (federated identity reconciliation).

    Profile fields are overwritten and updated_at is refreshed. An existing
    password hash is left untouched.
    """
    now = utcnow()
    user = db.get(User, user_id)

    with transaction(db):
        if user is None:
            user = User(id=user_id, created_at=now)
            db.add(user)
        user.email = normalize_email(email)
        user.first_name = first_name
        user.last_name = last_name
        user.profile_image_url = profile_image_url
        user.updated_at = now

    return user
