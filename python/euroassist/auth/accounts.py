"""Login and registration.

Login failures never reveal whether the email exists: unknown email, a user
without a password (federated account) and a wrong password all produce the
same 401.
"""

from sqlalchemy.orm import Session

from euroassist.auth.passwords import hash_password, verify_password
from euroassist.db.models import User
from euroassist.errors import ApiErrorCode, ConstraintViolationError, UnauthenticatedError
from euroassist.logging import get_logger
from euroassist.services import users

logger = get_logger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
USER_EXISTS_MESSAGE = "User already exists"


def authenticate(db: Session, email: str, password: str) -> User:
    """Check credentials and return the matching user.

    Raises:
        UnauthenticatedError(E_INVALID_CREDENTIALS): On any credential failure.
    """
    user = users.get_user_by_email(db, email)
    if user is None or not user.password_hash or not verify_password(password, user.password_hash):
        logger.info("auth.login_failed")
        raise UnauthenticatedError(ApiErrorCode.E_INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

    logger.info("auth.login_succeeded", user_id=str(user.id))
    return user


def register(
    db: Session,
    email: str,
    password: str,
    first_name: str | None = None,
    last_name: str | None = None,
) -> User:
    """Create a password account.

    Raises:
        ConstraintViolationError(E_EMAIL_TAKEN): If the email is already registered.
            No row is written in that case.
    """
    if users.get_user_by_email(db, email) is not None:
        raise ConstraintViolationError(ApiErrorCode.E_EMAIL_TAKEN, USER_EXISTS_MESSAGE)

    # create_user maps a concurrent duplicate onto the same error
    return users.create_user(
        db,
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
    )
