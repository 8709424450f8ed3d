"""User and authentication Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from euroassist.schemas.base import CamelModel

MIN_PASSWORD_LENGTH = 6


def _lowercase_email(value: str) -> str:
    return value.lower()


# =============================================================================
# Response Schemas
# =============================================================================


class UserOut(CamelModel):
    """Public view of a user account. Never carries the password hash."""

    id: UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None
    created_at: datetime
    updated_at: datetime


class AuthResponse(CamelModel):
    """Response for login and registration."""

    message: str
    user: UserOut


class MessageResponse(CamelModel):
    """Bare acknowledgement, e.g. for logout or chat deletion."""

    message: str


# =============================================================================
# Request Schemas
# =============================================================================


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email", mode="after")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return _lowercase_email(value)


class RegisterRequest(CamelModel):
    """Registration body; names are optional."""

    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    first_name: str | None = Field(default=None, max_length=200)
    last_name: str | None = Field(default=None, max_length=200)

    @field_validator("email", mode="after")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return _lowercase_email(value)
