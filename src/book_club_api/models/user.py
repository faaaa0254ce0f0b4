"""
User models for the Book Club API.

Users sign up with a name, email and password. The password only ever lives
in request payloads; responses never include it or its hash.
"""

from datetime import datetime

from pydantic import EmailStr, Field, field_validator

from .base import CamelModel

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_LENGTH = 72


class UserSignup(CamelModel):
    """Payload for creating an account."""

    name: str = Field(..., min_length=2, max_length=100, examples=["Jane Doe"])
    email: EmailStr = Field(..., examples=["jane.doe@example.com"])
    password: str = Field(..., min_length=6, max_length=MAX_PASSWORD_LENGTH)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class CheckUserRequest(CamelModel):
    email: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class ProfileUpdate(CamelModel):
    """Profile edit - name and/or email. Any other key is ignored."""

    name: str | None = Field(default=None, min_length=2, max_length=100)
    email: EmailStr | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return v.lower() if v is not None else v


class PasswordChange(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=MAX_PASSWORD_LENGTH)


class User(CamelModel):
    """A club member as returned by the API."""

    id: str
    name: str
    email: str
    created_at: datetime
    updated_at: datetime
