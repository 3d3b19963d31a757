"""
Auth request/response schemas

Field rules mirror the registration form: username >= 3 chars, password >= 6
chars and at most 72 UTF-8 bytes, first and last name required.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

BCRYPT_MAX_PASSWORD_BYTES = 72


def check_password_length(value: str) -> str:
    # bcrypt only looks at the first 72 bytes
    if len(value.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes")
    return value


class IdentitySnapshot(BaseModel):
    """Identity fields cached in the session and returned to the web client."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: Optional[str] = None
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email_verified: bool = False


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3)
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)

    @field_validator("username", "first_name", "last_name", mode="before")
    @classmethod
    def strip_whitespace(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v):
        return check_password_length(v)


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=6)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v):
        return check_password_length(v)


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=1)


class MessageResponse(BaseModel):
    message: str


class AuthUserResponse(BaseModel):
    message: str
    user: IdentitySnapshot


class AuthStatusResponse(BaseModel):
    authenticated: bool
    user: Optional[IdentitySnapshot] = None
