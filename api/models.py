"""
API request and response models for NileGuide Auth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Field-level validation (ValidationError -> 422) lives here: email shape, name
lengths, password strength, and the numeric code format. The auth core assumes
inputs that reached it are well-formed.

Whitespace: emails, codes, and names are stripped before validation. Passwords
are never stripped -- a leading or trailing space is part of the secret.
"""

import re
from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field

from auth.models import Account, Role

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
# Digits only. The length is Settings.reset_code_digits, checked by the reset
# manager: a code of the wrong length simply never matches.
CODE_PATTERN = r"^\d{1,12}$"

# bcrypt only looks at the first 72 bytes.
_BCRYPT_MAX_BYTES = 72

_HAS_LETTER = re.compile(r"[A-Za-z]")
_HAS_DIGIT = re.compile(r"\d")


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _password_policy(value: str) -> str:
    """At least 8 characters including a letter and a digit, and within bcrypt's limit.

    Checked in Python rather than with Field(pattern=...) because pydantic's
    default regex engine has no look-ahead support.
    """
    if not (_HAS_LETTER.search(value) and _HAS_DIGIT.search(value)):
        raise ValueError("Password must be at least 8 characters and include letters and numbers")
    if len(value.encode("utf-8")) > _BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {_BCRYPT_MAX_BYTES} bytes")
    return value


_Email = Annotated[str, BeforeValidator(_strip), Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)]
_Code = Annotated[
    str,
    BeforeValidator(_strip),
    Field(pattern=CODE_PATTERN, description="Numeric reset code; leading zeros are significant."),
]
_Name = Annotated[str, BeforeValidator(_strip)]
_NewPassword = Annotated[str, Field(min_length=8, max_length=100), AfterValidator(_password_policy)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    email: _Email
    password: _NewPassword
    full_name: _Name = Field(min_length=2, max_length=150)
    nationality: _Name = Field(min_length=1, max_length=100)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    The password is not held to the registration policy, so a policy change
    never turns old passwords into validation errors.
    """

    email: _Email
    password: str = Field(min_length=1, max_length=100)


class ForgotPasswordRequest(BaseModel):
    email: _Email


class VerifyResetCodeRequest(BaseModel):
    email: _Email
    code: _Code


class ResetPasswordRequest(BaseModel):
    email: _Email
    code: _Code
    new_password: _NewPassword


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SessionResponse(BaseModel):
    """Response body for register and login."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_at: datetime
    user_id: int
    role: Role


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    full_name: str
    nationality: str
    role: Role

    @classmethod
    def from_account(cls, account: Account) -> "MeResponse":
        return cls(
            user_id=account.id,
            email=account.email,
            full_name=account.full_name,
            nationality=account.nationality,
            role=account.role,
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
