"""
API request and response models for AuthGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire names are camelCase (userId, resetToken, twoFaRequired) to match the
browser client. Fields are declared with aliases and populate_by_name=True,
and responses are serialized with by_alias=True.

Request fields are Optional on purpose: a missing email or password is a
service-level ValidationFailedError (400 with a specific message), not a
generic schema failure. Wrong JSON types still fail here and map to 400
validation_error.

Identifier fields (name, email, code, resetToken) are whitespace-stripped.
Password fields are passed through byte-for-byte.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_REQUEST_CONFIG = ConfigDict(populate_by_name=True)


def _strip(value):
    if isinstance(value, str):
        return value.strip()
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)

    strip_identifiers = field_validator("name", "email", mode="before")(_strip)


class LoginRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)

    strip_identifiers = field_validator("email", mode="before")(_strip)


class VerifyTwoFactorRequest(BaseModel):
    """Request body for POST /auth/verify-2fa.

    The client may send the code as a JSON number; it is normalized to the
    digit string the store compares against.
    """

    model_config = _REQUEST_CONFIG

    user_id: Optional[int] = Field(default=None, alias="userId")
    code: Optional[str] = Field(default=None, max_length=16)

    @field_validator("code", mode="before")
    @classmethod
    def coerce_code(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return _strip(value)


class ForgotPasswordRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    email: Optional[str] = Field(default=None, max_length=255)

    strip_identifiers = field_validator("email", mode="before")(_strip)


class ResetPasswordRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    email: Optional[str] = Field(default=None, max_length=255)
    reset_token: Optional[str] = Field(default=None, alias="resetToken", max_length=128)
    new_password: Optional[str] = Field(default=None, alias="newPassword", max_length=255)

    strip_identifiers = field_validator("email", "reset_token", mode="before")(_strip)


class TwoFactorToggleRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    enabled: Optional[bool] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserRef(BaseModel):
    """Minimal user identity returned during login and registration."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    user: UserRef


class LoginResponse(BaseModel):
    """Either a session token, or twoFaRequired=true with no token."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token: Optional[str] = None
    two_fa_required: Optional[bool] = Field(default=None, alias="twoFaRequired")
    user: UserRef


class TokenResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str


class OkResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    email: str
    name: Optional[str] = None
    two_fa_enabled: bool = Field(alias="twoFaEnabled")


class TwoFactorToggleResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ok: bool = True
    two_fa_enabled: bool = Field(alias="twoFaEnabled")


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses.

    result is only present for delivery_failed: it carries the payload of the
    operation that did commit.
    """

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail
    result: Optional[dict] = None


class HealthResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
