"""
API request and response models for the credential service REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire format is camelCase (accessToken, refreshToken, createdAt) to match the
existing clients. Fields are declared in snake_case with
aliases; populate_by_name lets route code construct them by field name, and
FastAPI serializes response_model output by alias.

Request fields are all optional on purpose: a missing field is the Session
Manager's ValidationError (400), not a pydantic 422.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import UserPublic

_CAMEL = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/auth/signup."""

    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login."""

    email: Optional[str] = None
    password: Optional[str] = None


class RefreshTokenRequest(BaseModel):
    """Request body for POST /api/auth/refresh and POST /api/auth/logout."""

    model_config = _CAMEL

    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public projection of a user. There is no password field to leak."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    email: str
    name: str
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    @classmethod
    def from_public(cls, user: UserPublic) -> "UserResponse":
        return cls(id=user.id, email=user.email, name=user.name, created_at=user.created_at)


class SignupResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "User created successfully"
    user: UserResponse


class LoginResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    message: str = "Login successful"
    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")
    user: UserResponse


class RefreshResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    access_token: str = Field(alias="accessToken")


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    fields: Optional[list[str]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
