"""
API request and response models for TicketDesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

The browser client speaks camelCase (firstName, isAdmin, ...). Response models
use a camelCase alias generator; FastAPI serializes by alias when a model is
declared as response_model. Handlers that build a JSONResponse by hand must
call model_dump(by_alias=True).
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Shared config
# ---------------------------------------------------------------------------

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


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

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(min_length=1, max_length=255)
    # max_length keeps bcrypt below its 72-byte truncation.
    password: str = Field(min_length=1, max_length=64)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: object) -> object:
        """Strip the email only; passwords are taken verbatim."""
        return value.strip() if isinstance(value, str) else value


class VerifyRequest(BaseModel):
    """Request body for POST /api/v1/auth/verify.

    token is left untyped: a missing, empty or non-string value is an answer
    in the response body, not a validation error.
    """

    token: Any = None


class ChangePasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/change-password."""

    password: str = Field(min_length=8, max_length=64)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    model_config = _CAMEL

    message: str
    token: str
    must_change_password: bool


class MeResponse(BaseModel):
    """Profile of the authenticated user (GET /api/v1/auth/me)."""

    model_config = _CAMEL

    id: int
    first_name: str
    last_name: str
    email_professional: str
    is_admin: bool
    must_change_password: bool


class VerifyResponse(BaseModel):
    """Always returned with HTTP 200; the outcome lives in the body."""

    model_config = ConfigDict(frozen=True)

    authenticated: bool
    error: Optional[str] = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Groups and locations
# ---------------------------------------------------------------------------


class LocationsResponse(BaseModel):
    """Response for GET /api/v1/groups/available-locations."""

    model_config = ConfigDict(frozen=True)

    locations: list[str]


class GroupResponse(BaseModel):
    model_config = _CAMEL

    id: int
    group_name: str
    description: Optional[str] = None
    location_id: Optional[int] = None
    owner_id: Optional[int] = None


class GroupsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    groups: list[GroupResponse]


class GroupMemberResponse(BaseModel):
    model_config = _CAMEL

    id: int
    first_name: str
    last_name: str
    is_admin: bool


class LocationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class EmailCheckResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    exists: bool
