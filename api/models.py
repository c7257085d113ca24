"""
API request and response models for the catalog REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two.

Request models are the schema every body is validated against before it
reaches the core: a body that fails here never touches a store, and the
failure is rendered as a 422 validation_error by api/main.py.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

USERNAME_MIN = 6
USERNAME_MAX = 40
PASSWORD_MIN = 6
PASSWORD_MAX = 100


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth. `username` may also be the email."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=PASSWORD_MAX)


class AuthResponse(BaseModel):
    """Response body for POST /api/v1/auth, both on success and on failure."""

    model_config = ConfigDict(frozen=True)

    success: bool
    token: Optional[str] = None
    message: str


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/user (admin only)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=USERNAME_MIN, max_length=USERNAME_MAX)
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN, max_length=PASSWORD_MAX)


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/user. Send only the fields to change."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: Optional[str] = Field(default=None, min_length=USERNAME_MIN, max_length=USERNAME_MAX)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=PASSWORD_MIN, max_length=PASSWORD_MAX)

    @model_validator(mode="after")
    def require_one_field(self) -> "UserUpdate":
        if self.username is None and self.email is None and self.password is None:
            raise ValueError("At least one of username, email or password is required.")
        return self


class ResultResponse(BaseModel):
    """Generic success envelope for write endpoints."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str
    id: Optional[int] = None


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


class LocationCreate(BaseModel):
    """Request body for POST /api/v1/locations."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    country: str = Field(min_length=1, max_length=100)
    city: str = Field(min_length=1, max_length=100)
    street: str = Field(min_length=1, max_length=255)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    price_min: Optional[float] = Field(default=None, ge=0)
    price_max: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def check_price_range(self) -> "LocationCreate":
        if self.price_min is not None and self.price_max is not None and self.price_min > self.price_max:
            raise ValueError("price_min must not exceed price_max.")
        return self


# ---------------------------------------------------------------------------
# Listings and filters
# ---------------------------------------------------------------------------


class ListingResponse(BaseModel):
    """Response for GET /api/v1/locations and GET /api/v1/users.

    count  -- rows in this page
    offset -- echo of the requested offset
    total  -- rows matching the filter across all pages
    """

    model_config = ConfigDict(frozen=True)

    count: int
    offset: int
    total: int
    data: list[dict[str, Any]]


class FilterParseResponse(BaseModel):
    """Response for GET /api/v1/query/locations."""

    model_config = ConfigDict(frozen=True)

    expression: str
    tree: dict[str, Any]


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
    components: dict[str, str]
