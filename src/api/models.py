"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Wire field names follow the web client (camelCase where it sends or expects
camelCase).
"""

from pydantic import BaseModel, ConfigDict, Field

from src.domain.ports import Availability


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ConfirmRequest(_WireModel):
    """Query parameters merged with redirect-fragment parameters."""

    code: str | None = None
    token_hash: str | None = None
    type: str | None = None
    next: str | None = None
    error: str | None = None
    error_code: str | None = None
    error_description: str | None = None


class ConfirmResponse(_WireModel):
    """Response model for a successful verification."""

    success: bool = True
    type: str
    next: str
    access_token: str | None = Field(
        default=None, description="Recovery session token, only for type=recovery"
    )
    warning: str | None = None


class LoginRequest(_WireModel):
    username: str
    password: str


class UserModel(_WireModel):
    id: str
    email: str
    username: str | None = None
    email_verified: bool | None = Field(default=None, alias="emailVerified")


class LoginResponse(_WireModel):
    success: bool = True
    token: str
    user: UserModel


class ResendRequest(_WireModel):
    email: str


class SignupRequest(_WireModel):
    username: str
    email: str
    password: str


class ForgotPasswordRequest(_WireModel):
    email: str


class ResetPasswordRequest(_WireModel):
    password: str
    confirm_password: str = Field(alias="confirmPassword")


class MessageResponse(_WireModel):
    success: bool = True
    message: str


class AvailabilityResponse(_WireModel):
    candidate: str
    status: Availability


class MeResponse(_WireModel):
    user: UserModel
    profile: UserModel | None = None


class ErrorResponse(_WireModel):
    """Standard error response model."""

    success: bool = False
    error: str
    error_code: str | None = Field(default=None, alias="errorCode")
    needs_verification: bool | None = Field(default=None, alias="needsVerification")
    email: str | None = None
