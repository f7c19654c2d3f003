"""Request/response schemas for auth endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: str = Field(..., min_length=1, max_length=320, description="Email address")
    password: str = Field(..., min_length=1, max_length=128, description="Password")


class RegisterRequest(BaseModel):
    """New account details. Password policy is enforced by the service."""

    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=8, max_length=128, description="Password")
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class UserInfo(BaseModel):
    """Public user fields returned with tokens and by /me."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    role: str
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None


class AuthResponse(BaseModel):
    """Access token plus user info. The refresh token travels only in its cookie."""

    user: UserInfo
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_at: datetime = Field(..., description="Access token expiry (UTC)")


class AntiForgeryTokenResponse(BaseModel):
    antiforgery_token: str


class MessageResponse(BaseModel):
    message: str


class PasswordResetRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=320)


class PasswordResetConfirm(BaseModel):
    token: str = Field(..., min_length=1, max_length=255)
    new_password: str = Field(..., min_length=8, max_length=128)


class OAuthRedirectResponse(BaseModel):
    redirect_url: str
    state: str


class OAuthCallbackRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=2048)
    state: str = Field(..., min_length=1, max_length=255)


class CurrentUser(BaseModel):
    """Authenticated user for dependency injection."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    role: str


class UserListItem(BaseModel):
    """User entry for admin list (no password)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    role: str


class UsersListResponse(BaseModel):
    """Response for GET /auth/users (admin only)."""

    users: list[UserListItem]
