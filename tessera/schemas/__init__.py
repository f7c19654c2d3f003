"""Pydantic request/response schemas."""

from tessera.schemas.auth import (
    AntiForgeryTokenResponse,
    AuthResponse,
    CurrentUser,
    LoginRequest,
    MessageResponse,
    OAuthCallbackRequest,
    OAuthRedirectResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    RegisterRequest,
    UserInfo,
    UserListItem,
    UsersListResponse,
)
from tessera.schemas.health import HealthResponse
from tessera.schemas.user import UpdateProfileRequest

__all__ = [
    "AntiForgeryTokenResponse",
    "AuthResponse",
    "CurrentUser",
    "HealthResponse",
    "LoginRequest",
    "MessageResponse",
    "OAuthCallbackRequest",
    "OAuthRedirectResponse",
    "PasswordResetConfirm",
    "PasswordResetRequest",
    "RegisterRequest",
    "UpdateProfileRequest",
    "UserInfo",
    "UserListItem",
    "UsersListResponse",
]
