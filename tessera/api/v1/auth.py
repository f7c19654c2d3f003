"""Auth endpoints (login, register, refresh, logout, OAuth, password reset) and auth dependencies."""

import hmac
import logging
import uuid
from typing import Annotated

import jwt
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from tessera.api.cookies import CookieTransport
from tessera.core.config import Settings, get_settings
from tessera.core.database import get_db
from tessera.core.security import TokenSigner
from tessera.models import User
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
from tessera.services.errors import IdentityProviderError, InvalidRefreshTokenError
from tessera.services.sessions import AuthResult, SessionManager
from tessera.services.users import UserDirectory

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer(auto_error=False)


def get_session_manager(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> SessionManager:
    return SessionManager.from_settings(db, settings)


def get_cookie_transport(
    settings: Annotated[Settings, Depends(get_settings)],
) -> CookieTransport:
    return CookieTransport(settings)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CurrentUser:
    """Dependency: require valid Bearer JWT and return the current user. Raises 401 if missing or invalid."""
    if credentials is None:
        raise _unauthorized("Not authenticated")
    try:
        payload = TokenSigner.from_settings(settings).decode(credentials.credentials)
    except jwt.PyJWTError:
        raise _unauthorized("Invalid or expired token")
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except (TypeError, ValueError):
        raise _unauthorized("Invalid token payload")

    user = UserDirectory(db).find_by_id(user_id)
    if user is None or user.is_deleted:
        raise _unauthorized("User not found")
    return CurrentUser(id=user.id, email=user.email, role=user.role)


def require_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Dependency: require authenticated user with role 'admin'. Raises 403 for non-admin."""
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


def _session_response(
    result: AuthResult, response: Response, cookies: CookieTransport
) -> AuthResponse:
    """Set the refresh-token cookie and a fresh anti-forgery token; return the access token body."""
    cookies.set_refresh_token_cookie(
        response, result.refresh.token, result.refresh.expires_at
    )
    cookies.issue_antiforgery_token(response)
    return AuthResponse(
        user=UserInfo.model_validate(result.user),
        access_token=result.access.token,
        token_type="bearer",
        expires_at=result.access.expires_at,
    )


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    response: Response,
    manager: Annotated[SessionManager, Depends(get_session_manager)],
    cookies: Annotated[CookieTransport, Depends(get_cookie_transport)],
) -> AuthResponse:
    """
    Authenticate with email and password; returns a JWT access token.
    Include the token in the Authorization header as: Bearer <access_token>.
    The refresh token is set as an HTTP-only cookie.
    """
    result = manager.login(body.email, body.password)
    return _session_response(result, response, cookies)


@router.post("/register", response_model=AuthResponse)
def register(
    body: RegisterRequest,
    response: Response,
    manager: Annotated[SessionManager, Depends(get_session_manager)],
    cookies: Annotated[CookieTransport, Depends(get_cookie_transport)],
) -> AuthResponse:
    """Create an account and sign it in."""
    result = manager.register(
        body.email,
        body.password,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return _session_response(result, response, cookies)


@router.post("/refresh", response_model=AuthResponse)
def refresh(
    request: Request,
    response: Response,
    manager: Annotated[SessionManager, Depends(get_session_manager)],
    cookies: Annotated[CookieTransport, Depends(get_cookie_transport)],
) -> AuthResponse:
    """
    Rotate the refresh-token cookie and return a new access token.
    Requires the anti-forgery header matching the anti-forgery cookie.
    """
    cookies.validate_antiforgery(request)
    token = cookies.get_refresh_token(request)
    if token is None:
        raise InvalidRefreshTokenError()
    result = manager.refresh(token)
    return _session_response(result, response, cookies)


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    response: Response,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    manager: Annotated[SessionManager, Depends(get_session_manager)],
    cookies: Annotated[CookieTransport, Depends(get_cookie_transport)],
) -> MessageResponse:
    """Revoke every refresh token of the current user and clear session cookies."""
    cookies.validate_antiforgery(request)
    manager.logout(current_user.id)
    cookies.clear_session_cookies(response)
    return MessageResponse(message="Logged out successfully.")


@router.get("/antiforgery-token", response_model=AntiForgeryTokenResponse)
def antiforgery_token(
    response: Response,
    cookies: Annotated[CookieTransport, Depends(get_cookie_transport)],
) -> AntiForgeryTokenResponse:
    """Issue an anti-forgery token (cookie plus X-XSRF-TOKEN response header)."""
    token = cookies.issue_antiforgery_token(response)
    return AntiForgeryTokenResponse(antiforgery_token=token)


@router.get("/google", response_model=OAuthRedirectResponse)
def google_redirect(
    response: Response,
    manager: Annotated[SessionManager, Depends(get_session_manager)],
    cookies: Annotated[CookieTransport, Depends(get_cookie_transport)],
) -> OAuthRedirectResponse:
    """Return the Google authorization URL; the state is also kept in a short-lived cookie."""
    url, state = manager.oauth_authorization_url()
    cookies.set_oauth_state(response, state)
    return OAuthRedirectResponse(redirect_url=url, state=state)


@router.post("/google/callback", response_model=AuthResponse)
def google_callback(
    body: OAuthCallbackRequest,
    request: Request,
    response: Response,
    manager: Annotated[SessionManager, Depends(get_session_manager)],
    cookies: Annotated[CookieTransport, Depends(get_cookie_transport)],
) -> AuthResponse:
    """Complete Google sign-in with the authorization code; creates the user on first login."""
    expected_state = cookies.pop_oauth_state(request, response)
    if not expected_state or not hmac.compare_digest(expected_state, body.state):
        logger.warning("OAuth callback rejected: state mismatch")
        raise IdentityProviderError("Invalid OAuth state.", status_code=400)
    result = manager.oauth_login(body.code)
    return _session_response(result, response, cookies)


@router.post("/password-reset/request", response_model=MessageResponse)
def request_password_reset(
    body: PasswordResetRequest,
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> MessageResponse:
    """Send a reset link if the email belongs to an account. The reply is the same either way."""
    return MessageResponse(message=manager.request_password_reset(body.email))


@router.post("/password-reset/confirm", response_model=MessageResponse)
def confirm_password_reset(
    body: PasswordResetConfirm,
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> MessageResponse:
    return MessageResponse(
        message=manager.complete_password_reset(body.token, body.new_password)
    )


@router.get("/me", response_model=CurrentUser)
def me(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    return current_user


@router.get("/users", response_model=UsersListResponse)
def list_users(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> UsersListResponse:
    """List all active users (admin only)."""
    users = db.scalars(
        select(User).where(User.is_deleted.is_(False)).order_by(User.created_at, User.email)
    ).all()
    return UsersListResponse(
        users=[UserListItem(id=u.id, email=u.email, role=u.role) for u in users]
    )
