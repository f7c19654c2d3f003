"""Google OAuth 2.0 identity provider: authorization URL, code exchange, profile lookup."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urlencode

import httpx

from tessera.services.errors import IdentityProviderError

if TYPE_CHECKING:
    from tessera.core.config import Settings

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_SCOPES = "openid email profile"


@dataclass(frozen=True)
class OAuthProfile:
    email: str
    given_name: str | None = None
    family_name: str | None = None
    picture_url: str | None = None


class IdentityProvider(Protocol):
    def get_authorization_url(self) -> tuple[str, str]: ...

    def exchange_code(self, code: str) -> str: ...

    def get_profile(self, access_token: str) -> OAuthProfile: ...


class GoogleIdentityProvider:
    """Talks to Google's OAuth endpoints. Failures raise IdentityProviderError."""

    def __init__(self, settings: "Settings", client: httpx.Client | None = None) -> None:
        self.client_id = settings.GOOGLE_CLIENT_ID
        self.client_secret = (
            settings.GOOGLE_CLIENT_SECRET.get_secret_value()
            if settings.GOOGLE_CLIENT_SECRET
            else None
        )
        self.redirect_uri = f"{settings.CLIENT_APP_URL}{settings.GOOGLE_REDIRECT_PATH}"
        self.timeout = httpx.Timeout(settings.GOOGLE_REQUEST_TIMEOUT_SEC)
        self._client = client

    def _require_configured(self) -> None:
        if not (self.client_id and self.client_secret):
            raise IdentityProviderError(
                "Google sign-in is not configured.", status_code=503
            )

    def get_authorization_url(self) -> tuple[str, str]:
        """Return (authorization URL, state). The caller must keep state to check on callback."""
        self._require_configured()
        state = secrets.token_urlsafe(32)
        query = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": GOOGLE_SCOPES,
                "state": state,
                "access_type": "offline",
                "prompt": "consent",
            }
        )
        return f"{GOOGLE_AUTH_URL}?{query}", state

    def exchange_code(self, code: str) -> str:
        """Exchange an authorization code for a Google access token."""
        self._require_configured()
        body = self._request(
            "POST",
            GOOGLE_TOKEN_URL,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
            },
            failure="Failed to exchange authorization code for access token.",
        )
        access_token = body.get("access_token")
        if not isinstance(access_token, str) or not access_token.strip():
            raise IdentityProviderError("Invalid response from Google token endpoint.")
        return access_token

    def get_profile(self, access_token: str) -> OAuthProfile:
        body = self._request(
            "GET",
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            failure="Failed to retrieve user information from Google.",
        )
        email = body.get("email")
        if not isinstance(email, str) or not email.strip():
            raise IdentityProviderError(
                "Invalid response from Google userinfo endpoint or email is missing."
            )
        return OAuthProfile(
            email=email,
            given_name=body.get("given_name"),
            family_name=body.get("family_name"),
            picture_url=body.get("picture"),
        )

    def _request(self, method: str, url: str, *, failure: str, **kwargs: object) -> dict:
        try:
            if self._client is not None:
                response = self._client.request(method, url, timeout=self.timeout, **kwargs)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("Google OAuth request timed out", extra={"url": url})
            raise IdentityProviderError(
                "Google did not respond in time. Please try again.", status_code=503
            ) from e
        except httpx.HTTPError as e:
            logger.warning(
                "Google OAuth request failed",
                extra={"url": url, "error_type": type(e).__name__},
            )
            raise IdentityProviderError(failure, status_code=503) from e

        if response.status_code != 200:
            logger.warning(
                "Google OAuth endpoint returned an error",
                extra={"url": url, "status_code": response.status_code},
            )
            # 4xx means the code/token was rejected; anything else is an upstream failure.
            status = 400 if 400 <= response.status_code < 500 else 502
            raise IdentityProviderError(failure, status_code=status)

        try:
            body = response.json()
        except ValueError as e:
            raise IdentityProviderError("Google returned a malformed response.") from e
        if not isinstance(body, dict):
            raise IdentityProviderError("Google returned a malformed response.")
        return body
