"""Refresh-token cookie and double-submit anti-forgery token handling."""

import base64
import hashlib
import hmac
import secrets
from datetime import datetime
from typing import TYPE_CHECKING

from fastapi import Request, Response

from tessera.services.errors import AntiForgeryValidationError

if TYPE_CHECKING:
    from tessera.core.config import Settings

REFRESH_TOKEN_COOKIE = "X-Refresh-Token"
ANTIFORGERY_COOKIE = "X-CSRF-TOKEN"
ANTIFORGERY_HEADER = "X-XSRF-TOKEN"
OAUTH_STATE_COOKIE = "X-OAuth-State"
OAUTH_STATE_MAX_AGE_SEC = 600


class CookieTransport:
    """
    Binds session credentials to cookies.

    The refresh token lives in an HTTP-only, SameSite=Strict cookie. The
    anti-forgery token is "<nonce>.<hmac>": the same value goes into an
    HTTP-only cookie and a response header, and a state-changing request must
    echo it back in the request header (double submit). The HMAC ties the
    token to this server's secret so a planted cookie cannot be forged.
    """

    def __init__(self, settings: "Settings") -> None:
        self.secure = settings.cookie_secure
        self._key = hashlib.sha256(
            b"antiforgery:" + settings.JWT_SECRET.get_secret_value().encode("utf-8")
        ).digest()

    def _cookie(self, response: Response, name: str, value: str, **kwargs: object) -> None:
        response.set_cookie(
            name,
            value,
            httponly=True,
            secure=self.secure,
            samesite="strict",
            path="/",
            **kwargs,
        )

    def _delete(self, response: Response, name: str) -> None:
        response.delete_cookie(
            name, path="/", secure=self.secure, httponly=True, samesite="strict"
        )

    def set_refresh_token_cookie(
        self, response: Response, refresh_token: str, expires_at: datetime
    ) -> None:
        self._cookie(response, REFRESH_TOKEN_COOKIE, refresh_token, expires=expires_at)

    def get_refresh_token(self, request: Request) -> str | None:
        return request.cookies.get(REFRESH_TOKEN_COOKIE) or None

    def clear_session_cookies(self, response: Response) -> None:
        self._delete(response, REFRESH_TOKEN_COOKIE)
        self._delete(response, ANTIFORGERY_COOKIE)

    def _sign(self, nonce: str) -> str:
        digest = hmac.new(self._key, nonce.encode("ascii"), hashlib.sha256).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

    def issue_antiforgery_token(self, response: Response) -> str:
        """Create a token, store it in the cookie and expose it in the response header."""
        nonce = secrets.token_urlsafe(32)
        token = f"{nonce}.{self._sign(nonce)}"
        self._cookie(response, ANTIFORGERY_COOKIE, token)
        response.headers[ANTIFORGERY_HEADER] = token
        return token

    def validate_antiforgery(self, request: Request) -> None:
        """Raise AntiForgeryValidationError unless header and cookie match and are signed by us."""
        header_token = request.headers.get(ANTIFORGERY_HEADER)
        cookie_token = request.cookies.get(ANTIFORGERY_COOKIE)
        if not header_token or not cookie_token:
            raise AntiForgeryValidationError()
        if not hmac.compare_digest(header_token, cookie_token):
            raise AntiForgeryValidationError()
        nonce, sep, signature = cookie_token.partition(".")
        if not sep or not nonce or not hmac.compare_digest(signature, self._sign(nonce)):
            raise AntiForgeryValidationError()

    def set_oauth_state(self, response: Response, state: str) -> None:
        # Lax so the cookie survives the top-level redirect back from the provider.
        response.set_cookie(
            OAUTH_STATE_COOKIE,
            state,
            max_age=OAUTH_STATE_MAX_AGE_SEC,
            httponly=True,
            secure=self.secure,
            samesite="lax",
            path="/",
        )

    def pop_oauth_state(self, request: Request, response: Response) -> str | None:
        state = request.cookies.get(OAUTH_STATE_COOKIE)
        response.delete_cookie(
            OAUTH_STATE_COOKIE, path="/", secure=self.secure, httponly=True, samesite="lax"
        )
        return state
