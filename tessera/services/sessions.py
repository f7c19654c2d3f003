"""Session manager: login, registration, OAuth login, refresh rotation, logout, password change and reset.

Every successful sign-in path ends in _issue_tokens(): one signed access token
plus one persisted refresh token, committed together with whatever user write
the path made.
"""

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tessera.core.security import AccessToken, PasswordHasher, TokenSigner
from tessera.core.unit_of_work import commit_or_rollback
from tessera.domain.user import UserAccount, check_password_policy, normalize_email
from tessera.services.email import EmailSender, EmailService
from tessera.services.errors import (
    IdentityProviderError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    TokenAlreadyRevokedError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from tessera.services.oauth import GoogleIdentityProvider, IdentityProvider, OAuthProfile
from tessera.services.password_reset import PasswordResetService
from tessera.services.refresh_tokens import IssuedToken, RefreshTokenStore
from tessera.services.users import UserDirectory, publish_events

if TYPE_CHECKING:
    from tessera.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    access: AccessToken
    refresh: IssuedToken
    user: UserAccount


class SessionManager:
    """Composes hasher, signer, token stores and user directory over one DB session."""

    def __init__(
        self,
        session: Session,
        *,
        hasher: PasswordHasher,
        signer: TokenSigner,
        refresh_token_lifetime: timedelta,
        email_sender: EmailSender,
        identity_provider: IdentityProvider | None = None,
    ) -> None:
        self.session = session
        self.hasher = hasher
        self.signer = signer
        self.users = UserDirectory(session)
        self.refresh_tokens = RefreshTokenStore(session, lifetime=refresh_token_lifetime)
        self.password_resets = PasswordResetService(
            session, hasher, email_sender, users=self.users
        )
        self.identity_provider = identity_provider

    @classmethod
    def from_settings(
        cls,
        session: Session,
        settings: "Settings",
        *,
        email_sender: EmailSender | None = None,
        identity_provider: IdentityProvider | None = None,
    ) -> "SessionManager":
        return cls(
            session,
            hasher=PasswordHasher(settings.BCRYPT_ROUNDS),
            signer=TokenSigner.from_settings(settings),
            refresh_token_lifetime=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
            email_sender=email_sender or EmailService(settings),
            identity_provider=identity_provider or GoogleIdentityProvider(settings),
        )

    def _issue_tokens(self, user: UserAccount) -> tuple[AccessToken, IssuedToken]:
        access = self.signer.issue(user.id, user.email, user.role)
        refresh = self.refresh_tokens.issue(user.id)
        return access, refresh

    def login(self, email: str, password: str) -> AuthResult:
        """
        Authenticate with email and password.

        Unknown email, deleted account and wrong password all raise the same
        InvalidCredentialsError.
        """
        user = self.users.find_by_email(email)
        if user is None or user.is_deleted:
            # Same bcrypt cost as a real check, so timing does not reveal the account.
            self.hasher.verify_dummy(password)
            logger.info("Login failed: unknown account")
            raise InvalidCredentialsError()
        if not self.hasher.verify(user.password_hash, password):
            logger.info("Login failed: bad password", extra={"user_id": str(user.id)})
            raise InvalidCredentialsError()

        access, refresh = self._issue_tokens(user)
        commit_or_rollback(self.session, "login")
        logger.info("Login succeeded", extra={"user_id": str(user.id)})
        return AuthResult(access=access, refresh=refresh, user=user)

    def register(
        self,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> AuthResult:
        """Create an account and sign it in. The user row and refresh token commit together."""
        normalized = normalize_email(email)
        check_password_policy(password)
        if self.users.find_by_email(normalized) is not None:
            raise UserAlreadyExistsError()

        user = UserAccount.create(
            normalized,
            self.hasher.hash(password),
            first_name=first_name,
            last_name=last_name,
        )
        self.users.insert(user)
        access, refresh = self._issue_tokens(user)
        self._commit_new_user("register")

        publish_events(user)
        return AuthResult(access=access, refresh=refresh, user=user.without_events())

    def oauth_authorization_url(self) -> tuple[str, str]:
        return self._provider().get_authorization_url()

    def oauth_login(self, code: str) -> AuthResult:
        """
        Sign in with an OAuth authorization code, creating the local user on first login.

        New OAuth users get a random, discarded password so the password path
        can never match.
        """
        provider = self._provider()
        provider_token = provider.exchange_code(code)
        profile = provider.get_profile(provider_token)

        user = self.users.find_by_email(profile.email)
        created = False
        if user is None:
            user, created = self._create_oauth_user(profile)
        if user.is_deleted:
            raise InvalidCredentialsError()

        access, refresh = self._issue_tokens(user)
        self._commit_new_user("oauth_login")

        if created:
            publish_events(user)
            user = user.without_events()
        logger.info(
            "OAuth login succeeded",
            extra={"user_id": str(user.id), "new_user": created},
        )
        return AuthResult(access=access, refresh=refresh, user=user)

    def _create_oauth_user(self, profile: OAuthProfile) -> tuple[UserAccount, bool]:
        """Insert the user for a first OAuth login; returns (user, created).

        If a concurrent first login for the same email wins the insert, that
        user is returned instead.
        """
        candidate = UserAccount.create(
            profile.email,
            self.hasher.hash(secrets.token_urlsafe(32)),
            first_name=profile.given_name,
            last_name=profile.family_name,
            avatar_url=profile.picture_url,
        )
        try:
            self.users.insert(candidate)
        except UserAlreadyExistsError:
            existing = self.users.find_by_email(profile.email)
            if existing is None:
                raise
            logger.info(
                "OAuth user created concurrently; reusing it",
                extra={"user_id": str(existing.id)},
            )
            return existing, False
        return candidate, True

    def refresh(self, token: str) -> AuthResult:
        """
        Rotate a refresh token: the presented token is revoked and a new
        access/refresh pair is issued in the same transaction. Replaying a
        rotated token raises InvalidRefreshTokenError.
        """
        row = self.refresh_tokens.find_valid(token)
        if row is None:
            raise InvalidRefreshTokenError()

        user = self.users.find_by_id(row.user_id)
        if user is None:
            raise UserNotFoundError()
        if user.is_deleted:
            raise InvalidRefreshTokenError()

        try:
            self.refresh_tokens.revoke(row)
        except TokenAlreadyRevokedError as e:
            # Lost a race with a concurrent rotation or logout.
            raise InvalidRefreshTokenError() from e

        access, refresh = self._issue_tokens(user)
        commit_or_rollback(self.session, "refresh")
        return AuthResult(access=access, refresh=refresh, user=user)

    def logout(self, user_id: uuid.UUID) -> int:
        """Revoke every live refresh token of the user; returns how many were revoked."""
        revoked = self.refresh_tokens.revoke_all(user_id)
        commit_or_rollback(self.session, "logout")
        logger.info("Logout", extra={"user_id": str(user_id), "tokens_revoked": revoked})
        return revoked

    def change_password(
        self, user_id: uuid.UUID, current_password: str, new_password: str
    ) -> UserAccount:
        """Replace the password of a signed-in user after checking the current one."""
        user = self.users.find_by_id(user_id)
        if user is None or user.is_deleted:
            raise UserNotFoundError()
        if not self.hasher.verify(user.password_hash, current_password):
            raise InvalidCredentialsError("Current password is incorrect")
        check_password_policy(new_password)

        updated = self.users.update_password(user, self.hasher.hash(new_password))
        commit_or_rollback(self.session, "change_password")
        publish_events(updated)
        return updated.without_events()

    def request_password_reset(self, email: str) -> str:
        return self.password_resets.request_reset(email)

    def complete_password_reset(self, token: str, new_password: str) -> str:
        return self.password_resets.complete_reset(token, new_password)

    def _provider(self) -> IdentityProvider:
        if self.identity_provider is None:
            raise IdentityProviderError(
                "Sign-in with this provider is not available.", status_code=503
            )
        return self.identity_provider

    def _commit_new_user(self, operation: str) -> None:
        # A concurrent insert with the same email surfaces on commit.
        try:
            commit_or_rollback(self.session, operation)
        except IntegrityError as e:
            raise UserAlreadyExistsError() from e
