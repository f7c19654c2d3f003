"""Password reset: single-use, 24-hour reset tokens and the request/complete flows."""

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tessera.core.security import PasswordHasher, generate_opaque_token
from tessera.core.unit_of_work import commit_or_rollback
from tessera.domain.user import check_password_policy
from tessera.models import PasswordResetToken
from tessera.models.base import utcnow
from tessera.services.email import EmailSender
from tessera.services.errors import (
    EmailDeliveryError,
    InvalidOrExpiredResetTokenError,
    PasswordResetRequestError,
    PersistenceError,
    UserNotFoundError,
)
from tessera.services.refresh_tokens import IssuedToken
from tessera.services.users import UserDirectory, publish_events

logger = logging.getLogger(__name__)

# Fixed lifetime of a reset token.
PASSWORD_RESET_TOKEN_LIFETIME = timedelta(hours=24)

# Same body whether or not the email belongs to an account.
RESET_REQUESTED_MESSAGE = "If the email exists, a password reset link has been sent."
RESET_COMPLETED_MESSAGE = "Password has been successfully reset."


class PasswordResetTokenStore:
    """Persists reset tokens; writes are flushed, the caller commits."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def issue(self, user_id: uuid.UUID, now: datetime | None = None) -> IssuedToken:
        expires_at = (now or utcnow()) + PASSWORD_RESET_TOKEN_LIFETIME
        raw = generate_opaque_token()
        self.session.add(
            PasswordResetToken(token=raw, user_id=user_id, expires_at=expires_at)
        )
        self.session.flush()
        return IssuedToken(token=raw, expires_at=expires_at)

    def find(self, token: str) -> PasswordResetToken | None:
        if not token:
            return None
        return self.session.scalars(
            select(PasswordResetToken).where(PasswordResetToken.token == token)
        ).first()

    def find_active_for_user(
        self, user_id: uuid.UUID, now: datetime | None = None
    ) -> list[PasswordResetToken]:
        """Unused, unexpired tokens of a user (normally zero or one)."""
        now = now or utcnow()
        return list(
            self.session.scalars(
                select(PasswordResetToken).where(
                    PasswordResetToken.user_id == user_id,
                    PasswordResetToken.is_used.is_(False),
                    PasswordResetToken.expires_at > now,
                )
            )
        )

    def supersede_unused(self, user_id: uuid.UUID) -> int:
        """Mark every unused token of the user used, expired ones included; returns rows changed."""
        result = self.session.execute(
            update(PasswordResetToken)
            .where(
                PasswordResetToken.user_id == user_id,
                PasswordResetToken.is_used.is_(False),
            )
            .values(is_used=True)
            .execution_options(synchronize_session=False)
        )
        self.session.expire_all()
        return result.rowcount

    def mark_used(self, row: PasswordResetToken) -> bool:
        """Conditionally flip is_used; False if another request already used the token."""
        result = self.session.execute(
            update(PasswordResetToken)
            .where(PasswordResetToken.id == row.id, PasswordResetToken.is_used.is_(False))
            .values(is_used=True)
            .execution_options(synchronize_session=False)
        )
        self.session.refresh(row)
        return result.rowcount == 1

    def delete_expired(self, cutoff: datetime) -> int:
        """Delete tokens that expired before cutoff or are used; returns rows deleted."""
        result = self.session.execute(
            delete(PasswordResetToken)
            .where(
                or_(
                    PasswordResetToken.expires_at < cutoff,
                    PasswordResetToken.is_used.is_(True),
                )
            )
            .execution_options(synchronize_session=False)
        )
        self.session.expire_all()
        return result.rowcount


class PasswordResetService:
    """Request and complete password resets without revealing which emails exist."""

    def __init__(
        self,
        session: Session,
        hasher: PasswordHasher,
        email_sender: EmailSender,
        *,
        users: UserDirectory | None = None,
        tokens: PasswordResetTokenStore | None = None,
    ) -> None:
        self.session = session
        self.hasher = hasher
        self.email_sender = email_sender
        self.users = users or UserDirectory(session)
        self.tokens = tokens or PasswordResetTokenStore(session)

    def request_reset(self, email: str) -> str:
        """
        Create a reset token for the account and email it.

        Returns the same message whether or not the account exists. Persistence
        or delivery failures raise PasswordResetRequestError (generic retry-later).
        """
        user = self.users.find_by_email(email)
        if user is None or user.is_deleted:
            logger.info("Password reset requested for unknown email")
            return RESET_REQUESTED_MESSAGE

        try:
            # Serializes concurrent requests for the same user.
            self.users.lock(user.id)
            self.tokens.supersede_unused(user.id)
            issued = self.tokens.issue(user.id)
            commit_or_rollback(self.session, "password_reset_request")
        except IntegrityError:
            # The one-unused-token-per-user index: a concurrent request already
            # issued (and is emailing) the active token.
            self.session.rollback()
            logger.info(
                "Password reset superseded by a concurrent request",
                extra={"user_id": str(user.id)},
            )
            return RESET_REQUESTED_MESSAGE
        except (SQLAlchemyError, PersistenceError) as e:
            self.session.rollback()
            logger.error(
                "Failed to create password reset token",
                extra={"user_id": str(user.id)},
                exc_info=True,
            )
            raise PasswordResetRequestError() from e

        logger.info(
            "Password reset token created; sending email",
            extra={"user_id": str(user.id)},
        )
        try:
            self.email_sender.send_password_reset_email(user.email, issued.token)
        except EmailDeliveryError as e:
            logger.error(
                "Failed to send password reset email",
                extra={"user_id": str(user.id)},
                exc_info=True,
            )
            raise PasswordResetRequestError() from e
        return RESET_REQUESTED_MESSAGE

    def complete_reset(self, token: str, new_password: str) -> str:
        """
        Set a new password using a valid reset token.

        The password update and marking the token used commit together or not at all.
        """
        row = self.tokens.find(token)
        if row is None or not row.is_valid():
            raise InvalidOrExpiredResetTokenError()

        check_password_policy(new_password)

        user = self.users.find_by_id(row.user_id)
        if user is None:
            raise UserNotFoundError()

        try:
            if not self.tokens.mark_used(row):
                raise InvalidOrExpiredResetTokenError()
            updated = self.users.reset_password(user, self.hasher.hash(new_password))
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError() from e
        commit_or_rollback(self.session, "password_reset_complete")

        publish_events(updated)
        logger.info("Password reset completed", extra={"user_id": str(user.id)})
        return RESET_COMPLETED_MESSAGE
