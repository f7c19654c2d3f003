"""Refresh token store: issue, look up, revoke and purge opaque refresh tokens."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from tessera.core.security import generate_opaque_token
from tessera.models import RefreshToken
from tessera.models.base import utcnow
from tessera.services.errors import TokenAlreadyRevokedError


@dataclass(frozen=True)
class IssuedToken:
    """Raw token handed to the caller once; only the caller ever sees it."""

    token: str
    expires_at: datetime


class RefreshTokenStore:
    """
    Persists refresh tokens in one SQLAlchemy session.

    Writes are flushed, not committed; the calling service owns the transaction.
    Bulk operations are single set-based statements so they are safe alongside
    concurrent issue/lookup calls.
    """

    def __init__(self, session: Session, lifetime: timedelta = timedelta(days=7)) -> None:
        self.session = session
        self.lifetime = lifetime

    def issue(self, user_id: uuid.UUID, now: datetime | None = None) -> IssuedToken:
        expires_at = (now or utcnow()) + self.lifetime
        raw = generate_opaque_token()
        self.session.add(RefreshToken(token=raw, user_id=user_id, expires_at=expires_at))
        self.session.flush()
        return IssuedToken(token=raw, expires_at=expires_at)

    def find(self, token: str) -> RefreshToken | None:
        """Exact lookup by token string."""
        if not token:
            return None
        return self.session.scalars(
            select(RefreshToken).where(RefreshToken.token == token)
        ).first()

    def find_valid(self, token: str, now: datetime | None = None) -> RefreshToken | None:
        """Exact lookup, returning the row only if it is valid right now."""
        row = self.find(token)
        if row is None or not row.is_valid(now):
            return None
        return row

    def revoke(self, row: RefreshToken) -> None:
        """
        Revoke one token with a conditional update.

        Raises TokenAlreadyRevokedError if it was already revoked, including
        by a concurrent request that got there first.
        """
        result = self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.id == row.id, RefreshToken.is_revoked.is_(False))
            .values(is_revoked=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise TokenAlreadyRevokedError(str(row.id))
        self.session.refresh(row)

    def revoke_all(self, user_id: uuid.UUID, now: datetime | None = None) -> int:
        """Revoke every live token of a user in one statement; returns rows affected."""
        now = now or utcnow()
        result = self.session.execute(
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.is_revoked.is_(False),
                RefreshToken.expires_at > now,
            )
            .values(is_revoked=True)
            .execution_options(synchronize_session=False)
        )
        self.session.expire_all()
        return result.rowcount

    def delete_expired(self, cutoff: datetime) -> int:
        """Delete tokens that expired before cutoff or are revoked; returns rows deleted."""
        result = self.session.execute(
            delete(RefreshToken)
            .where(or_(RefreshToken.expires_at < cutoff, RefreshToken.is_revoked.is_(True)))
            .execution_options(synchronize_session=False)
        )
        self.session.expire_all()
        return result.rowcount
