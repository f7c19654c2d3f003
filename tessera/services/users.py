"""User directory: lookups and writes of users, mapped to immutable UserAccount values."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tessera.domain.user import UserAccount, UserEvent
from tessera.models import User
from tessera.services.errors import UserAlreadyExistsError, UserNotFoundError

logger = logging.getLogger(__name__)


class UserDirectory:
    """
    Reads and writes users through one SQLAlchemy session.

    Writes are flushed, not committed; the calling service owns the transaction.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def _row(self, user_id: uuid.UUID) -> User | None:
        return self.session.get(User, user_id)

    def find_by_email(self, email: str) -> UserAccount | None:
        """Case-insensitive lookup; emails are stored lower-cased."""
        row = self.session.scalars(
            select(User).where(User.email == email.strip().lower())
        ).first()
        return UserAccount.model_validate(row) if row is not None else None

    def find_by_id(self, user_id: uuid.UUID) -> UserAccount | None:
        row = self._row(user_id)
        return UserAccount.model_validate(row) if row is not None else None

    def lock(self, user_id: uuid.UUID) -> None:
        """Take a row lock on the user until the transaction ends (no-op on SQLite)."""
        self.session.execute(select(User.id).where(User.id == user_id).with_for_update())

    def insert(self, account: UserAccount) -> UserAccount:
        """
        Stage a new user row. A unique-index conflict on email (for example a
        concurrent registration that passed the existence check) becomes
        UserAlreadyExistsError.
        """
        row = User(
            id=account.id,
            email=account.email,
            password_hash=account.password_hash,
            role=account.role,
            first_name=account.first_name,
            last_name=account.last_name,
            avatar_url=account.avatar_url,
            is_deleted=account.is_deleted,
        )
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            raise UserAlreadyExistsError() from e
        return account

    def update_password(self, account: UserAccount, password_hash: str) -> UserAccount:
        updated = account.with_password_hash(password_hash)
        self._write(updated, password_hash=password_hash)
        return updated

    def reset_password(self, account: UserAccount, password_hash: str) -> UserAccount:
        updated = account.with_reset_password(password_hash)
        self._write(updated, password_hash=password_hash)
        return updated

    def update_profile(
        self,
        account: UserAccount,
        *,
        first_name: str | None,
        last_name: str | None,
        avatar_url: str | None,
    ) -> UserAccount:
        updated = account.with_profile(first_name, last_name, avatar_url)
        self._write(
            updated,
            first_name=first_name,
            last_name=last_name,
            avatar_url=avatar_url,
        )
        return updated

    def _write(self, account: UserAccount, **fields: object) -> None:
        row = self._row(account.id)
        if row is None:
            raise UserNotFoundError()
        for name, value in fields.items():
            setattr(row, name, value)
        self.session.flush()


def publish_events(account: UserAccount) -> None:
    """Publish the account's pending events. Call only after the transaction committed."""
    for event in account.events:
        _log_event(event)


def _log_event(event: UserEvent) -> None:
    logger.info(
        "User event",
        extra={
            "event": event.name,
            "user_id": str(event.user_id),
            "occurred_at": event.occurred_at.isoformat(),
        },
    )
