"""User aggregate, its value objects (email, password policy) and domain events.

UserAccount is immutable: every change returns a new instance through
model_copy(update=...). Pending events live in a tuple, so a copy never shares
a mutable collection with the instance it was made from.
"""

import re
import uuid
from datetime import UTC, datetime
from typing import Literal

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field

from tessera.services.errors import InvalidEmailError, WeakPasswordError

UserRole = Literal["user", "admin"]

PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128
EMAIL_MAX_LEN = 320

_SPECIAL_SYMBOL_RE = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")
_UPPERCASE_RE = re.compile(r"[A-Z]")
_DIGIT_RE = re.compile(r"[0-9]")


def normalize_email(value: str) -> str:
    """Validate an email address shape and return it lower-cased. Raises InvalidEmailError."""
    if not value or not value.strip():
        raise InvalidEmailError("Email cannot be empty")
    candidate = value.strip()
    if len(candidate) > EMAIL_MAX_LEN:
        raise InvalidEmailError()
    try:
        result = validate_email(candidate, check_deliverability=False)
    except EmailNotValidError as e:
        raise InvalidEmailError() from e
    return result.normalized.lower()


def check_password_length(password: str) -> str:
    """Minimum/maximum length, checked before hashing."""
    if not password or not password.strip():
        raise WeakPasswordError("Password cannot be empty")
    if len(password) < PASSWORD_MIN_LEN:
        raise WeakPasswordError(
            f"Password must be at least {PASSWORD_MIN_LEN} characters long"
        )
    if len(password) > PASSWORD_MAX_LEN:
        raise WeakPasswordError(
            f"Password must be at most {PASSWORD_MAX_LEN} characters long"
        )
    return password


def check_password_policy(password: str) -> str:
    """Length plus one special symbol, one upper-case letter and one digit."""
    check_password_length(password)
    if not _SPECIAL_SYMBOL_RE.search(password):
        raise WeakPasswordError("Password must contain at least one special symbol")
    if not _UPPERCASE_RE.search(password):
        raise WeakPasswordError("Password must contain at least one uppercase letter")
    if not _DIGIT_RE.search(password):
        raise WeakPasswordError("Password must contain at least one number")
    return password


class UserEvent(BaseModel):
    """Something that happened to a user; published to the log after commit."""

    model_config = ConfigDict(frozen=True)

    name: str
    user_id: uuid.UUID
    email: str
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class UserAccount(BaseModel):
    """Immutable view of a user, independent of the ORM row it was loaded from."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: uuid.UUID
    email: str
    password_hash: str
    role: UserRole = "user"
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    is_deleted: bool = False
    events: tuple[UserEvent, ...] = ()

    @classmethod
    def create(
        cls,
        email: str,
        password_hash: str,
        role: UserRole = "user",
        first_name: str | None = None,
        last_name: str | None = None,
        avatar_url: str | None = None,
    ) -> "UserAccount":
        user_id = uuid.uuid4()
        normalized = normalize_email(email)
        return cls(
            id=user_id,
            email=normalized,
            password_hash=password_hash,
            role=role,
            first_name=first_name,
            last_name=last_name,
            avatar_url=avatar_url,
            events=(UserEvent(name="user_created", user_id=user_id, email=normalized),),
        )

    def _changed(self, event_name: str, **fields: object) -> "UserAccount":
        event = UserEvent(name=event_name, user_id=self.id, email=self.email)
        return self.model_copy(update={**fields, "events": (event,)})

    def with_password_hash(self, password_hash: str) -> "UserAccount":
        return self._changed("user_password_changed", password_hash=password_hash)

    def with_reset_password(self, password_hash: str) -> "UserAccount":
        return self._changed("password_reset_completed", password_hash=password_hash)

    def with_profile(
        self,
        first_name: str | None,
        last_name: str | None,
        avatar_url: str | None,
    ) -> "UserAccount":
        return self._changed(
            "user_profile_updated",
            first_name=first_name,
            last_name=last_name,
            avatar_url=avatar_url,
        )

    def without_events(self) -> "UserAccount":
        return self.model_copy(update={"events": ()})
