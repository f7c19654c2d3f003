"""ORM model for single-use password reset tokens."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Uuid, func, text

from tessera.models.base import Base, as_utc, utcnow


class PasswordResetToken(Base):
    """Reset token valid for 24 hours; at most one active token per user."""

    __tablename__ = "password_reset_tokens"
    __table_args__ = (
        # At most one unused token per user.
        Index(
            "uq_password_reset_tokens_unused_user",
            "user_id",
            unique=True,
            postgresql_where=text("NOT is_used"),
            sqlite_where=text("NOT is_used"),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    token = Column(String(255), nullable=False, unique=True, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    is_used = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) >= as_utc(self.expires_at)

    def is_valid(self, now: datetime | None = None) -> bool:
        return not self.is_used and not self.is_expired(now)
