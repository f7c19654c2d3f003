"""SQLAlchemy ORM models."""

from tessera.models.base import Base
from tessera.models.password_reset_token import PasswordResetToken
from tessera.models.refresh_token import RefreshToken
from tessera.models.user import User

__all__ = ["Base", "PasswordResetToken", "RefreshToken", "User"]
