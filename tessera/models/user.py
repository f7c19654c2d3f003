"""ORM model for application users (auth and RBAC)."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Uuid, func

from tessera.models.base import Base


class User(Base):
    """
    User account for JWT authentication and role-based access control.

    email: stored lower-cased; the unique index makes it case-insensitive unique.
    role: 'admin' or 'user'
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(320), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default="user")
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    avatar_url = Column(String(2048), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
