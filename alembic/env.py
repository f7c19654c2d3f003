"""Alembic environment for tessera: DATABASE_URL from Settings, target metadata from tessera.models."""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy.pool import NullPool

os.environ.setdefault("APP_ENV", "dev")
from tessera.core.config import get_settings
from tessera.core.database import build_engine
from tessera.models import Base

# users, refresh_tokens and password_reset_tokens must all be registered on Base.metadata.
from tessera.models import PasswordResetToken, RefreshToken, User  # noqa: F401

config = context.config
if config.config_file_name is not None:
    try:
        fileConfig(config.config_file_name)
    except KeyError:
        # alembic.ini carries no logging sections
        pass

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL for the auth tables without a database connection."""
    context.configure(
        url=get_settings().DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a single un-pooled connection."""
    migration_engine = build_engine(get_settings(), poolclass=NullPool)
    with migration_engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
