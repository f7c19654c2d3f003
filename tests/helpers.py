"""Shared test fixtures: in-memory database and fast settings."""

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tessera.core.config import Settings
from tessera.core.security import PasswordHasher
from tessera.domain.user import UserAccount
from tessera.models import Base
from tessera.services.users import UserDirectory

TEST_JWT_SECRET = "test-secret-0123456789abcdef0123456789abcdef"
TEST_PASSWORD = "Passw0rd!"


def make_settings(**overrides: object) -> Settings:
    """Settings that ignore .env and hash with the cheapest bcrypt cost."""
    values: dict[str, object] = {
        "APP_ENV": "dev",
        "JWT_SECRET": TEST_JWT_SECRET,
        "BCRYPT_ROUNDS": 4,
        "TOKEN_CLEANUP_IN_PROCESS": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_session_factory() -> sessionmaker:
    """One in-memory SQLite database shared by every session from the factory."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def make_session() -> Session:
    return make_session_factory()()


def add_user(
    session: Session,
    email: str = "a@b.com",
    password: str = TEST_PASSWORD,
    role: str = "user",
    is_deleted: bool = False,
) -> UserAccount:
    """Insert and commit a user directly, bypassing the registration flow."""
    account = UserAccount.create(email, PasswordHasher(4).hash(password), role=role)
    if is_deleted:
        account = account.model_copy(update={"is_deleted": True})
    UserDirectory(session).insert(account)
    session.commit()
    return account.without_events()
