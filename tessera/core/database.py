"""PostgreSQL engine, request-scoped sessions and connectivity check."""

import logging
from collections.abc import Generator
from typing import TYPE_CHECKING, Any

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from tessera.core.config import settings

if TYPE_CHECKING:
    from tessera.core.config import Settings

logger = logging.getLogger(__name__)


def build_engine(app_settings: "Settings", **kwargs: Any) -> Engine:
    """Engine for DATABASE_URL; SQL echo follows DEBUG. Extra kwargs go to create_engine."""
    kwargs.setdefault("pool_pre_ping", True)
    return create_engine(app_settings.DATABASE_URL, echo=app_settings.DEBUG, **kwargs)


engine = build_engine(settings)

# Services flush and commit explicitly; nothing is written behind their back.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency that yields a DB session and closes it when done.

    Closing a session with an open transaction rolls it back, so a request
    that fails (or is cancelled) before commit leaves nothing behind.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_connected(db: Session) -> bool:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database connectivity check failed", exc_info=True)
        return False
    return True
