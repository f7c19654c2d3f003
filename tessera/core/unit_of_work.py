"""Commit helper: a single commit per operation, rolled back and translated on failure."""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tessera.services.errors import PersistenceError

logger = logging.getLogger(__name__)


def commit_or_rollback(session: Session, operation: str) -> None:
    """
    Commit the session's pending writes as one transaction.

    On failure the transaction is rolled back and PersistenceError is raised;
    the database error is logged here and never reaches the client.
    IntegrityError is re-raised unchanged so callers can translate conflicts.
    """
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(
            "Commit failed",
            extra={"operation": operation, "error_type": type(e).__name__},
            exc_info=True,
        )
        raise PersistenceError() from e
