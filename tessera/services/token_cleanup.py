"""Token cleanup: delete expired, revoked and used tokens past the retention window."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from tessera.models.base import utcnow
from tessera.services.password_reset import PasswordResetTokenStore
from tessera.services.refresh_tokens import RefreshTokenStore

if TYPE_CHECKING:
    from tessera.core.config import Settings

logger = logging.getLogger(__name__)


def run_token_cleanup(
    session: Session,
    settings: "Settings",
    now: datetime | None = None,
) -> tuple[int, int]:
    """
    Delete refresh and password reset tokens that expired more than
    TOKEN_RETENTION_DAYS ago, plus any revoked or used ones.

    Returns (refresh_tokens_deleted, reset_tokens_deleted). Idempotent: safe to run repeatedly.
    """
    if not settings.TOKEN_CLEANUP_ENABLED:
        logger.info("Token cleanup is disabled (TOKEN_CLEANUP_ENABLED=false); skipping.")
        return (0, 0)

    cutoff = (now or utcnow()) - timedelta(days=settings.TOKEN_RETENTION_DAYS)
    try:
        refresh_deleted = RefreshTokenStore(session).delete_expired(cutoff)
        reset_deleted = PasswordResetTokenStore(session).delete_expired(cutoff)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Token cleanup run: cutoff=%s, refresh_tokens_deleted=%s, reset_tokens_deleted=%s",
        cutoff.isoformat(),
        refresh_deleted,
        reset_deleted,
    )
    return (refresh_deleted, reset_deleted)


def _run_once(session_factory: Callable[[], Session], settings: "Settings") -> tuple[int, int]:
    session = session_factory()
    try:
        return run_token_cleanup(session, settings)
    finally:
        session.close()


async def run_cleanup_loop(
    session_factory: Callable[[], Session],
    settings: "Settings",
    interval_seconds: float | None = None,
) -> None:
    """
    Run token cleanup forever, once per TOKEN_CLEANUP_INTERVAL_HOURS.

    Each cycle runs in a worker thread with its own session. A failed cycle is
    logged and the loop waits for the next interval; only cancellation stops it.
    """
    interval = (
        interval_seconds
        if interval_seconds is not None
        else settings.TOKEN_CLEANUP_INTERVAL_HOURS * 3600
    )
    logger.info("Token cleanup loop started with interval of %ss", interval)
    try:
        while True:
            try:
                await asyncio.to_thread(_run_once, session_factory, settings)
            except Exception as e:
                logger.exception("Token cleanup cycle failed: %s", e)
            await asyncio.sleep(interval)
    finally:
        logger.info("Token cleanup loop stopped")
