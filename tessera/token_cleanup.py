"""
CLI entrypoint for the token cleanup job. Run from cron, e.g.:

  python -m tessera.token_cleanup

Or weekly: 0 3 * * 0 cd /path/to/tessera && .venv/bin/python -m tessera.token_cleanup

With --loop it keeps running and cleans up every TOKEN_CLEANUP_INTERVAL_HOURS.
"""

import argparse
import asyncio
import logging
import sys

from tessera.core.config import get_settings
from tessera.core.database import SessionLocal
from tessera.services.token_cleanup import run_cleanup_loop, run_token_cleanup

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Run token cleanup once (default) or on an interval (--loop)."""
    parser = argparse.ArgumentParser(description="Delete expired, revoked and used tokens.")
    parser.add_argument(
        "--loop",
        action="store_true",
        help="Keep running, once per TOKEN_CLEANUP_INTERVAL_HOURS",
    )
    args = parser.parse_args()
    settings = get_settings()

    if args.loop:
        try:
            asyncio.run(run_cleanup_loop(SessionLocal, settings))
        except KeyboardInterrupt:
            logger.info("Token cleanup loop interrupted")
        return 0

    db = SessionLocal()
    try:
        refresh_deleted, reset_deleted = run_token_cleanup(db, settings)
        logger.info(
            "Token cleanup completed: refresh_tokens_deleted=%s, reset_tokens_deleted=%s",
            refresh_deleted,
            reset_deleted,
        )
        return 0
    except Exception as e:
        logger.exception("Token cleanup job failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
