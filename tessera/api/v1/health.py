"""Health check: database connectivity plus the auth features this deployment has enabled."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tessera.core.config import Settings, get_settings
from tessera.core.database import check_db_connected, get_db
from tessera.schemas.health import HealthResponse

router = APIRouter()


def _cleanup_mode(settings: Settings) -> str:
    if not settings.TOKEN_CLEANUP_ENABLED:
        return "disabled"
    return "in_process" if settings.TOKEN_CLEANUP_IN_PROCESS else "external"


@router.get("", response_model=HealthResponse)
def get_health(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """Used by load balancers and monitoring; always 200, 'degraded' when the database is down."""
    connected = check_db_connected(db)
    return HealthResponse(
        status="ok" if connected else "degraded",
        environment=settings.APP_ENV,
        database="connected" if connected else "disconnected",
        token_cleanup=_cleanup_mode(settings),
        google_oauth=settings.google_oauth_configured,
    )
