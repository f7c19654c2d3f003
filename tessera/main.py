"""FastAPI application entrypoint. No business logic; only wiring, middleware and lifespan."""

from dotenv import load_dotenv

load_dotenv()

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tessera.api.cookies import ANTIFORGERY_HEADER
from tessera.api.errors import register_exception_handlers
from tessera.api.v1 import router as v1_router
from tessera.core.config import settings
from tessera.core.database import SessionLocal
from tessera.services.token_cleanup import run_cleanup_loop

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the token cleanup loop when it runs in-process; cancel it on shutdown."""
    cleanup_task: asyncio.Task | None = None
    if settings.TOKEN_CLEANUP_ENABLED and settings.TOKEN_CLEANUP_IN_PROCESS:
        cleanup_task = asyncio.create_task(run_cleanup_loop(SessionLocal, settings))
    try:
        yield
    finally:
        if cleanup_task is not None:
            cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await cleanup_task


app = FastAPI(
    title="Tessera API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Cookies require an explicit origin; "*" cannot be combined with credentials.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CLIENT_APP_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[ANTIFORGERY_HEADER],
)

register_exception_handlers(app)
app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Root route; minimal payload for discovery."""
    return {"message": "Tessera API"}
