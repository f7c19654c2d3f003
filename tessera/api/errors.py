"""Translate service errors into HTTP responses, once, at the API boundary."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tessera.services.errors import AuthServiceError

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "An unexpected error occurred. Please try again later."


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for typed service errors and a generic 500 for anything else."""

    @app.exception_handler(AuthServiceError)
    async def handle_service_error(request: Request, exc: AuthServiceError) -> JSONResponse:
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "Service error",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": exc.status_code,
                "error_type": type(exc).__name__,
            },
            exc_info=exc.status_code >= 500,
        )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message},
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error",
            extra={"path": request.url.path, "method": request.method},
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"detail": GENERIC_SERVER_ERROR})
