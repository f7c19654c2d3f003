"""Health check response."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"] = Field(description="'degraded' when the database is unreachable")
    environment: str
    database: Literal["connected", "disconnected"]
    token_cleanup: Literal["in_process", "external", "disabled"] = Field(
        description="Where expired tokens are swept from"
    )
    google_oauth: bool = Field(description="Whether Google sign-in is configured")
