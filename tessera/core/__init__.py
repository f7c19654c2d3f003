"""Core app configuration, database and security primitives."""

from tessera.core.config import get_settings, settings
from tessera.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]
