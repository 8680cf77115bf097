"""Core app configuration, database, security and errors."""

from backoffice.core.config import get_settings, settings
from backoffice.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]
