"""Core app configuration, database and security."""

from widgetadmin.core.config import get_settings, settings
from widgetadmin.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]
