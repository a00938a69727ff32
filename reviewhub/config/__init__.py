"""
Configuration Management.

Settings are loaded with Pydantic Settings from (in order of precedence):
1. Environment variables
2. .env file
3. Default values

Example:
    from reviewhub.config import get_settings

    settings = get_settings()
    database_url = settings.database_url
"""

from reviewhub.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
