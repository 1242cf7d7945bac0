"""
Configuration Management.

Configuration sources (in order of precedence):
1. Environment variables
2. .env file
3. Default values

Example:
    from mapreviews.config import get_settings

    settings = get_settings()
    token = settings.apify_api_token
"""

from mapreviews.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
