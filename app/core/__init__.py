"""Core configuration and utilities"""
from app.core.config import Settings, get_settings
from app.core.redis import RedisClient

__all__ = [
    "Settings",
    "get_settings",
    "RedisClient",
]
