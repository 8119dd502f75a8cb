"""Service layer: AI domain services and the shared cache"""
from app.services.cache import CacheService

__all__ = [
    "CacheService",
]
