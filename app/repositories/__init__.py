"""
Repository package.

Provides data access layer using Repository Pattern.
"""
from app.repositories.base import BaseRepository
from app.repositories.device import DeviceRepository

__all__ = [
    "BaseRepository",
    "DeviceRepository",
]
