"""Database module - ORM models and database connection."""
from .base import Base, engine, get_session_context
from .models import (
    Device,
    DevicePort,
    SystemLog,
)

__all__ = [
    "Base",
    "engine",
    "get_session_context",
    "Device",
    "DevicePort",
    "SystemLog",
]
