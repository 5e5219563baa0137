"""Core module - contains enums and configuration."""
from .enums import (
    DeviceStatus,
    InterfaceStatus,
    SnmpDataType,
    SnmpVersion,
)
from .config import settings

__all__ = [
    "DeviceStatus",
    "InterfaceStatus",
    "SnmpDataType",
    "SnmpVersion",
    "settings",
]
