"""Pydantic schemas for API request/response models."""
from .snmp import (
    SnmpBulkWalkRequest,
    SnmpCredentialsRequest,
    SnmpDeviceRequest,
    SnmpDiscoverRequest,
    SnmpGetRequest,
    SnmpSetRequest,
    SnmpTestConnectionRequest,
    SnmpVarbindRequest,
    SnmpWalkRequest,
)

__all__ = [
    "SnmpBulkWalkRequest",
    "SnmpCredentialsRequest",
    "SnmpDeviceRequest",
    "SnmpDiscoverRequest",
    "SnmpGetRequest",
    "SnmpSetRequest",
    "SnmpTestConnectionRequest",
    "SnmpVarbindRequest",
    "SnmpWalkRequest",
]
