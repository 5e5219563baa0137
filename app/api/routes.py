"""
API router configuration.

Aggregates all endpoint routers.
"""
from __future__ import annotations

from fastapi import APIRouter

from app.api.endpoints import devices, snmp

api_router = APIRouter()

# Include routers (prefix and tags are declared on each router)
api_router.include_router(snmp.router)
api_router.include_router(devices.router)
