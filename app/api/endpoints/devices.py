"""
Device polling API endpoints.

手動觸發 poll（單台 / 全部）；與排程共用 DevicePollingService，
同一台設備不會同時被 poll 兩次。
"""
from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException

from app.snmp.poller import DevicePollError
from app.snmp.polling_service import (
    DeviceNotFoundError,
    DevicePollingService,
    get_polling_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/devices", tags=["Devices"])

PollingService = Annotated[DevicePollingService, Depends(get_polling_service)]


@router.post("/poll")
async def poll_all_devices(service: PollingService) -> dict[str, Any]:
    """Poll every active device now."""
    return await service.poll_all()


@router.post("/{device_id}/poll")
async def poll_device(device_id: int, service: PollingService) -> dict[str, Any]:
    """
    Poll one device now and return its snapshot.

    poll 失敗時設備已被標記 DOWN，回傳的 snapshot 即寫入 DB 的狀態。
    """
    try:
        snapshot = await service.poll_device(device_id)
    except DeviceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except DevicePollError as e:
        return {"success": False, "error": str(e), **e.snapshot.to_dict()}
    return {"success": True, **snapshot.to_dict()}
