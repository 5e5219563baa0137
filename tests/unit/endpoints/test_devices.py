"""
Tests for app.api.endpoints.devices.

Covers:
- POST /devices/poll
- POST /devices/{device_id}/poll (success, 404, forced DOWN)
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.api.endpoints.devices import router
from app.core.enums import DeviceStatus
from app.snmp.poller import DeviceHealthSnapshot, DevicePollError
from app.snmp.polling_service import DeviceNotFoundError, get_polling_service


def _create_app(service) -> FastAPI:
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_polling_service] = lambda: service
    return app


def _make_service() -> MagicMock:
    service = MagicMock()
    service.poll_all = AsyncMock()
    service.poll_device = AsyncMock()
    return service


async def _post(app: FastAPI, path: str):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        return await ac.post(path)


@pytest.mark.asyncio
async def test_poll_all():
    service = _make_service()
    service.poll_all.return_value = {"total": 3, "up": 2, "down": 1, "failed": 0, "elapsed": 0.5}

    resp = await _post(_create_app(service), "/devices/poll")

    assert resp.status_code == 200
    assert resp.json()["up"] == 2
    service.poll_all.assert_awaited_once()


@pytest.mark.asyncio
async def test_poll_one_device():
    service = _make_service()
    service.poll_device.return_value = DeviceHealthSnapshot(
        device_id=4, hostname="10.0.0.4", reachable=True,
        status=DeviceStatus.UP, availability=100.0, sys_name="core-01",
    )

    resp = await _post(_create_app(service), "/devices/4/poll")

    body = resp.json()
    assert body["success"] is True
    assert body["status"] == "UP"
    assert body["sysName"] == "core-01"
    service.poll_device.assert_awaited_once_with(4)


@pytest.mark.asyncio
async def test_poll_unknown_device_is_404():
    service = _make_service()
    service.poll_device.side_effect = DeviceNotFoundError("Device 9 not found")

    resp = await _post(_create_app(service), "/devices/9/poll")

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Device 9 not found"


@pytest.mark.asyncio
async def test_poll_failure_returns_forced_down_snapshot():
    service = _make_service()
    down = DeviceHealthSnapshot(
        device_id=4, hostname="10.0.0.4", reachable=True,
        status=DeviceStatus.DOWN, probe_succeeded=True,
        failures={"poll": "boom"},
    )
    service.poll_device.side_effect = DevicePollError("boom", snapshot=down)

    resp = await _post(_create_app(service), "/devices/4/poll")

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "boom"
    assert body["status"] == "DOWN"
    assert body["probeSucceeded"] is True
