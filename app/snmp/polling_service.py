"""
Device Polling Service.

排程與 API 共用的 poll 入口：

    DB 載入設備 + 上次狀態 → DevicePoller.poll() → 寫回 DB

- 所有設備並行，由 Semaphore(snmp_concurrency) 控制同時 poll 的數量
- 同一設備同時只會有一個 poll（per-device lock），排程與手動觸發不互相覆蓋
- poll 或寫回失敗時，設備一律標記 DOWN 並寫入 SystemLog
"""
from __future__ import annotations

import asyncio
import logging
import time as _time
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.base import get_session_context
from app.repositories.device import DeviceRepository
from app.snmp.client import SnmpClient, SnmpClientConfig
from app.snmp.engine import AsyncSnmpEngine, BaseSnmpEngine
from app.snmp.poller import (
    DeviceHealthSnapshot,
    DevicePoller,
    DevicePollError,
    force_down,
)
from app.snmp.response_cache import ResponseCache
from app.snmp.types import SnmpDevice

logger = logging.getLogger(__name__)


class DeviceNotFoundError(LookupError):
    """Requested device id does not exist."""


def build_engine() -> BaseSnmpEngine:
    """Real UDP engine, or the in-memory agent when SNMP_MOCK=true."""
    if settings.snmp_mock:
        from app.snmp.mock_engine import MockSnmpEngine
        logger.info("SNMP client using MOCK engine (no real devices)")
        return MockSnmpEngine(auto_populate=True)
    return AsyncSnmpEngine()


def build_client(engine: BaseSnmpEngine | None = None) -> SnmpClient:
    config = SnmpClientConfig.from_settings()
    cache = ResponseCache(
        max_entries=settings.snmp_cache_max_entries,
        default_ttl=config.default_ttl,
    )
    return SnmpClient(engine or build_engine(), cache=cache, config=config)


class DevicePollingService:
    """Poll devices stored in the database and persist the results."""

    def __init__(
        self,
        client: SnmpClient,
        concurrency: int | None = None,
        session_context: Callable[[], AbstractAsyncContextManager[AsyncSession]] = get_session_context,
    ) -> None:
        self._client = client
        self._session_context = session_context
        self._poller = DevicePoller(client)
        self._concurrency = concurrency or settings.snmp_concurrency
        self._locks: dict[int, asyncio.Lock] = {}

    @property
    def client(self) -> SnmpClient:
        return self._client

    def _lock_for(self, device_id: int) -> asyncio.Lock:
        lock = self._locks.get(device_id)
        if lock is None:
            lock = self._locks[device_id] = asyncio.Lock()
        return lock

    async def poll_device(self, device_id: int) -> DeviceHealthSnapshot:
        """
        Poll one device and persist the snapshot.

        Raises:
            DeviceNotFoundError: no device with this id.
            DevicePollError: poll or persistence failed; device stored as DOWN.
        """
        async with self._lock_for(device_id):
            return await self._poll_locked(device_id)

    async def _poll_locked(self, device_id: int) -> DeviceHealthSnapshot:
        async with self._session_context() as session:
            repo = DeviceRepository(session)
            device = await repo.get_with_ports(device_id)
            if device is None:
                raise DeviceNotFoundError(f"Device {device_id} not found")
            target = repo.to_snmp_device(device)
            previous = repo.load_snapshot(device)
            hostname = device.hostname

        try:
            snapshot = await self._poller.poll(target, previous, device_id=device_id)
        except DevicePollError as e:
            await self._persist_down(device_id, target, e.snapshot, e.__cause__ or e)
            raise

        try:
            async with self._session_context() as session:
                repo = DeviceRepository(session)
                device = await repo.get_with_ports(device_id)
                if device is None:
                    raise DeviceNotFoundError(f"Device {device_id} was removed during poll")
                await repo.save_snapshot(device, snapshot)
        except DeviceNotFoundError:
            raise
        except Exception as e:
            logger.error("Persisting poll result for %s failed: %s", hostname, e)
            down = force_down(
                snapshot,
                polled_at=snapshot.polled_at or datetime.now(timezone.utc),
                probe_succeeded=snapshot.probe_succeeded,
                message=f"Persisting poll result failed: {e}",
                failures={**snapshot.failures, "persist": str(e)},
            )
            await self._persist_down(device_id, target, down, e)
            raise DevicePollError(str(e), snapshot=down) from e

        logger.info(
            "Polled %s: %s (%d interfaces)",
            hostname, snapshot.status.value, len(snapshot.interfaces),
        )
        return snapshot

    async def _persist_down(
        self,
        device_id: int,
        target: SnmpDevice,
        snapshot: DeviceHealthSnapshot,
        exc: BaseException,
    ) -> None:
        """Best-effort DOWN write + SystemLog; never raises."""
        try:
            async with self._session_context() as session:
                repo = DeviceRepository(session)
                device = await repo.get_with_ports(device_id)
                if device is not None:
                    await repo.mark_down(device, snapshot.polled_at)
        except Exception as e:
            logger.error("Failed to mark %s DOWN: %s", target, e)

        from app.services.system_log import format_error_detail, write_log
        await write_log(
            level="ERROR",
            source="poller",
            summary=f"設備 poll 失敗，已標記 DOWN: {target.hostname}",
            detail=format_error_detail(
                exc=exc,
                operation="poll",
                device=target,
                context={"失敗步驟": ", ".join(sorted(snapshot.failures))},
            ),
            operation="poll",
            device=target,
            error=exc,
            probe_succeeded=snapshot.probe_succeeded,
        )

    async def poll_all(self) -> dict[str, Any]:
        """Poll every active device in parallel."""
        t0 = _time.monotonic()
        async with self._session_context() as session:
            device_ids = await DeviceRepository(session).list_active_ids()

        results: dict[str, Any] = {
            "total": len(device_ids),
            "up": 0,
            "down": 0,
            "failed": 0,
        }
        sem = asyncio.Semaphore(self._concurrency)

        async def _poll_one(device_id: int) -> str:
            async with sem:
                try:
                    snapshot = await self.poll_device(device_id)
                except (DevicePollError, DeviceNotFoundError):
                    return "failed"
                except Exception as e:
                    logger.error("Poll of device %s crashed: %s", device_id, e)
                    return "failed"
                return snapshot.status.value.lower()

        outcomes = await asyncio.gather(*[_poll_one(d) for d in device_ids])
        results["up"] = outcomes.count("up")
        results["down"] = outcomes.count("down")
        results["failed"] = outcomes.count("failed")
        results["elapsed"] = round(_time.monotonic() - t0, 2)

        logger.info(
            "Poll cycle: %d devices, %d up, %d down, %d failed, %.2fs",
            results["total"], results["up"], results["down"],
            results["failed"], results["elapsed"],
        )
        return results

    async def close(self) -> None:
        await self._client.close()


# ── Singleton ────────────────────────────────────────────────────

_client: SnmpClient | None = None
_service: DevicePollingService | None = None


def get_snmp_client() -> SnmpClient:
    """Shared client (one response cache per process)."""
    global _client
    if _client is None:
        _client = build_client()
    return _client


def get_polling_service() -> DevicePollingService:
    global _service
    if _service is None:
        _service = DevicePollingService(get_snmp_client())
    return _service
