"""
Device Poller.

每個 poll cycle 對單一設備跑一次狀態機：

1. Probe     — test connection；失敗 → DOWN、availability 0，保留舊資料
2. Discover  — system info 與 interface info 各自獨立，一邊失敗不影響另一邊
3. Reconcile — 只用「有拿到」的欄位覆蓋舊值（last known good），
               interface 依 ifIndex upsert，沒回來的 interface 不刪
4. Persist   — 交給 DevicePollingService / DeviceRepository

Probe 成功後若發生非 SNMP 的未預期例外，仍強制回報 DOWN（availability 0）
再往外丟，不讓設備停在「probe 成功但 reconcile 壞掉」的模糊狀態。
probe_succeeded 另外保留，讓 log / API 看得出是哪一段失敗。
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from app.core.enums import DeviceStatus
from app.snmp.client import SnmpClient
from app.snmp.errors import SnmpCapabilityError, SnmpError
from app.snmp.types import InterfaceRecord, SnmpDevice, SystemInfo

logger = logging.getLogger(__name__)

AVAILABILITY_UP = 100.0
AVAILABILITY_DOWN = 0.0

_SYSTEM_FIELDS = (
    "sys_name",
    "sys_descr",
    "sys_object_id",
    "sys_contact",
    "sys_location",
    "sys_uptime",
)


@dataclass
class DeviceHealthSnapshot:
    """Result of one poll cycle for one device."""

    device_id: int | None
    hostname: str
    reachable: bool = False
    status: DeviceStatus = DeviceStatus.DOWN
    availability: float = AVAILABILITY_DOWN
    sys_name: str | None = None
    sys_descr: str | None = None
    sys_object_id: str | None = None
    sys_contact: str | None = None
    sys_location: str | None = None
    sys_uptime: int | None = None
    interfaces: dict[int, InterfaceRecord] = field(default_factory=dict)
    probe_succeeded: bool = False
    failures: dict[str, str] = field(default_factory=dict)
    message: str = ""
    polled_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "hostname": self.hostname,
            "reachable": self.reachable,
            "status": self.status.value,
            "availability": self.availability,
            "sysName": self.sys_name,
            "sysDescr": self.sys_descr,
            "sysObjectID": self.sys_object_id,
            "sysContact": self.sys_contact,
            "sysLocation": self.sys_location,
            "sysUpTime": self.sys_uptime,
            "interfaces": [
                self.interfaces[idx].to_dict() for idx in sorted(self.interfaces)
            ],
            "probeSucceeded": self.probe_succeeded,
            "failures": dict(self.failures),
            "message": self.message,
            "polledAt": self.polled_at.isoformat() if self.polled_at else None,
        }


class DevicePollError(Exception):
    """Poll crashed after the probe; carries the forced-DOWN snapshot."""

    def __init__(self, message: str, snapshot: DeviceHealthSnapshot) -> None:
        super().__init__(message)
        self.snapshot = snapshot


def _now() -> datetime:
    return datetime.now(timezone.utc)


def force_down(
    previous: DeviceHealthSnapshot,
    *,
    polled_at: datetime,
    probe_succeeded: bool,
    message: str,
    failures: dict[str, str] | None = None,
) -> DeviceHealthSnapshot:
    """DOWN snapshot that keeps every previously known field."""
    return replace(
        previous,
        reachable=probe_succeeded,
        status=DeviceStatus.DOWN,
        availability=AVAILABILITY_DOWN,
        interfaces=dict(previous.interfaces),
        probe_succeeded=probe_succeeded,
        failures=dict(failures or {}),
        message=message,
        polled_at=polled_at,
    )


def reconcile(
    previous: DeviceHealthSnapshot,
    *,
    system: SystemInfo | None,
    interfaces: list[InterfaceRecord] | None,
    polled_at: datetime,
    failures: dict[str, str],
) -> DeviceHealthSnapshot:
    """
    Merge fresh discovery results into the previous snapshot.

    System fields fall back to the prior value when not returned;
    interfaces are upserted by ifIndex and never deleted.
    """
    merged = dict(previous.interfaces)
    for record in interfaces or []:
        merged[record.if_index] = record

    values: dict[str, Any] = {}
    for name in _SYSTEM_FIELDS:
        fresh = getattr(system, name, None) if system is not None else None
        values[name] = fresh if fresh is not None else getattr(previous, name)

    message = "Poll completed" if not failures else (
        "Poll completed with partial failures: " + ", ".join(sorted(failures))
    )
    return replace(
        previous,
        reachable=True,
        status=DeviceStatus.UP,
        availability=AVAILABILITY_UP,
        interfaces=merged,
        probe_succeeded=True,
        failures=dict(failures),
        message=message,
        polled_at=polled_at,
        **values,
    )


class DevicePoller:
    """Probe → discover → reconcile for one device; persistence is the caller's job."""

    def __init__(self, client: SnmpClient) -> None:
        self._client = client

    async def poll(
        self,
        device: SnmpDevice,
        previous: DeviceHealthSnapshot | None = None,
        device_id: int | None = None,
    ) -> DeviceHealthSnapshot:
        """
        Run one poll cycle.

        Raises:
            DevicePollError: unexpected failure after a successful probe;
                ``.snapshot`` is the forced-DOWN result to persist.
        """
        previous = previous or DeviceHealthSnapshot(
            device_id=device_id, hostname=device.hostname,
        )
        polled_at = _now()

        # 1. Probe
        try:
            probe = await self._client.probe(device)
        except SnmpCapabilityError as e:
            logger.warning("Cannot poll %s: %s", device, e)
            return force_down(
                previous, polled_at=polled_at,
                probe_succeeded=False, message=str(e),
                failures={"probe": str(e)},
            )
        if not probe.reachable:
            logger.info("Device %s unreachable: %s", device, probe.message)
            return force_down(
                previous, polled_at=polled_at,
                probe_succeeded=False, message=probe.message,
            )
        if not probe.authenticated:
            # 可達但認證失敗：discovery 一定失敗，不浪費 timeout
            logger.warning("Device %s reachable but rejected credentials", device)
            return reconcile(
                previous, system=None, interfaces=None, polled_at=polled_at,
                failures={"authentication": probe.message},
            )

        try:
            # 2. Discover
            failures: dict[str, str] = {}
            system: SystemInfo | None = None
            interfaces: list[InterfaceRecord] | None = None
            try:
                system = await self._client.get_system_info(device)
            except SnmpError as e:
                failures["systemInfo"] = str(e)
                logger.warning("System info failed on %s: %s", device, e)
            try:
                interfaces = await self._client.get_interface_info(device)
            except SnmpError as e:
                failures["interfaces"] = str(e)
                logger.warning("Interface info failed on %s: %s", device, e)

            # 3. Reconcile
            return reconcile(
                previous, system=system, interfaces=interfaces,
                polled_at=polled_at, failures=failures,
            )
        except Exception as e:
            logger.error(
                "Poll of %s failed after successful probe: %s", device, e,
                exc_info=True,
            )
            down = force_down(
                previous, polled_at=polled_at, probe_succeeded=True,
                message=f"Poll failed after successful probe: {e}",
                failures={"poll": str(e)},
            )
            raise DevicePollError(str(e), snapshot=down) from e
