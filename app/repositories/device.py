"""
Device Repository.

Loads polling targets and persists poll snapshots (device + ports).
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.core.enums import (
    DeviceStatus,
    InterfaceStatus,
    SnmpAuthLevel,
    SnmpAuthProtocol,
    SnmpPrivProtocol,
    SnmpTransport,
    SnmpVersion,
)
from app.db.models import Device, DevicePort
from app.repositories.base import BaseRepository
from app.snmp.poller import AVAILABILITY_DOWN, DeviceHealthSnapshot
from app.snmp.types import InterfaceRecord, SnmpCredentials, SnmpDevice

logger = logging.getLogger(__name__)

_COUNTER_FIELDS = (
    "in_octets",
    "out_octets",
    "in_errors",
    "out_errors",
    "in_discards",
    "out_discards",
)


def _as_int(value: Any) -> int | None:
    """Numeric(20,0) columns come back as Decimal."""
    return int(value) if value is not None else None


def _naive_utc(value: datetime | None) -> datetime | None:
    # DB 的 DateTime 欄位不帶時區，一律存 UTC naive
    if value is None or value.tzinfo is None:
        return value
    return value.replace(tzinfo=None)


class DeviceRepository(BaseRepository[Device]):
    """Repository for Device and its DevicePort rows."""

    model = Device

    async def get_with_ports(self, device_id: int) -> Device | None:
        stmt = (
            select(Device)
            .where(Device.id == device_id)
            .options(selectinload(Device.ports))
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active_ids(self) -> list[int]:
        stmt = (
            select(Device.id)
            .where(Device.is_active == True)  # noqa: E712
            .order_by(Device.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ── Model <-> domain ─────────────────────────────────────────────

    @staticmethod
    def to_snmp_device(device: Device) -> SnmpDevice:
        """Build the connection parameters the SNMP client needs."""
        credentials = SnmpCredentials(
            version=SnmpVersion(device.snmp_version),
            community=device.community,
            username=device.username,
            auth_level=SnmpAuthLevel(device.auth_level) if device.auth_level else None,
            auth_protocol=(
                SnmpAuthProtocol(device.auth_protocol) if device.auth_protocol else None
            ),
            auth_password=device.auth_password,
            priv_protocol=(
                SnmpPrivProtocol(device.priv_protocol) if device.priv_protocol else None
            ),
            priv_password=device.priv_password,
            context_name=device.context_name,
        )
        return SnmpDevice(
            hostname=device.hostname,
            credentials=credentials,
            port=device.port,
            timeout=device.timeout_ms,
            retries=device.retries,
            transport=SnmpTransport(device.transport),
        )

    @staticmethod
    def _port_to_record(port: DevicePort) -> InterfaceRecord:
        counters = {name: _as_int(getattr(port, name)) for name in _COUNTER_FIELDS}
        return InterfaceRecord(
            if_index=port.if_index,
            descr=port.if_descr,
            name=port.if_name,
            alias=port.if_alias,
            if_type=port.if_type,
            mtu=port.mtu,
            speed=port.speed,
            phys_address=port.phys_address,
            admin_status=InterfaceStatus.from_name(port.admin_status),
            oper_status=InterfaceStatus.from_name(port.oper_status),
            last_change=port.last_change,
            counters_64bit=bool(port.counters_64bit),
            **counters,
        )

    def load_snapshot(self, device: Device) -> DeviceHealthSnapshot:
        """Last persisted state, used as the fallback for the next poll."""
        return DeviceHealthSnapshot(
            device_id=device.id,
            hostname=device.hostname,
            reachable=device.status is DeviceStatus.UP,
            status=device.status or DeviceStatus.DOWN,
            availability=device.availability or AVAILABILITY_DOWN,
            sys_name=device.sys_name,
            sys_descr=device.sys_descr,
            sys_object_id=device.sys_object_id,
            sys_contact=device.sys_contact,
            sys_location=device.sys_location,
            sys_uptime=device.sys_uptime,
            interfaces={p.if_index: self._port_to_record(p) for p in device.ports},
            polled_at=device.last_polled,
        )

    # ── Persistence ──────────────────────────────────────────────────

    async def save_snapshot(self, device: Device, snapshot: DeviceHealthSnapshot) -> Device:
        """
        Write a poll result back.

        Ports are upserted by (device_id, if_index); ports missing from the
        snapshot are left untouched.
        """
        device.status = snapshot.status
        device.availability = snapshot.availability
        device.sys_name = snapshot.sys_name
        device.sys_descr = snapshot.sys_descr
        device.sys_object_id = snapshot.sys_object_id
        device.sys_contact = snapshot.sys_contact
        device.sys_location = snapshot.sys_location
        device.sys_uptime = snapshot.sys_uptime
        device.last_polled = _naive_utc(snapshot.polled_at)

        existing = {p.if_index: p for p in device.ports}
        for if_index, record in snapshot.interfaces.items():
            port = existing.get(if_index)
            if port is None:
                port = DevicePort(if_index=if_index)
                device.ports.append(port)
            self._apply_record(port, record)

        await self.flush()
        logger.debug(
            "Saved snapshot for %s: %s, %d ports",
            device.hostname, snapshot.status.value, len(snapshot.interfaces),
        )
        return device

    @staticmethod
    def _apply_record(port: DevicePort, record: InterfaceRecord) -> None:
        port.if_descr = record.descr
        port.if_name = record.name
        port.if_alias = record.alias
        port.if_type = record.if_type
        port.mtu = record.mtu
        port.speed = record.effective_speed
        port.phys_address = record.phys_address
        port.admin_status = record.admin_status.value
        port.oper_status = record.oper_status.value
        port.last_change = record.last_change
        for name in _COUNTER_FIELDS:
            setattr(port, name, getattr(record, name))
        port.counters_64bit = record.counters_64bit

    async def mark_down(self, device: Device, polled_at: datetime | None = None) -> Device:
        """Force DOWN without touching any other last-known field."""
        device.status = DeviceStatus.DOWN
        device.availability = AVAILABILITY_DOWN
        if polled_at is not None:
            device.last_polled = _naive_utc(polled_at)
        await self.flush()
        return device
