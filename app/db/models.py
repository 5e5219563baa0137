"""
Database ORM models.

Devices and their interfaces as last seen by the poller, plus the audit log.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.enums import DeviceStatus
from app.db.base import Base

# Unsigned 64-bit counters do not fit a signed BIGINT
Counter64 = Numeric(20, 0)


# ══════════════════════════════════════════════════════════════════
# 設備
# ══════════════════════════════════════════════════════════════════


class Device(Base):
    """受監控的 SNMP 設備（連線參數 + 最近一次 poll 結果）。"""

    __tablename__ = "devices"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    hostname: Mapped[str] = mapped_column(String(253), unique=True, index=True)
    port: Mapped[int] = mapped_column(Integer, default=161)
    timeout_ms: Mapped[int] = mapped_column(Integer, default=5000)
    retries: Mapped[int] = mapped_column(Integer, default=3)
    transport: Mapped[str] = mapped_column(String(10), default="udp4")

    # Credentials
    snmp_version: Mapped[str] = mapped_column(String(5), default="v2c")
    community: Mapped[str | None] = mapped_column(String(255), nullable=True)
    username: Mapped[str | None] = mapped_column(String(32), nullable=True)
    auth_level: Mapped[str | None] = mapped_column(String(20), nullable=True)
    auth_protocol: Mapped[str | None] = mapped_column(String(10), nullable=True)
    auth_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    priv_protocol: Mapped[str | None] = mapped_column(String(10), nullable=True)
    priv_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    context_name: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Poll state
    status: Mapped[DeviceStatus] = mapped_column(
        Enum(DeviceStatus), default=DeviceStatus.DOWN,
    )
    availability: Mapped[float] = mapped_column(Float, default=0.0)
    sys_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sys_descr: Mapped[str | None] = mapped_column(Text, nullable=True)
    sys_object_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sys_contact: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sys_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sys_uptime: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    last_polled: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'), onupdate=func.now())

    ports: Mapped[list[DevicePort]] = relationship(
        back_populates="device", cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Device {self.hostname} [{self.status}]>"


class DevicePort(Base):
    """設備介面；(device_id, if_index) 唯一，poll 時 upsert。"""

    __tablename__ = "device_ports"
    __table_args__ = (
        UniqueConstraint("device_id", "if_index", name="uq_device_ports_device_ifindex"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    device_id: Mapped[int] = mapped_column(
        ForeignKey("devices.id", ondelete="CASCADE"), index=True,
    )
    if_index: Mapped[int] = mapped_column(Integer)
    if_descr: Mapped[str | None] = mapped_column(String(255), nullable=True)
    if_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    if_alias: Mapped[str | None] = mapped_column(String(255), nullable=True)
    if_type: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mtu: Mapped[int | None] = mapped_column(Integer, nullable=True)
    speed: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    phys_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    admin_status: Mapped[str] = mapped_column(String(20), default="unknown")
    oper_status: Mapped[str] = mapped_column(String(20), default="unknown")
    last_change: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    in_octets = Column(Counter64, nullable=True)
    out_octets = Column(Counter64, nullable=True)
    in_errors = Column(Counter64, nullable=True)
    out_errors = Column(Counter64, nullable=True)
    in_discards = Column(Counter64, nullable=True)
    out_discards = Column(Counter64, nullable=True)
    counters_64bit: Mapped[bool] = mapped_column(Boolean, default=False)

    updated_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'), onupdate=func.now())

    device: Mapped[Device] = relationship(back_populates="ports")

    def __repr__(self) -> str:
        return f"<DevicePort {self.device_id}:{self.if_index}>"


# ══════════════════════════════════════════════════════════════════
# 系統日誌
# ══════════════════════════════════════════════════════════════════


class SystemLog(Base):
    """系統日誌（audit log）。"""

    __tablename__ = "system_logs"

    id = Column(Integer, primary_key=True)
    level = Column(String(20), index=True, nullable=False)
    source = Column(String(50), index=True, nullable=False)
    operation = Column(String(200), nullable=True)
    summary = Column(String(500), nullable=False)
    detail = Column(Text, nullable=True)
    device_hostname = Column(String(253), nullable=True, index=True)
    device_identity = Column(String(400), nullable=True, index=True)
    error_type = Column(String(50), nullable=True, index=True)
    probe_succeeded = Column(Boolean, nullable=True)
    request_path = Column(String(500), nullable=True)
    request_method = Column(String(10), nullable=True)
    status_code = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=text('CURRENT_TIMESTAMP'), index=True)

    def __repr__(self) -> str:
        return f"<SystemLog [{self.level}] {self.source}: {self.summary[:30]}>"
