"""
Pydantic schemas for the SNMP API.

JSON 欄位一律 camelCase（maxRepetitions、authLevel…），Python 端用 snake_case。
Enum 欄位在這裡刻意用 str：格式錯誤交給 app.snmp.validator 回 400 + 完整錯誤清單，
而不是讓 pydantic 回 422。
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.core.enums import (
    SnmpAuthLevel,
    SnmpAuthProtocol,
    SnmpPrivProtocol,
    SnmpTransport,
    SnmpVersion,
)
from app.snmp.types import SnmpCredentials, SnmpDevice


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Device ──────────────────────────────────────────────────


class SnmpCredentialsRequest(CamelModel):
    """SNMP 認證資訊。"""

    version: str = Field(..., description="v1 / v2c / v3", examples=["v2c"])
    community: str | None = Field(None, description="v1/v2c community string")
    username: str | None = None
    auth_level: str | None = Field(None, description="noAuthNoPriv / authNoPriv / authPriv")
    auth_protocol: str | None = None
    auth_password: str | None = None
    priv_protocol: str | None = None
    priv_password: str | None = None
    context_name: str | None = None

    def to_domain(self) -> SnmpCredentials:
        """Call only after validate_device() passed."""
        return SnmpCredentials(
            version=SnmpVersion(self.version),
            community=self.community,
            username=self.username,
            auth_level=SnmpAuthLevel(self.auth_level) if self.auth_level else None,
            auth_protocol=SnmpAuthProtocol(self.auth_protocol) if self.auth_protocol else None,
            auth_password=self.auth_password,
            priv_protocol=SnmpPrivProtocol(self.priv_protocol) if self.priv_protocol else None,
            priv_password=self.priv_password,
            context_name=self.context_name,
        )


class SnmpDeviceRequest(CamelModel):
    """SNMP 目標設備。"""

    hostname: str = Field("", examples=["192.0.2.10"])
    port: int = 161
    timeout: int = Field(5000, description="Per-exchange timeout (ms)")
    retries: int = 3
    transport: str = "udp4"
    credentials: SnmpCredentialsRequest | None = None

    def to_domain(self) -> SnmpDevice:
        """Call only after validate_device() passed."""
        return SnmpDevice(
            hostname=self.hostname,
            credentials=self.credentials.to_domain(),
            port=self.port,
            timeout=self.timeout,
            retries=self.retries,
            transport=SnmpTransport(self.transport),
        )


# ── Requests ────────────────────────────────────────────────


class SnmpGetRequest(CamelModel):
    device: SnmpDeviceRequest
    oids: list[str] = Field(default_factory=list, examples=[["1.3.6.1.2.1.1.1.0"]])


class SnmpWalkRequest(CamelModel):
    device: SnmpDeviceRequest
    oid: str = Field(..., examples=["1.3.6.1.2.1.2.2"])
    max_repetitions: int = 20


class SnmpBulkWalkRequest(CamelModel):
    device: SnmpDeviceRequest
    oid: str
    non_repeaters: int = 0
    max_repetitions: int = 20


class SnmpVarbindRequest(CamelModel):
    oid: str
    type: str = Field(..., examples=["OCTET STRING"])
    value: Any = None


class SnmpSetRequest(CamelModel):
    device: SnmpDeviceRequest
    varbinds: list[SnmpVarbindRequest] = Field(default_factory=list)


class SnmpTestConnectionRequest(CamelModel):
    device: SnmpDeviceRequest


class SnmpDiscoverRequest(CamelModel):
    device: SnmpDeviceRequest
    include_system_info: bool = True
    include_interfaces: bool = True
    include_sensors: bool = False
