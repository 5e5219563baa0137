"""
SNMP value objects.

Dataclasses passed between the protocol client, cache, poller and API layer.
These are NOT ORM models - they're simple data containers.
"""
from __future__ import annotations

import hashlib
import hmac
import secrets
import string
from dataclasses import dataclass, field
from typing import Any

from app.core.enums import (
    InterfaceStatus,
    SnmpAuthLevel,
    SnmpAuthProtocol,
    SnmpDataType,
    SnmpPrivProtocol,
    SnmpTransport,
    SnmpVersion,
)

UINT64_MAX = 2**64 - 1

_PRINTABLE = set(string.printable) - set("\x0b\x0c")

# 每個 process 一把；fingerprint 只在同一 process 內比對（cache key）
_FINGERPRINT_KEY = secrets.token_bytes(32)


# ── OID helpers ──────────────────────────────────────────────────────


def oid_to_tuple(oid: str) -> tuple[int, ...]:
    """'1.3.6.1' -> (1, 3, 6, 1). Leading dot tolerated."""
    return tuple(int(part) for part in oid.strip(".").split("."))


def oid_in_subtree(oid: str, root: str) -> bool:
    """True when *oid* is strictly below *root*."""
    root = root.strip(".")
    return oid.strip(".").startswith(root + ".")


def oid_suffix(oid: str, root: str) -> str:
    """Instance part of *oid* under *root*, e.g. ifDescr.12 -> '12'."""
    return oid.strip(".")[len(root.strip(".")) + 1:]


# ── Credentials / device ─────────────────────────────────────────────


@dataclass(frozen=True)
class SnmpCredentials:
    """
    Authentication material for one device.

    v1/v2c 只用 community；v3 用 username + auth/priv 設定。
    Secret fields are excluded from repr so they never reach a log line.
    """

    version: SnmpVersion
    community: str | None = field(default=None, repr=False)
    username: str | None = None
    auth_level: SnmpAuthLevel | None = None
    auth_protocol: SnmpAuthProtocol | None = None
    auth_password: str | None = field(default=None, repr=False)
    priv_protocol: SnmpPrivProtocol | None = None
    priv_password: str | None = field(default=None, repr=False)
    context_name: str | None = None

    def fingerprint(self) -> str:
        """
        Keyed HMAC-SHA256 of the credential material (hex, 16 chars).

        Stable within this process only; a leaked digest cannot be checked
        offline against guessed communities or passwords.
        """
        parts = [
            self.version.value,
            self.community or "",
            self.username or "",
            self.auth_level.value if self.auth_level else "",
            self.auth_protocol.value if self.auth_protocol else "",
            self.auth_password or "",
            self.priv_protocol.value if self.priv_protocol else "",
            self.priv_password or "",
            self.context_name or "",
        ]
        raw = "\x1f".join(parts).encode("utf-8")
        return hmac.new(_FINGERPRINT_KEY, raw, hashlib.sha256).hexdigest()[:16]


@dataclass(frozen=True)
class SnmpDevice:
    """
    Connection parameters for a single SNMP target.

    timeout is in milliseconds and applies to one request/response
    exchange; retries counts additional attempts after the first.
    """

    hostname: str
    credentials: SnmpCredentials
    port: int = 161
    timeout: int = 5000
    retries: int = 3
    transport: SnmpTransport = SnmpTransport.UDP4

    @property
    def version(self) -> SnmpVersion:
        return self.credentials.version

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000.0

    def identity(self) -> str:
        """Secret-free identity, used in log lines and cache keys."""
        ident = f"{self.transport.value}:{self.hostname}:{self.port}/{self.version.value}"
        if self.version is SnmpVersion.V3:
            ident += f"/{self.credentials.username or ''}@{self.credentials.context_name or ''}"
        return ident

    def credential_fingerprint(self) -> str:
        return self.credentials.fingerprint()

    def __str__(self) -> str:
        return f"{self.hostname}:{self.port}"


# ── Varbinds ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Varbind:
    """
    One (OID, typed value) pair.

    value 型別依 type 而定：
    - 數值類（INTEGER, Counter32/64, Gauge32, TimeTicks, Unsigned32）→ int
    - OCTET STRING / Opaque → bytes
    - OBJECT IDENTIFIER / IpAddress → str
    - NULL 及例外標記（noSuchObject...）→ None
    """

    oid: str
    type: SnmpDataType
    value: int | str | bytes | None = None

    @property
    def is_exception(self) -> bool:
        return self.type.is_exception

    @property
    def is_end_of_mib(self) -> bool:
        return self.type is SnmpDataType.END_OF_MIB_VIEW

    def as_int(self) -> int | None:
        if self.is_exception or self.value is None:
            return None
        if isinstance(self.value, int):
            return self.value
        try:
            return int(self.as_text() or "")
        except ValueError:
            return None

    def as_text(self) -> str | None:
        if self.is_exception or self.value is None:
            return None
        if isinstance(self.value, bytes):
            return self.value.decode("utf-8", errors="replace")
        return str(self.value)

    def display_value(self) -> Any:
        """JSON-safe rendering: printable octets as text, binary as 0x-hex."""
        if isinstance(self.value, bytes):
            try:
                text = self.value.decode("utf-8")
            except UnicodeDecodeError:
                return "0x" + self.value.hex()
            if all(ch in _PRINTABLE for ch in text):
                return text
            return "0x" + self.value.hex()
        return self.value

    def to_dict(self) -> dict[str, Any]:
        return {"oid": self.oid, "type": self.type.value, "value": self.display_value()}

    @classmethod
    def no_such_instance(cls, oid: str) -> Varbind:
        return cls(oid=oid, type=SnmpDataType.NO_SUCH_INSTANCE)


# ── Operation results ────────────────────────────────────────────────


@dataclass(frozen=True)
class SetFailure:
    """One varbind the agent refused during SET."""

    oid: str
    status: str
    index: int

    def to_dict(self) -> dict[str, Any]:
        return {"oid": self.oid, "status": self.status, "index": self.index}


@dataclass
class SetResult:
    """Outcome of a SET: success, or PartialFailure detail per refused OID."""

    success: bool
    varbinds: list[Varbind] = field(default_factory=list)
    failures: list[SetFailure] = field(default_factory=list)
    error: str | None = None


@dataclass
class ConnectionProbe:
    """Result of a reachability probe (single GET of sysDescr.0)."""

    reachable: bool
    authenticated: bool
    message: str = ""
    response_time_ms: float | None = None


@dataclass
class SystemInfo:
    """SNMPv2-MIB system group; fields the agent lacks stay None."""

    sys_descr: str | None = None
    sys_object_id: str | None = None
    sys_uptime: int | None = None
    sys_contact: str | None = None
    sys_name: str | None = None
    sys_location: str | None = None
    sys_services: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "sysDescr": self.sys_descr,
            "sysObjectID": self.sys_object_id,
            "sysUpTime": self.sys_uptime,
            "sysContact": self.sys_contact,
            "sysName": self.sys_name,
            "sysLocation": self.sys_location,
            "sysServices": self.sys_services,
        }
        return {k: v for k, v in data.items() if v is not None}


def clamp_counter(value: int | None) -> int | None:
    """Counters are unsigned 64-bit; clamp anything outside [0, 2^64-1]."""
    if value is None:
        return None
    return max(0, min(int(value), UINT64_MAX))


@dataclass
class InterfaceRecord:
    """One row of ifTable joined with its ifXTable row (by ifIndex)."""

    if_index: int
    descr: str | None = None
    name: str | None = None
    alias: str | None = None
    if_type: int | None = None
    mtu: int | None = None
    speed: int | None = None
    high_speed: int | None = None
    phys_address: str | None = None
    admin_status: InterfaceStatus = InterfaceStatus.UNKNOWN
    oper_status: InterfaceStatus = InterfaceStatus.UNKNOWN
    last_change: int | None = None
    in_octets: int | None = None
    out_octets: int | None = None
    in_errors: int | None = None
    out_errors: int | None = None
    in_discards: int | None = None
    out_discards: int | None = None
    counters_64bit: bool = False

    def __post_init__(self) -> None:
        for name in (
            "in_octets", "out_octets", "in_errors",
            "out_errors", "in_discards", "out_discards",
        ):
            setattr(self, name, clamp_counter(getattr(self, name)))

    @property
    def effective_speed(self) -> int | None:
        """bits/sec, preferring ifHighSpeed once ifSpeed saturates at 2^32-1."""
        if self.high_speed and (self.speed is None or self.speed >= 2**32 - 1):
            return self.high_speed * 1_000_000
        return self.speed

    def to_dict(self) -> dict[str, Any]:
        return {
            "ifIndex": self.if_index,
            "ifDescr": self.descr,
            "ifName": self.name,
            "ifAlias": self.alias,
            "ifType": self.if_type,
            "ifMtu": self.mtu,
            "ifSpeed": self.effective_speed,
            "ifPhysAddress": self.phys_address,
            "ifAdminStatus": self.admin_status.value,
            "ifOperStatus": self.oper_status.value,
            "ifLastChange": self.last_change,
            "ifInOctets": self.in_octets,
            "ifOutOctets": self.out_octets,
            "ifInErrors": self.in_errors,
            "ifOutErrors": self.out_errors,
            "ifInDiscards": self.in_discards,
            "ifOutDiscards": self.out_discards,
            "counters64Bit": self.counters_64bit,
        }
