"""
Mock SNMP agent data.

根據設備 hostname 產生模擬的 SNMP MIB 內容（system group + ifTable + ifXTable），
供 MockSnmpEngine 當作 agent 的 OID 表使用。

設計原則：
- 使用 deterministic hash（基於 hostname）確保同一設備每次回傳一致
- vendor 由 hash 決定（HPE / IOS / NXOS），介面命名跟著 vendor 走
- counter 依 60 秒時間桶遞增，模擬真實設備的單調遞增計數器
"""
from __future__ import annotations

import hashlib
import time

from app.core.enums import SnmpDataType
from app.snmp import oid_maps
from app.snmp.types import Varbind

# (ifName prefix, access port count, uplink name, aggregate name)
_VENDOR_PROFILES: dict[str, tuple[str, int, str, str]] = {
    "hpe": ("GE1/0/", 18, "XGE1/0/1", "BAGG1"),
    "ios": ("Gi1/0/", 18, "Te1/1/1", "Po1"),
    "nxos": ("Eth1/", 18, "Eth1/49", "Po1"),
}

# Vendor sysDescr / sysObjectID templates
_SYS_DESCR = {
    "hpe": (
        "HPE Comware Platform Software, Software Version 7.1.070, "
        "Release 6728P06\n"
        "HPE FF 5130-24G-4SFP+ EI Switch"
    ),
    "ios": (
        "Cisco IOS Software, C3750E Software (C3750E-UNIVERSALK9-M), "
        "Version 15.2(7)E2, RELEASE SOFTWARE (fc3)"
    ),
    "nxos": (
        "Cisco NX-OS(tm) n9000, Software (n9000-dk9), "
        "Version 9.3(8), RELEASE SOFTWARE"
    ),
}
_SYS_OBJECT_ID = {
    "hpe": "1.3.6.1.4.1.25506.11.1.136",
    "ios": "1.3.6.1.4.1.9.1.516",
    "nxos": "1.3.6.1.4.1.9.12.3.1.3.1812",
}

_IF_TYPE_ETHERNET = 6
_IF_TYPE_LAG = 161

# ── Helpers ───────────────────────────────────────────────────────


def _det_hash(host: str, salt: str = "") -> int:
    """Deterministic hash from hostname + salt."""
    return int(hashlib.md5(f"{host}:{salt}".encode()).hexdigest(), 16)


def _get_vendor(host: str) -> str:
    """Deterministic vendor assignment based on hostname.

    ~50% HPE, ~25% IOS, ~25% NXOS
    """
    v = _det_hash(host, "vendor") % 4
    if v <= 1:
        return "hpe"
    elif v == 2:
        return "ios"
    else:
        return "nxos"


def _get_interfaces(vendor: str) -> list[tuple[str, int, int]]:
    """(ifName, ifIndex, speed_mbps) rows for a vendor profile."""
    prefix, count, uplink, aggregate = _VENDOR_PROFILES[vendor]
    rows = [(f"{prefix}{i}", i, 1000) for i in range(1, count + 1)]
    rows.append((uplink, count + 1, 10000))
    rows.append((aggregate, count + 2, 10000))
    return rows


def _mac(host: str, if_index: int) -> bytes:
    digest = hashlib.md5(f"{host}:mac:{if_index}".encode()).digest()
    return bytes([0x00, 0x1B]) + digest[:4]


# ── Table builder ────────────────────────────────────────────────


def build_agent_table(host: str, now: float | None = None) -> dict[str, Varbind]:
    """
    Build the full OID table served by the mock agent for *host*.

    Returns:
        {oid: Varbind} — MockSnmpEngine sorts it into MIB order.
    """
    vendor = _get_vendor(host)
    bucket = int(now if now is not None else time.time()) // 60
    table: dict[str, Varbind] = {}

    def put(oid: str, type_: SnmpDataType, value) -> None:
        table[oid] = Varbind(oid=oid, type=type_, value=value)

    uptime = (_det_hash(host, "boot") % 8_640_000) + bucket * 6000
    put(oid_maps.SYS_DESCR, SnmpDataType.OCTET_STRING, _SYS_DESCR[vendor].encode())
    put(oid_maps.SYS_OBJECT_ID, SnmpDataType.OBJECT_IDENTIFIER, _SYS_OBJECT_ID[vendor])
    put(oid_maps.SYS_UPTIME, SnmpDataType.TIMETICKS, uptime % 2**32)
    put(oid_maps.SYS_CONTACT, SnmpDataType.OCTET_STRING, b"noc@example.com")
    put(oid_maps.SYS_NAME, SnmpDataType.OCTET_STRING, f"SW-{host.replace('.', '-')}".encode())
    put(oid_maps.SYS_LOCATION, SnmpDataType.OCTET_STRING, b"DC1 Row 3 Rack 12")
    put(oid_maps.SYS_SERVICES, SnmpDataType.INTEGER, 6)

    interfaces = _get_interfaces(vendor)
    put(oid_maps.IF_NUMBER, SnmpDataType.INTEGER, len(interfaces))

    for name, idx, speed_mbps in interfaces:
        seed = _det_hash(host, f"if{idx}")
        is_lag = idx == interfaces[-1][1]
        # ~15% 的 access port 沒接線
        oper = 2 if (seed % 100) < 15 and not is_lag else 1
        rate = (seed % 5000 + 100) * 60_000
        in_octets = (seed % 10**12) + bucket * rate
        out_octets = (seed // 7 % 10**12) + bucket * rate // 2

        def col(column: int) -> str:
            return f"{oid_maps.IF_ENTRY}.{column}.{idx}"

        def xcol(column: int) -> str:
            return f"{oid_maps.IF_X_ENTRY}.{column}.{idx}"

        put(col(1), SnmpDataType.INTEGER, idx)
        put(col(2), SnmpDataType.OCTET_STRING, name.encode())
        put(col(3), SnmpDataType.INTEGER, _IF_TYPE_LAG if is_lag else _IF_TYPE_ETHERNET)
        put(col(4), SnmpDataType.INTEGER, 1500)
        put(col(5), SnmpDataType.GAUGE32, min(speed_mbps * 1_000_000, 2**32 - 1))
        put(col(6), SnmpDataType.OCTET_STRING, _mac(host, idx))
        put(col(7), SnmpDataType.INTEGER, 1)
        put(col(8), SnmpDataType.INTEGER, oper)
        put(col(9), SnmpDataType.TIMETICKS, seed % 100_000)
        put(col(10), SnmpDataType.COUNTER32, in_octets % 2**32)
        put(col(13), SnmpDataType.COUNTER32, seed % 7)
        put(col(14), SnmpDataType.COUNTER32, seed % 3)
        put(col(16), SnmpDataType.COUNTER32, out_octets % 2**32)
        put(col(19), SnmpDataType.COUNTER32, seed % 5)
        put(col(20), SnmpDataType.COUNTER32, 0)

        put(xcol(1), SnmpDataType.OCTET_STRING, name.encode())
        put(xcol(6), SnmpDataType.COUNTER64, in_octets % 2**64)
        put(xcol(10), SnmpDataType.COUNTER64, out_octets % 2**64)
        put(xcol(15), SnmpDataType.GAUGE32, speed_mbps)
        put(xcol(18), SnmpDataType.OCTET_STRING, b"uplink" if speed_mbps >= 10000 else b"")

    return table
