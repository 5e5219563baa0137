"""
OID Constants & column maps.

所有 SNMP OID 常數集中管理於此，client / poller / API 只需引用。
"""
from __future__ import annotations

# =============================================================================
# SNMPv2-MIB system group
# =============================================================================

SYSTEM = "1.3.6.1.2.1.1"
SYS_DESCR = "1.3.6.1.2.1.1.1.0"
SYS_OBJECT_ID = "1.3.6.1.2.1.1.2.0"
SYS_UPTIME = "1.3.6.1.2.1.1.3.0"            # TimeTicks (1/100 s)
SYS_CONTACT = "1.3.6.1.2.1.1.4.0"
SYS_NAME = "1.3.6.1.2.1.1.5.0"
SYS_LOCATION = "1.3.6.1.2.1.1.6.0"
SYS_SERVICES = "1.3.6.1.2.1.1.7.0"

# OID -> SystemInfo attribute
SYSTEM_FIELDS: dict[str, str] = {
    SYS_DESCR: "sys_descr",
    SYS_OBJECT_ID: "sys_object_id",
    SYS_UPTIME: "sys_uptime",
    SYS_CONTACT: "sys_contact",
    SYS_NAME: "sys_name",
    SYS_LOCATION: "sys_location",
    SYS_SERVICES: "sys_services",
}

# =============================================================================
# IF-MIB ifTable (1.3.6.1.2.1.2.2.1.<column>.<ifIndex>)
# =============================================================================

IF_NUMBER = "1.3.6.1.2.1.2.1.0"
IF_TABLE = "1.3.6.1.2.1.2.2"
IF_ENTRY = "1.3.6.1.2.1.2.2.1"
IF_INDEX = "1.3.6.1.2.1.2.2.1.1"
IF_DESCR = "1.3.6.1.2.1.2.2.1.2"
IF_TYPE = "1.3.6.1.2.1.2.2.1.3"
IF_MTU = "1.3.6.1.2.1.2.2.1.4"
IF_SPEED = "1.3.6.1.2.1.2.2.1.5"             # bits/sec, saturates at 2^32-1
IF_PHYS_ADDRESS = "1.3.6.1.2.1.2.2.1.6"
IF_ADMIN_STATUS = "1.3.6.1.2.1.2.2.1.7"
IF_OPER_STATUS = "1.3.6.1.2.1.2.2.1.8"       # 1=up, 2=down, 3=testing ...
IF_LAST_CHANGE = "1.3.6.1.2.1.2.2.1.9"
IF_IN_OCTETS = "1.3.6.1.2.1.2.2.1.10"
IF_IN_DISCARDS = "1.3.6.1.2.1.2.2.1.13"
IF_IN_ERRORS = "1.3.6.1.2.1.2.2.1.14"
IF_OUT_OCTETS = "1.3.6.1.2.1.2.2.1.16"
IF_OUT_DISCARDS = "1.3.6.1.2.1.2.2.1.19"
IF_OUT_ERRORS = "1.3.6.1.2.1.2.2.1.20"

# ifTable column number -> InterfaceRecord attribute
IF_TABLE_COLUMNS: dict[int, str] = {
    2: "descr",
    3: "if_type",
    4: "mtu",
    5: "speed",
    6: "phys_address",
    7: "admin_status",
    8: "oper_status",
    9: "last_change",
    10: "in_octets",
    13: "in_discards",
    14: "in_errors",
    16: "out_octets",
    19: "out_discards",
    20: "out_errors",
}

# =============================================================================
# IF-MIB ifXTable (1.3.6.1.2.1.31.1.1.1.<column>.<ifIndex>)
# =============================================================================

IF_X_TABLE = "1.3.6.1.2.1.31.1.1"
IF_X_ENTRY = "1.3.6.1.2.1.31.1.1.1"
IF_NAME = "1.3.6.1.2.1.31.1.1.1.1"
IF_HC_IN_OCTETS = "1.3.6.1.2.1.31.1.1.1.6"
IF_HC_OUT_OCTETS = "1.3.6.1.2.1.31.1.1.1.10"
IF_HIGH_SPEED = "1.3.6.1.2.1.31.1.1.1.15"    # Mbps
IF_ALIAS = "1.3.6.1.2.1.31.1.1.1.18"

IF_X_TABLE_COLUMNS: dict[int, str] = {
    1: "name",
    6: "hc_in_octets",
    10: "hc_out_octets",
    15: "high_speed",
    18: "alias",
}

# =============================================================================
# Reference table served by GET /snmp/oids/common
# =============================================================================

COMMON_OIDS: dict[str, dict[str, str]] = {
    "system": {
        "sysDescr": SYS_DESCR,
        "sysObjectID": SYS_OBJECT_ID,
        "sysUpTime": SYS_UPTIME,
        "sysContact": SYS_CONTACT,
        "sysName": SYS_NAME,
        "sysLocation": SYS_LOCATION,
        "sysServices": SYS_SERVICES,
    },
    "interfaces": {
        "ifNumber": IF_NUMBER,
        "ifTable": IF_TABLE,
        "ifIndex": IF_INDEX,
        "ifDescr": IF_DESCR,
        "ifType": IF_TYPE,
        "ifMtu": IF_MTU,
        "ifSpeed": IF_SPEED,
        "ifPhysAddress": IF_PHYS_ADDRESS,
        "ifAdminStatus": IF_ADMIN_STATUS,
        "ifOperStatus": IF_OPER_STATUS,
        "ifLastChange": IF_LAST_CHANGE,
        "ifInOctets": IF_IN_OCTETS,
        "ifInDiscards": IF_IN_DISCARDS,
        "ifInErrors": IF_IN_ERRORS,
        "ifOutOctets": IF_OUT_OCTETS,
        "ifOutDiscards": IF_OUT_DISCARDS,
        "ifOutErrors": IF_OUT_ERRORS,
    },
    "ifXTable": {
        "ifXTable": IF_X_TABLE,
        "ifName": IF_NAME,
        "ifHCInOctets": IF_HC_IN_OCTETS,
        "ifHCOutOctets": IF_HC_OUT_OCTETS,
        "ifHighSpeed": IF_HIGH_SPEED,
        "ifAlias": IF_ALIAS,
    },
}
