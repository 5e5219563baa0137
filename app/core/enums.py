"""
Enumeration definitions for the application.

All enums are defined here to maintain consistency and type safety.
"""
from __future__ import annotations

from enum import Enum


class SnmpVersion(str, Enum):
    """SNMP protocol version."""

    V1 = "v1"
    V2C = "v2c"
    V3 = "v3"

    @property
    def mp_model(self) -> int:
        """pysnmp message-processing model: 0 = v1, 1 = v2c, 3 = v3."""
        return {"v1": 0, "v2c": 1, "v3": 3}[self.value]

    @property
    def is_community_based(self) -> bool:
        return self is not SnmpVersion.V3


class SnmpAuthLevel(str, Enum):
    """
    SNMPv3 security level.

    - NO_AUTH_NO_PRIV: 只需 username
    - AUTH_NO_PRIV: username + auth protocol/password
    - AUTH_PRIV: 再加上 priv protocol/password
    """

    NO_AUTH_NO_PRIV = "noAuthNoPriv"
    AUTH_NO_PRIV = "authNoPriv"
    AUTH_PRIV = "authPriv"

    @property
    def requires_auth(self) -> bool:
        return self is not SnmpAuthLevel.NO_AUTH_NO_PRIV

    @property
    def requires_priv(self) -> bool:
        return self is SnmpAuthLevel.AUTH_PRIV


class SnmpAuthProtocol(str, Enum):
    """SNMPv3 authentication (HMAC digest) protocol."""

    MD5 = "MD5"
    SHA = "SHA"
    SHA224 = "SHA224"
    SHA256 = "SHA256"
    SHA384 = "SHA384"
    SHA512 = "SHA512"


class SnmpPrivProtocol(str, Enum):
    """SNMPv3 privacy (encryption) protocol."""

    DES = "DES"
    TRIPLE_DES = "3DES"
    AES = "AES"
    AES192 = "AES192"
    AES256 = "AES256"


class SnmpTransport(str, Enum):
    """Transport family used to reach the agent."""

    UDP4 = "udp4"
    UDP6 = "udp6"
    TCP = "tcp"


class SnmpDataType(str, Enum):
    """
    Type tag carried by every varbind value.

    Values match the on-wire ASN.1 / SMI type names; the last three are
    the v2 exception markers (never real data).
    """

    INTEGER = "INTEGER"
    OCTET_STRING = "OCTET STRING"
    OBJECT_IDENTIFIER = "OBJECT IDENTIFIER"
    NULL = "NULL"
    IP_ADDRESS = "IpAddress"
    COUNTER32 = "Counter32"
    GAUGE32 = "Gauge32"
    TIMETICKS = "TimeTicks"
    OPAQUE = "Opaque"
    COUNTER64 = "Counter64"
    UNSIGNED32 = "Unsigned32"
    NO_SUCH_OBJECT = "noSuchObject"
    NO_SUCH_INSTANCE = "noSuchInstance"
    END_OF_MIB_VIEW = "endOfMibView"

    @property
    def is_exception(self) -> bool:
        return self in _EXCEPTION_TYPES

    @property
    def is_numeric(self) -> bool:
        return self in _NUMERIC_TYPES


_EXCEPTION_TYPES = frozenset({
    SnmpDataType.NO_SUCH_OBJECT,
    SnmpDataType.NO_SUCH_INSTANCE,
    SnmpDataType.END_OF_MIB_VIEW,
})

_NUMERIC_TYPES = frozenset({
    SnmpDataType.INTEGER,
    SnmpDataType.COUNTER32,
    SnmpDataType.GAUGE32,
    SnmpDataType.TIMETICKS,
    SnmpDataType.COUNTER64,
    SnmpDataType.UNSIGNED32,
})


class SnmpErrorStatus(int, Enum):
    """Agent error-status codes carried in a response PDU (RFC 3416)."""

    NO_ERROR = 0
    TOO_BIG = 1
    NO_SUCH_NAME = 2
    BAD_VALUE = 3
    READ_ONLY = 4
    GEN_ERR = 5
    NO_ACCESS = 6
    WRONG_TYPE = 7
    WRONG_LENGTH = 8
    WRONG_ENCODING = 9
    WRONG_VALUE = 10
    NO_CREATION = 11
    INCONSISTENT_VALUE = 12
    RESOURCE_UNAVAILABLE = 13
    COMMIT_FAILED = 14
    UNDO_FAILED = 15
    AUTHORIZATION_ERROR = 16
    NOT_WRITABLE = 17
    INCONSISTENT_NAME = 18

    @property
    def wire_name(self) -> str:
        """camelCase name as printed by agents: noSuchName, notWritable..."""
        head, *rest = self.name.lower().split("_")
        return head + "".join(part.capitalize() for part in rest)

    @classmethod
    def from_code(cls, code: int) -> SnmpErrorStatus:
        try:
            return cls(int(code))
        except ValueError:
            return cls.GEN_ERR


class DeviceStatus(str, Enum):
    """Device reachability as recorded by the poller."""

    UP = "UP"
    DOWN = "DOWN"


class InterfaceStatus(str, Enum):
    """
    Interface admin/oper status (IF-MIB ifAdminStatus / ifOperStatus).

    from_code() 對任何輸入都不會丟例外，未知代碼一律視為 UNKNOWN。
    """

    UP = "up"
    DOWN = "down"
    TESTING = "testing"
    UNKNOWN = "unknown"
    DORMANT = "dormant"
    NOT_PRESENT = "notPresent"
    LOWER_LAYER_DOWN = "lowerLayerDown"

    @classmethod
    def from_code(cls, code: int | str | None) -> InterfaceStatus:
        """Map an IF-MIB status integer to its name; anything else is UNKNOWN."""
        try:
            value = int(code)  # type: ignore[arg-type]
        except (TypeError, ValueError, OverflowError):
            return cls.UNKNOWN
        return _INTERFACE_STATUS_CODES.get(value, cls.UNKNOWN)

    @classmethod
    def from_name(cls, name: str | None) -> InterfaceStatus:
        """Stored status name ("up", "lowerLayerDown", ...); anything else is UNKNOWN."""
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


_INTERFACE_STATUS_CODES = {
    1: InterfaceStatus.UP,
    2: InterfaceStatus.DOWN,
    3: InterfaceStatus.TESTING,
    4: InterfaceStatus.UNKNOWN,
    5: InterfaceStatus.DORMANT,
    6: InterfaceStatus.NOT_PRESENT,
    7: InterfaceStatus.LOWER_LAYER_DOWN,
}
