"""
Varbind codec — pysnmp value objects <-> tagged Varbind values.

decode 方向：把 pysnmp / pyasn1 物件轉成 (SnmpDataType, python value)。
encode 方向：把 API 傳入的 (type, value) 轉成 pysnmp rfc1902 物件供 SET 使用。

NOTE: pysnmp imports are deferred to the encode path so that the mock
engine and the value model work without touching pysnmp at import time.
"""
from __future__ import annotations

import ipaddress
from typing import Any

from app.core.enums import SnmpDataType
from app.snmp.errors import SnmpValidationError
from app.snmp.types import Varbind
from app.snmp.validator import validate_oid

# pysnmp / pyasn1 class name -> tag; matched along the MRO so textual
# conventions (DisplayString, PhysAddress...) resolve to their base type.
_CLASS_TAGS: dict[str, SnmpDataType] = {
    "NoSuchObject": SnmpDataType.NO_SUCH_OBJECT,
    "NoSuchInstance": SnmpDataType.NO_SUCH_INSTANCE,
    "EndOfMibView": SnmpDataType.END_OF_MIB_VIEW,
    "IpAddress": SnmpDataType.IP_ADDRESS,
    "Counter32": SnmpDataType.COUNTER32,
    "Counter64": SnmpDataType.COUNTER64,
    "Gauge32": SnmpDataType.GAUGE32,
    "Unsigned32": SnmpDataType.UNSIGNED32,
    "TimeTicks": SnmpDataType.TIMETICKS,
    "Opaque": SnmpDataType.OPAQUE,
    "Integer32": SnmpDataType.INTEGER,
    "Integer": SnmpDataType.INTEGER,
    "OctetString": SnmpDataType.OCTET_STRING,
    "ObjectIdentifier": SnmpDataType.OBJECT_IDENTIFIER,
    "ObjectName": SnmpDataType.OBJECT_IDENTIFIER,
    "Null": SnmpDataType.NULL,
}

_NUMERIC_BOUNDS: dict[SnmpDataType, tuple[int, int]] = {
    SnmpDataType.INTEGER: (-(2**31), 2**31 - 1),
    SnmpDataType.COUNTER32: (0, 2**32 - 1),
    SnmpDataType.GAUGE32: (0, 2**32 - 1),
    SnmpDataType.UNSIGNED32: (0, 2**32 - 1),
    SnmpDataType.TIMETICKS: (0, 2**32 - 1),
    SnmpDataType.COUNTER64: (0, 2**64 - 1),
}


def tag_of(value: Any) -> SnmpDataType:
    """Resolve the SMI tag for a pysnmp value object."""
    for klass in type(value).__mro__:
        tag = _CLASS_TAGS.get(klass.__name__)
        if tag is not None:
            return tag
    raise SnmpValidationError(
        f"Unsupported SNMP value type: {type(value).__name__}"
    )


def decode_value(value: Any) -> tuple[SnmpDataType, int | str | bytes | None]:
    """pysnmp value -> (tag, python value)."""
    tag = tag_of(value)
    if tag.is_exception or tag is SnmpDataType.NULL:
        return tag, None
    if tag.is_numeric:
        return tag, int(value)
    if tag is SnmpDataType.IP_ADDRESS:
        octets = value.asOctets()
        if len(octets) == 4:
            return tag, str(ipaddress.IPv4Address(octets))
        return tag, value.prettyPrint()
    if tag is SnmpDataType.OBJECT_IDENTIFIER:
        return tag, str(value)
    # OCTET STRING / Opaque
    return tag, bytes(value.asOctets())


def decode_varbind(oid: Any, value: Any) -> Varbind:
    tag, decoded = decode_value(value)
    return Varbind(oid=str(oid), type=tag, value=decoded)


def parse_tag(type_tag: SnmpDataType | str) -> SnmpDataType:
    try:
        return SnmpDataType(getattr(type_tag, "value", type_tag))
    except ValueError as e:
        raise SnmpValidationError(f"Unknown SNMP type: {type_tag}") from e


def coerce_value(type_tag: SnmpDataType | str, raw: Any) -> int | str | bytes | None:
    """
    Normalise a JSON value for SET into the python type the tag expects.

    Raises:
        SnmpValidationError: value does not fit the tag.
    """
    tag = parse_tag(type_tag)
    if tag.is_exception:
        raise SnmpValidationError(f"{tag.value} cannot be written")
    if tag is SnmpDataType.NULL:
        return None
    if tag.is_numeric:
        if isinstance(raw, bool):
            raise SnmpValidationError(f"{tag.value} value must be an integer")
        try:
            number = int(raw)
        except (TypeError, ValueError) as e:
            raise SnmpValidationError(f"{tag.value} value must be an integer") from e
        low, high = _NUMERIC_BOUNDS[tag]
        if not low <= number <= high:
            raise SnmpValidationError(f"{tag.value} value out of range: {number}")
        return number
    if tag is SnmpDataType.IP_ADDRESS:
        try:
            return str(ipaddress.IPv4Address(str(raw)))
        except ValueError as e:
            raise SnmpValidationError(f"Invalid IpAddress value: {raw}") from e
    if tag is SnmpDataType.OBJECT_IDENTIFIER:
        if not validate_oid(raw):
            raise SnmpValidationError(f"Invalid OBJECT IDENTIFIER value: {raw}")
        return raw
    # OCTET STRING / Opaque
    if isinstance(raw, bytes):
        return raw
    if raw is None:
        return b""
    return str(raw).encode("utf-8")


def to_varbind(oid: str, type_tag: SnmpDataType | str, raw: Any) -> Varbind:
    """Build a typed Varbind from request input (validated)."""
    tag = parse_tag(type_tag)
    return Varbind(oid=oid, type=tag, value=coerce_value(tag, raw))


def encode_value(varbind: Varbind) -> Any:
    """Typed Varbind -> pysnmp rfc1902 object for a SET request."""
    from pyasn1.type import univ
    from pysnmp.proto import rfc1902

    tag = varbind.type
    value = varbind.value
    factories = {
        SnmpDataType.INTEGER: rfc1902.Integer32,
        SnmpDataType.OCTET_STRING: rfc1902.OctetString,
        SnmpDataType.OBJECT_IDENTIFIER: rfc1902.ObjectIdentifier,
        SnmpDataType.IP_ADDRESS: rfc1902.IpAddress,
        SnmpDataType.COUNTER32: rfc1902.Counter32,
        SnmpDataType.GAUGE32: rfc1902.Gauge32,
        SnmpDataType.TIMETICKS: rfc1902.TimeTicks,
        SnmpDataType.OPAQUE: rfc1902.Opaque,
        SnmpDataType.COUNTER64: rfc1902.Counter64,
        SnmpDataType.UNSIGNED32: rfc1902.Unsigned32,
    }
    if tag is SnmpDataType.NULL:
        return univ.Null("")
    factory = factories.get(tag)
    if factory is None:
        raise SnmpValidationError(f"{tag.value} cannot be encoded for SET")
    return factory(value)
