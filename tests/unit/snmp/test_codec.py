"""Unit tests for app.snmp.codec (pysnmp value objects <-> Varbind)."""
from __future__ import annotations

import pytest
from pysnmp.proto import rfc1902, rfc1905

from app.core.enums import SnmpDataType
from app.snmp.codec import (
    coerce_value,
    decode_value,
    decode_varbind,
    encode_value,
    parse_tag,
    tag_of,
    to_varbind,
)
from app.snmp.errors import SnmpValidationError
from app.snmp.types import Varbind


# ── decode ───────────────────────────────────────────────────────────


@pytest.mark.parametrize("value, tag, decoded", [
    (rfc1902.Integer32(-5), SnmpDataType.INTEGER, -5),
    (rfc1902.Counter32(4294967295), SnmpDataType.COUNTER32, 4294967295),
    (rfc1902.Counter64(2**64 - 1), SnmpDataType.COUNTER64, 2**64 - 1),
    (rfc1902.Gauge32(1000), SnmpDataType.GAUGE32, 1000),
    (rfc1902.TimeTicks(360000), SnmpDataType.TIMETICKS, 360000),
    (rfc1902.Unsigned32(7), SnmpDataType.UNSIGNED32, 7),
    (rfc1902.OctetString(b"\x00\x1a\x2b"), SnmpDataType.OCTET_STRING, b"\x00\x1a\x2b"),
    (rfc1902.IpAddress("192.0.2.7"), SnmpDataType.IP_ADDRESS, "192.0.2.7"),
    (rfc1902.ObjectName("1.3.6.1.4.1.9"), SnmpDataType.OBJECT_IDENTIFIER, "1.3.6.1.4.1.9"),
])
def test_decode_value(value, tag, decoded):
    assert decode_value(value) == (tag, decoded)


@pytest.mark.parametrize("value, tag", [
    (rfc1905.noSuchObject, SnmpDataType.NO_SUCH_OBJECT),
    (rfc1905.noSuchInstance, SnmpDataType.NO_SUCH_INSTANCE),
    (rfc1905.endOfMibView, SnmpDataType.END_OF_MIB_VIEW),
])
def test_decode_exception_markers(value, tag):
    assert decode_value(value) == (tag, None)


def test_decode_varbind_builds_tagged_value():
    vb = decode_varbind(rfc1902.ObjectName("1.3.6.1.2.1.1.5.0"), rfc1902.OctetString("sw-01"))
    assert vb == Varbind(oid="1.3.6.1.2.1.1.5.0", type=SnmpDataType.OCTET_STRING, value=b"sw-01")
    assert vb.as_text() == "sw-01"


def test_tag_of_unsupported_type():
    with pytest.raises(SnmpValidationError):
        tag_of(object())


# ── coerce (SET input) ──────────────────────────────────────────────


def test_parse_tag_accepts_string_and_enum():
    assert parse_tag("Counter64") is SnmpDataType.COUNTER64
    assert parse_tag(SnmpDataType.GAUGE32) is SnmpDataType.GAUGE32
    with pytest.raises(SnmpValidationError):
        parse_tag("Float")


@pytest.mark.parametrize("tag, raw, expected", [
    ("INTEGER", "42", 42),
    ("INTEGER", -(2**31), -(2**31)),
    ("Gauge32", 0, 0),
    ("Counter64", 2**64 - 1, 2**64 - 1),
    ("OCTET STRING", "core-sw", b"core-sw"),
    ("OCTET STRING", None, b""),
    ("IpAddress", "10.1.2.3", "10.1.2.3"),
    ("OBJECT IDENTIFIER", "1.3.6.1.4.1", "1.3.6.1.4.1"),
    ("NULL", "anything", None),
])
def test_coerce_value(tag, raw, expected):
    assert coerce_value(tag, raw) == expected


@pytest.mark.parametrize("tag, raw", [
    ("INTEGER", 2**31),
    ("Counter32", -1),
    ("Unsigned32", 2**32),
    ("INTEGER", "abc"),
    ("INTEGER", True),
    ("IpAddress", "300.1.1.1"),
    ("OBJECT IDENTIFIER", "not.an.oid"),
    ("noSuchInstance", None),
])
def test_coerce_value_rejects(tag, raw):
    with pytest.raises(SnmpValidationError):
        coerce_value(tag, raw)


def test_to_varbind():
    vb = to_varbind("1.3.6.1.2.1.1.6.0", "OCTET STRING", "Rack 4")
    assert vb.type is SnmpDataType.OCTET_STRING
    assert vb.value == b"Rack 4"


# ── encode ───────────────────────────────────────────────────────────


def test_encode_value_round_trips_through_decode():
    for vb in (
        Varbind(oid="1.3.6.1.2.1.1.6.0", type=SnmpDataType.OCTET_STRING, value=b"lab"),
        Varbind(oid="1.3.6.1.4.1.1.1", type=SnmpDataType.COUNTER64, value=2**40),
        Varbind(oid="1.3.6.1.4.1.1.2", type=SnmpDataType.IP_ADDRESS, value="192.0.2.1"),
    ):
        assert decode_value(encode_value(vb)) == (vb.type, vb.value)


def test_encode_exception_marker_rejected():
    with pytest.raises(SnmpValidationError):
        encode_value(Varbind.no_such_instance("1.3.6.1.2.1.1.1.0"))
