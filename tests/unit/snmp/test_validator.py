"""Unit tests for app.snmp.validator."""
from __future__ import annotations

from dataclasses import replace

import pytest

from app.core.enums import SnmpAuthLevel, SnmpDataType, SnmpTransport, SnmpVersion
from app.snmp.errors import SnmpValidationError
from app.snmp.types import SnmpCredentials, Varbind
from app.snmp.validator import (
    ValidationResult,
    require_valid,
    validate_bulk_parameters,
    validate_credentials,
    validate_device,
    validate_oid,
    validate_oid_list,
    validate_set_varbinds,
)
from tests.conftest import make_device


# ── validate_oid ─────────────────────────────────────────────────────


@pytest.mark.parametrize("oid", [
    "1.3",
    "1.3.6.1.2.1.1.1.0",
    "0.0",
    "1.3.6.1.4.1.4294967295.1",
])
def test_validate_oid_accepts_dotted_decimal(oid):
    assert validate_oid(oid) is True


@pytest.mark.parametrize("oid", [
    "",
    "1",
    ".1.3.6",
    "1.3.",
    "1..3",
    "1.3.a",
    "iso.3.6",
    " 1.3.6",
    None,
    13,
])
def test_validate_oid_rejects_malformed(oid):
    assert validate_oid(oid) is False


def test_validate_oid_list_collects_every_error():
    result = validate_oid_list(["1.3.6.1", "bad", "1.3", "", "x.y"])
    assert not result.is_valid
    assert result.errors == [
        "Invalid OID at index 1: bad",
        "Invalid OID at index 3: ",
        "Invalid OID at index 4: x.y",
    ]


def test_validate_oid_list_empty():
    result = validate_oid_list([])
    assert not result.is_valid
    assert result.errors == ["At least one OID is required"]


def test_validate_oid_list_rejects_bare_string():
    assert not validate_oid_list("1.3.6.1").is_valid


def test_validate_oid_list_valid():
    result = validate_oid_list(["1.3.6.1.2.1.1.1.0", "1.3.6.1.2.1.1.5.0"])
    assert result.is_valid
    assert result.errors == []
    assert result.to_dict() == {"isValid": True, "errors": []}


# ── validate_device ──────────────────────────────────────────────────


def test_valid_v2c_device():
    assert validate_device(make_device()).is_valid


def test_valid_v3_device():
    assert validate_device(make_device(version=SnmpVersion.V3)).is_valid


def test_device_aggregates_all_violations():
    device = replace(make_device(), hostname="", port=0, timeout=999, retries=11)
    result = validate_device(device)
    assert not result.is_valid
    assert "Hostname is required" in result.errors
    assert "Port must be between 1 and 65535" in result.errors
    assert "Timeout must be between 1000 and 30000 ms" in result.errors
    assert "Retries must be between 0 and 10" in result.errors


@pytest.mark.parametrize("hostname", ["router-1.example.net", "192.0.2.1", "2001:db8::1"])
def test_device_hostname_formats_accepted(hostname):
    assert validate_device(replace(make_device(), hostname=hostname)).is_valid


@pytest.mark.parametrize("hostname", ["bad host", "-leading.example", "999.1.1.1"])
def test_device_hostname_formats_rejected(hostname):
    result = validate_device(replace(make_device(), hostname=hostname))
    assert "Invalid hostname format" in result.errors


def test_device_timeout_bounds_inclusive():
    assert validate_device(replace(make_device(), timeout=1000)).is_valid
    assert validate_device(replace(make_device(), timeout=30000)).is_valid
    assert not validate_device(replace(make_device(), timeout=30001)).is_valid


def test_device_accepts_transport_as_string():
    device = replace(make_device(), transport="udp6")
    assert validate_device(device).is_valid


def test_device_rejects_unknown_transport():
    device = replace(make_device(), transport="sctp")
    result = validate_device(device)
    assert any("transport" in e for e in result.errors)


def test_device_transport_enum():
    device = replace(make_device(), transport=SnmpTransport.TCP)
    assert validate_device(device).is_valid


# ── validate_credentials ─────────────────────────────────────────────


def test_v2c_requires_community():
    creds = SnmpCredentials(version=SnmpVersion.V2C)
    result = validate_credentials(creds)
    assert result.errors == ["Community string is required for SNMPv1/v2c"]


def test_v3_auth_priv_missing_priv_password():
    creds = replace(
        make_device(version=SnmpVersion.V3).credentials, priv_password=None,
    )
    result = validate_credentials(creds)
    assert not result.is_valid
    assert any("Privacy password" in e for e in result.errors)


def test_v3_auth_no_priv_needs_only_auth():
    creds = replace(
        make_device(version=SnmpVersion.V3).credentials,
        auth_level=SnmpAuthLevel.AUTH_NO_PRIV,
        priv_protocol=None,
        priv_password=None,
    )
    assert validate_credentials(creds).is_valid


def test_v3_auth_no_priv_missing_auth_password():
    creds = replace(
        make_device(version=SnmpVersion.V3).credentials,
        auth_level=SnmpAuthLevel.AUTH_NO_PRIV,
        auth_password=None,
    )
    result = validate_credentials(creds)
    assert "Authentication password is required" in result.errors


def test_v3_no_auth_no_priv_needs_username_only():
    creds = SnmpCredentials(
        version=SnmpVersion.V3, username="monitor",
        auth_level=SnmpAuthLevel.NO_AUTH_NO_PRIV,
    )
    assert validate_credentials(creds).is_valid


def test_v3_short_passwords_rejected():
    creds = replace(
        make_device(version=SnmpVersion.V3).credentials,
        auth_password="short", priv_password="tiny",
    )
    result = validate_credentials(creds)
    assert "Authentication password must be at least 8 characters" in result.errors
    assert "Privacy password must be at least 8 characters" in result.errors


def test_unknown_version_string():
    class Creds:
        version = "v4"

    result = validate_credentials(Creds())
    assert result.errors == ["Invalid SNMP version. Must be v1, v2c, or v3"]


class _RawCreds:
    """Request-shaped credentials: every enum field a plain string."""

    def __init__(self, **fields):
        self.__dict__.update(fields)


@pytest.mark.parametrize("fields, error", [
    (
        dict(version="v2c", community="public", auth_level="bogus"),
        "Invalid authentication level. Must be noAuthNoPriv, authNoPriv, or authPriv",
    ),
    (
        dict(version="v3", username="u", auth_level="noAuthNoPriv", auth_protocol="bogus"),
        "Invalid authentication protocol",
    ),
    (
        dict(
            version="v3", username="u", auth_level="authNoPriv",
            auth_protocol="SHA", auth_password="authpass1", priv_protocol="bogus",
        ),
        "Invalid privacy protocol",
    ),
])
def test_unused_enum_field_with_unknown_value_rejected(fields, error):
    result = validate_credentials(_RawCreds(**fields))
    assert result.errors == [error]


def test_unused_enum_field_with_known_value_accepted():
    creds = _RawCreds(version="v2c", community="public", auth_protocol="SHA")
    assert validate_credentials(creds).is_valid


def test_missing_credentials():
    assert validate_credentials(None).errors == ["Credentials are required"]


def test_validation_errors_never_echo_secrets():
    creds = SnmpCredentials(version=SnmpVersion.V2C, community="s3cr\x01t")
    result = validate_credentials(creds)
    assert not result.is_valid
    assert all("s3cr" not in e for e in result.errors)


# ── validate_bulk_parameters ─────────────────────────────────────────


@pytest.mark.parametrize("non_repeaters, max_repetitions, valid", [
    (0, 20, True),
    (100, 100, True),
    (0, 1, True),
    (-1, 20, False),
    (0, 101, False),
    (0, 0, False),
    (101, 20, False),
    (True, 20, False),
    ("0", 20, False),
])
def test_validate_bulk_parameters(non_repeaters, max_repetitions, valid):
    assert validate_bulk_parameters(non_repeaters, max_repetitions).is_valid is valid


def test_bulk_parameters_report_both_errors():
    result = validate_bulk_parameters(-1, 101)
    assert len(result.errors) == 2


# ── validate_set_varbinds / require_valid ───────────────────────────


def test_set_varbinds_require_writable_types():
    result = validate_set_varbinds([
        Varbind(oid="1.3.6.1.2.1.1.5.0", type=SnmpDataType.OCTET_STRING, value=b"x"),
        Varbind(oid="1.3.6.1.2.1.1.6.0", type=SnmpDataType.NO_SUCH_OBJECT),
        Varbind(oid="bad", type=SnmpDataType.INTEGER, value=1),
    ])
    assert result.errors == [
        "Invalid varbind type at index 1: noSuchObject",
        "Invalid OID at index 2: bad",
    ]


def test_set_varbinds_empty():
    assert not validate_set_varbinds([]).is_valid


def test_merge_combines_errors():
    merged = ValidationResult.from_errors(["a"]).merge(ValidationResult.from_errors(["b"]))
    assert merged.errors == ["a", "b"]
    assert not merged.is_valid


def test_require_valid_raises_with_errors():
    with pytest.raises(SnmpValidationError) as exc_info:
        require_valid(validate_oid_list(["x"]), "Invalid OID list")
    assert exc_info.value.errors == ["Invalid OID at index 0: x"]
    assert str(exc_info.value) == "Invalid OID list"


def test_require_valid_passes():
    require_valid(ValidationResult.from_errors([]))
