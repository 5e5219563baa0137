"""
OID / device / bulk-parameter validation.

純函式，不做任何 I/O；每個會打到設備的操作都必須先通過這裡。
All checks aggregate every violation instead of stopping at the first one,
so callers can return the complete error list in one response.

Inputs are duck-typed: an ``SnmpDevice`` and the API request DTO both
expose hostname / port / timeout / retries / transport / credentials, with
enum fields given either as enum members or raw strings.
"""
from __future__ import annotations

import ipaddress
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from app.core.enums import (
    SnmpAuthLevel,
    SnmpAuthProtocol,
    SnmpDataType,
    SnmpPrivProtocol,
    SnmpTransport,
    SnmpVersion,
)
from app.snmp.errors import SnmpValidationError

OID_PATTERN = re.compile(r"^\d+(\.\d+)+$")
HOSTNAME_PATTERN = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?"
    r"(\.[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?)*$"
)
PRINTABLE_ASCII = re.compile(r"^[\x20-\x7E]*$")

PORT_RANGE = (1, 65535)
TIMEOUT_RANGE_MS = (1000, 30000)
RETRIES_RANGE = (0, 10)
NON_REPEATERS_RANGE = (0, 100)
MAX_REPETITIONS_RANGE = (1, 100)

MAX_HOSTNAME_LENGTH = 253
MAX_COMMUNITY_LENGTH = 255
MAX_USERNAME_LENGTH = 32
MAX_CONTEXT_LENGTH = 32
MIN_V3_PASSWORD_LENGTH = 8


@dataclass
class ValidationResult:
    """Aggregated validation outcome."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: list[str]) -> ValidationResult:
        return cls(is_valid=not errors, errors=errors)

    def merge(self, other: ValidationResult) -> ValidationResult:
        return ValidationResult.from_errors(self.errors + other.errors)

    def to_dict(self) -> dict[str, Any]:
        return {"isValid": self.is_valid, "errors": list(self.errors)}


def _value(raw: Any) -> Any:
    """Enum member -> its value; anything else unchanged."""
    return getattr(raw, "value", raw)


def _is_int(raw: Any) -> bool:
    return isinstance(raw, int) and not isinstance(raw, bool)


def _in_range(raw: Any, bounds: tuple[int, int]) -> bool:
    return _is_int(raw) and bounds[0] <= raw <= bounds[1]


def _members(enum_cls: type) -> set[str]:
    return {m.value for m in enum_cls}


# ── OIDs ─────────────────────────────────────────────────────────────


def validate_oid(oid: Any) -> bool:
    """True iff *oid* is dotted-decimal with at least two components."""
    return isinstance(oid, str) and OID_PATTERN.match(oid) is not None


def validate_oid_list(oids: Any) -> ValidationResult:
    """Non-empty and every element valid; one error per invalid element."""
    if not isinstance(oids, Sequence) or isinstance(oids, (str, bytes)):
        return ValidationResult.from_errors(["OIDs must be provided as a list"])
    if not oids:
        return ValidationResult.from_errors(["At least one OID is required"])

    errors = [
        f"Invalid OID at index {i}: {oid}"
        for i, oid in enumerate(oids)
        if not validate_oid(oid)
    ]
    return ValidationResult.from_errors(errors)


# ── Device / credentials ─────────────────────────────────────────────


def is_valid_hostname(hostname: str) -> bool:
    """IPv4/IPv6 literal or RFC 1123 host name, at most 253 characters."""
    if not hostname or len(hostname) > MAX_HOSTNAME_LENGTH:
        return False
    try:
        ipaddress.ip_address(hostname)
        return True
    except ValueError:
        pass
    # 全數字加點但不是合法 IPv4（例如 999.1.1.1）不當成 hostname
    if re.fullmatch(r"[\d.]+", hostname):
        return False
    return HOSTNAME_PATTERN.match(hostname) is not None


_ENUM_FIELDS: tuple[tuple[str, type, str], ...] = (
    (
        "auth_level",
        SnmpAuthLevel,
        "Invalid authentication level. Must be noAuthNoPriv, authNoPriv, or authPriv",
    ),
    ("auth_protocol", SnmpAuthProtocol, "Invalid authentication protocol"),
    ("priv_protocol", SnmpPrivProtocol, "Invalid privacy protocol"),
)


def validate_credentials(credentials: Any) -> ValidationResult:
    """
    Credential invariants for the declared version.

    Enum fields that are present must hold a known value even when the
    version or auth level does not use them.
    """
    errors: list[str] = []
    if credentials is None:
        return ValidationResult.from_errors(["Credentials are required"])

    version = _value(getattr(credentials, "version", None))
    if not version:
        return ValidationResult.from_errors(["SNMP version is required"])
    if version not in _members(SnmpVersion):
        return ValidationResult.from_errors(
            ["Invalid SNMP version. Must be v1, v2c, or v3"]
        )

    for attr, enum_cls, message in _ENUM_FIELDS:
        raw = _value(getattr(credentials, attr, None))
        if raw and raw not in _members(enum_cls):
            errors.append(message)

    if version in (SnmpVersion.V1.value, SnmpVersion.V2C.value):
        community = getattr(credentials, "community", None)
        if not community:
            errors.append("Community string is required for SNMPv1/v2c")
        else:
            if len(community) > MAX_COMMUNITY_LENGTH:
                errors.append("Community string must not exceed 255 characters")
            if not PRINTABLE_ASCII.match(community):
                errors.append(
                    "Community string must contain only printable ASCII characters"
                )
        return ValidationResult.from_errors(errors)

    username = getattr(credentials, "username", None)
    if not username:
        errors.append("Username is required for SNMPv3")
    elif len(username) > MAX_USERNAME_LENGTH:
        errors.append("Username must not exceed 32 characters")

    auth_level = _value(getattr(credentials, "auth_level", None))
    if not auth_level:
        errors.append("Authentication level is required for SNMPv3")

    if auth_level in (SnmpAuthLevel.AUTH_NO_PRIV.value, SnmpAuthLevel.AUTH_PRIV.value):
        if not getattr(credentials, "auth_protocol", None):
            errors.append("Authentication protocol is required")

        auth_password = getattr(credentials, "auth_password", None)
        if not auth_password:
            errors.append("Authentication password is required")
        elif len(auth_password) < MIN_V3_PASSWORD_LENGTH:
            errors.append("Authentication password must be at least 8 characters")

    if auth_level == SnmpAuthLevel.AUTH_PRIV.value:
        if not getattr(credentials, "priv_protocol", None):
            errors.append("Privacy protocol is required for authPriv")

        priv_password = getattr(credentials, "priv_password", None)
        if not priv_password:
            errors.append("Privacy password is required for authPriv")
        elif len(priv_password) < MIN_V3_PASSWORD_LENGTH:
            errors.append("Privacy password must be at least 8 characters")

    context_name = getattr(credentials, "context_name", None)
    if context_name and len(context_name) > MAX_CONTEXT_LENGTH:
        errors.append("Context name must not exceed 32 characters")

    return ValidationResult.from_errors(errors)


def validate_device(device: Any) -> ValidationResult:
    """Connection parameters plus credential invariants, all violations aggregated."""
    errors: list[str] = []

    hostname = getattr(device, "hostname", None)
    if not hostname:
        errors.append("Hostname is required")
    elif not is_valid_hostname(hostname):
        errors.append("Invalid hostname format")

    if not _in_range(getattr(device, "port", None), PORT_RANGE):
        errors.append("Port must be between 1 and 65535")
    if not _in_range(getattr(device, "timeout", None), TIMEOUT_RANGE_MS):
        errors.append("Timeout must be between 1000 and 30000 ms")
    if not _in_range(getattr(device, "retries", None), RETRIES_RANGE):
        errors.append("Retries must be between 0 and 10")

    transport = _value(getattr(device, "transport", None))
    if transport not in _members(SnmpTransport):
        errors.append("Invalid transport. Must be udp4, udp6, or tcp")

    errors.extend(validate_credentials(getattr(device, "credentials", None)).errors)
    return ValidationResult.from_errors(errors)


# ── Bulk / SET parameters ────────────────────────────────────────────


def validate_bulk_parameters(
    non_repeaters: Any = 0,
    max_repetitions: Any = 20,
) -> ValidationResult:
    """nonRepeaters in [0,100], maxRepetitions in [1,100], both integers."""
    errors: list[str] = []
    if not _is_int(non_repeaters) or non_repeaters < NON_REPEATERS_RANGE[0]:
        errors.append("Non-repeaters must be a non-negative integer")
    elif non_repeaters > NON_REPEATERS_RANGE[1]:
        errors.append("Non-repeaters must not exceed 100")

    if not _is_int(max_repetitions) or max_repetitions < MAX_REPETITIONS_RANGE[0]:
        errors.append("Max repetitions must be a positive integer")
    elif max_repetitions > MAX_REPETITIONS_RANGE[1]:
        errors.append("Max repetitions must not exceed 100")
    return ValidationResult.from_errors(errors)


def validate_set_varbinds(varbinds: Iterable[Any]) -> ValidationResult:
    """SET payload: non-empty, valid OIDs, writable type tags."""
    items = list(varbinds or [])
    if not items:
        return ValidationResult.from_errors(["At least one varbind is required"])

    writable = _members(SnmpDataType) - {
        t.value for t in SnmpDataType if t.is_exception
    }
    errors: list[str] = []
    for i, vb in enumerate(items):
        oid = getattr(vb, "oid", None)
        if not validate_oid(oid):
            errors.append(f"Invalid OID at index {i}: {oid}")
        vb_type = _value(getattr(vb, "type", None))
        if vb_type not in writable:
            errors.append(f"Invalid varbind type at index {i}: {vb_type}")
    return ValidationResult.from_errors(errors)


def require_valid(result: ValidationResult, message: str = "Validation failed") -> None:
    """Raise SnmpValidationError carrying every collected error."""
    if not result.is_valid:
        raise SnmpValidationError(message, result.errors)
