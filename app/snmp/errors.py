"""
SNMP error taxonomy.

所有協定層錯誤都繼承 SnmpError，API 層依類型決定回應方式：
- SnmpValidationError / SnmpCapabilityError → 400
- 其餘（timeout / auth / transport / response）→ 200 + success=false
"""
from __future__ import annotations


class SnmpError(Exception):
    """Base SNMP error."""

    error_type = "snmp_error"


class SnmpValidationError(SnmpError):
    """Input rejected before any network traffic."""

    error_type = "validation_error"

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [message])


class SnmpCapabilityError(SnmpError):
    """Operation not supported for this version/transport/backend."""

    error_type = "capability_error"


class SnmpTimeoutError(SnmpError):
    """SNMP request timed out after all retries."""

    error_type = "timeout"

    def __init__(self, message: str, attempts: int = 1) -> None:
        super().__init__(message)
        self.attempts = attempts


class SnmpAuthenticationError(SnmpError):
    """Agent answered but rejected the credentials (bad community / USM failure)."""

    error_type = "authentication_error"


class SnmpTransportError(SnmpError):
    """Socket-level failure: unresolvable host, unreachable network, refused port."""

    error_type = "transport_error"


class SnmpResponseError(SnmpError):
    """Agent returned a non-zero error-status."""

    error_type = "response_error"

    def __init__(
        self,
        message: str,
        status: str = "genErr",
        index: int = 0,
        oid: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.index = index
        self.oid = oid


class SnmpWalkLimitError(SnmpError):
    """Walk exceeded its iteration ceiling or the agent returned non-increasing OIDs."""

    error_type = "walk_limit"
