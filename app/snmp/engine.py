"""
SNMP Engine — pysnmp asyncio wrapper.

提供 session 介面，每個方法都是「單次」request/response 交換：
- get()       — GET-REQUEST
- get_next()  — GET-NEXT-REQUEST
- get_bulk()  — GET-BULK-REQUEST（v2c/v3）
- set()       — SET-REQUEST

Retries / walk 迴圈 / 快取都在 SnmpClient 處理，engine 只負責一次交換，
因此 pysnmp 的 transport 一律設定 retries=0。

一個 session 對應一個 pysnmp SnmpEngine：v3 的 engine discovery
（engine ID / boots / time）只在 session 第一次交換時發生，之後同一個
邏輯操作內的所有交換都重用它；session 結束時 close_dispatcher() 釋放 socket。

NOTE: pysnmp imports are deferred to AsyncSnmpEngine so that mock mode
(SNMP_MOCK=true) and the test suite never open a real transport.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from app.core.enums import (
    SnmpAuthLevel,
    SnmpAuthProtocol,
    SnmpErrorStatus,
    SnmpPrivProtocol,
    SnmpTransport,
    SnmpVersion,
)
from app.snmp.errors import (
    SnmpAuthenticationError,
    SnmpCapabilityError,
    SnmpError,
    SnmpResponseError,
    SnmpTimeoutError,
    SnmpTransportError,
)
from app.snmp.types import SnmpDevice, Varbind

logger = logging.getLogger(__name__)

# pysnmp errind class names that mean "the agent answered, but said no"
_AUTH_INDICATIONS = frozenset({
    "UnknownUserName",
    "UnknownSecurityName",
    "UnsupportedSecurityLevel",
    "WrongDigest",
    "WrongDigests",
    "DecryptionError",
    "NotInTimeWindow",
    "AuthenticationFailure",
    "AuthenticationError",
    "UnknownEngineID",
    "UnknownPDUHandler",
})
_TIMEOUT_INDICATIONS = frozenset({"RequestTimedOut"})


class SnmpSession(ABC):
    """One logical operation against one device; every method is a single exchange."""

    def __init__(self, device: SnmpDevice) -> None:
        self.device = device

    @abstractmethod
    async def get(self, oids: Sequence[str]) -> list[Varbind]:
        """GET-REQUEST."""

    @abstractmethod
    async def get_next(self, oids: Sequence[str]) -> list[Varbind]:
        """GET-NEXT-REQUEST."""

    @abstractmethod
    async def get_bulk(
        self, non_repeaters: int, max_repetitions: int, oids: Sequence[str],
    ) -> list[Varbind]:
        """GET-BULK-REQUEST; returned varbinds are flat, in agent order."""

    @abstractmethod
    async def set(self, varbinds: Sequence[Varbind]) -> list[Varbind]:
        """SET-REQUEST."""

    async def close(self) -> None:
        """Release transport resources."""


class BaseSnmpEngine(ABC):
    """Factory for per-operation sessions."""

    @abstractmethod
    async def open_session(self, device: SnmpDevice) -> SnmpSession:
        """Create a session bound to *device*."""

    @asynccontextmanager
    async def session(self, device: SnmpDevice) -> AsyncIterator[SnmpSession]:
        """Session scope; closed on exit, including on cancellation."""
        sess = await self.open_session(device)
        try:
            yield sess
        finally:
            await sess.close()

    async def close(self) -> None:
        """Engine-wide cleanup (no-op by default)."""


def classify_error_indication(device: SnmpDevice, op: str, indication: Any) -> SnmpError:
    """Map a pysnmp errorIndication to the error taxonomy."""
    name = type(indication).__name__
    text = str(indication)
    if name in _TIMEOUT_INDICATIONS or "timeout" in text.lower():
        return SnmpTimeoutError(f"SNMP {op} timeout: {device}")
    if name in _AUTH_INDICATIONS:
        return SnmpAuthenticationError(f"SNMP {op} rejected by {device}: {text}")
    return SnmpTransportError(f"SNMP {op} error on {device}: {text}")


def error_status_exception(
    device: SnmpDevice,
    op: str,
    status_code: int,
    index: int,
    oids: Sequence[str],
) -> SnmpError:
    """Map a non-zero error-status to SnmpResponseError (or auth error)."""
    status = SnmpErrorStatus.from_code(status_code)
    oid = oids[index - 1] if 0 < index <= len(oids) else None
    message = f"SNMP {op} error status {status.wire_name} at {oid or '?'} on {device}"
    if status is SnmpErrorStatus.AUTHORIZATION_ERROR:
        return SnmpAuthenticationError(message)
    return SnmpResponseError(message, status=status.wire_name, index=index, oid=oid)


class _PysnmpSession(SnmpSession):
    """pysnmp v7 (hlapi.v3arch.asyncio) session."""

    def __init__(self, device: SnmpDevice) -> None:
        super().__init__(device)
        from pysnmp.hlapi.v3arch.asyncio import ContextData, SnmpEngine

        self._engine = SnmpEngine()
        self._auth = self._make_auth()
        context_name = device.credentials.context_name or ""
        self._context = ContextData(contextName=context_name)
        self._target: Any = None

    def _make_auth(self) -> Any:
        """CommunityData for v1/v2c, UsmUserData for v3."""
        from pysnmp.hlapi.v3arch.asyncio import (
            CommunityData,
            UsmUserData,
            usm3DESEDEPrivProtocol,
            usmAesCfb128Protocol,
            usmAesCfb192Protocol,
            usmAesCfb256Protocol,
            usmDESPrivProtocol,
            usmHMAC128SHA224AuthProtocol,
            usmHMAC192SHA256AuthProtocol,
            usmHMAC256SHA384AuthProtocol,
            usmHMAC384SHA512AuthProtocol,
            usmHMACMD5AuthProtocol,
            usmHMACSHAAuthProtocol,
            usmNoAuthProtocol,
            usmNoPrivProtocol,
        )

        creds = self.device.credentials
        if creds.version is not SnmpVersion.V3:
            return CommunityData(
                creds.community or "", mpModel=creds.version.mp_model,
            )

        auth_map = {
            SnmpAuthProtocol.MD5: usmHMACMD5AuthProtocol,
            SnmpAuthProtocol.SHA: usmHMACSHAAuthProtocol,
            SnmpAuthProtocol.SHA224: usmHMAC128SHA224AuthProtocol,
            SnmpAuthProtocol.SHA256: usmHMAC192SHA256AuthProtocol,
            SnmpAuthProtocol.SHA384: usmHMAC256SHA384AuthProtocol,
            SnmpAuthProtocol.SHA512: usmHMAC384SHA512AuthProtocol,
        }
        priv_map = {
            SnmpPrivProtocol.DES: usmDESPrivProtocol,
            SnmpPrivProtocol.TRIPLE_DES: usm3DESEDEPrivProtocol,
            SnmpPrivProtocol.AES: usmAesCfb128Protocol,
            SnmpPrivProtocol.AES192: usmAesCfb192Protocol,
            SnmpPrivProtocol.AES256: usmAesCfb256Protocol,
        }

        level = creds.auth_level or SnmpAuthLevel.NO_AUTH_NO_PRIV
        kwargs: dict[str, Any] = {
            "authProtocol": usmNoAuthProtocol,
            "privProtocol": usmNoPrivProtocol,
        }
        if level.requires_auth:
            kwargs["authKey"] = creds.auth_password
            kwargs["authProtocol"] = auth_map[creds.auth_protocol]
        if level.requires_priv:
            kwargs["privKey"] = creds.priv_password
            kwargs["privProtocol"] = priv_map[creds.priv_protocol]
        return UsmUserData(creds.username, **kwargs)

    async def _transport(self) -> Any:
        if self._target is not None:
            return self._target

        from pysnmp.error import PySnmpError
        from pysnmp.hlapi.v3arch.asyncio import Udp6TransportTarget, UdpTransportTarget

        if self.device.transport is SnmpTransport.TCP:
            raise SnmpCapabilityError("TCP transport is not supported by the pysnmp backend")
        factory = (
            Udp6TransportTarget
            if self.device.transport is SnmpTransport.UDP6
            else UdpTransportTarget
        )
        try:
            self._target = await factory.create(
                (self.device.hostname, self.device.port),
                timeout=self.device.timeout_seconds,
                retries=0,
            )
        except PySnmpError as e:
            raise SnmpTransportError(
                f"Cannot open transport to {self.device}: {e}"
            ) from e
        return self._target

    @staticmethod
    def _object_types(oids: Sequence[str]) -> list[Any]:
        from pysnmp.hlapi.v3arch.asyncio import ObjectIdentity, ObjectType

        return [ObjectType(ObjectIdentity(oid)) for oid in oids]

    def _unpack(
        self, op: str, oids: Sequence[str], response: tuple[Any, Any, Any, Any],
    ) -> list[Varbind]:
        from app.snmp.codec import decode_varbind

        error_indication, error_status, error_index, var_binds = response
        if error_indication:
            raise classify_error_indication(self.device, op, error_indication)
        if error_status:
            raise error_status_exception(
                self.device, op, int(error_status), int(error_index or 0), oids,
            )
        return [decode_varbind(oid, val) for oid, val in var_binds]

    async def get(self, oids: Sequence[str]) -> list[Varbind]:
        from pysnmp.hlapi.v3arch.asyncio import get_cmd

        target = await self._transport()
        response = await get_cmd(
            self._engine, self._auth, target, self._context,
            *self._object_types(oids),
        )
        return self._unpack("GET", oids, response)

    async def get_next(self, oids: Sequence[str]) -> list[Varbind]:
        from pysnmp.hlapi.v3arch.asyncio import next_cmd

        target = await self._transport()
        response = await next_cmd(
            self._engine, self._auth, target, self._context,
            *self._object_types(oids),
        )
        return self._unpack("GETNEXT", oids, response)

    async def get_bulk(
        self, non_repeaters: int, max_repetitions: int, oids: Sequence[str],
    ) -> list[Varbind]:
        from pysnmp.hlapi.v3arch.asyncio import bulk_cmd

        if self.device.version is SnmpVersion.V1:
            raise SnmpCapabilityError("GET-BULK is not available in SNMPv1")
        target = await self._transport()
        response = await bulk_cmd(
            self._engine, self._auth, target, self._context,
            non_repeaters, max_repetitions,
            *self._object_types(oids),
        )
        return self._unpack("GETBULK", oids, response)

    async def set(self, varbinds: Sequence[Varbind]) -> list[Varbind]:
        from pysnmp.hlapi.v3arch.asyncio import ObjectIdentity, ObjectType, set_cmd

        from app.snmp.codec import encode_value

        target = await self._transport()
        object_types = [
            ObjectType(ObjectIdentity(vb.oid), encode_value(vb)) for vb in varbinds
        ]
        response = await set_cmd(
            self._engine, self._auth, target, self._context, *object_types,
        )
        return self._unpack("SET", [vb.oid for vb in varbinds], response)

    async def close(self) -> None:
        try:
            self._engine.close_dispatcher()
        except Exception:
            logger.debug("close_dispatcher failed for %s", self.device, exc_info=True)


class AsyncSnmpEngine(BaseSnmpEngine):
    """
    Real SNMP backend on top of pysnmp 7.x asyncio API.

    Each session owns its own pysnmp SnmpEngine, so concurrent polls of
    different devices never share dispatcher state.
    """

    async def open_session(self, device: SnmpDevice) -> SnmpSession:
        if device.transport is SnmpTransport.TCP:
            raise SnmpCapabilityError("TCP transport is not supported by the pysnmp backend")
        return _PysnmpSession(device)
