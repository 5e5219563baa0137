"""
SNMP Protocol Client.

把高階操作（get / walk / bulk_walk / set / probe / system info / interface info）
轉成 engine session 上的單次交換，並負責：

- retry：每次交換以 device.timeout 為上限，timeout 時最多重試 device.retries 次，
  不額外 backoff；用盡後丟 SnmpTimeoutError。認證 / transport 錯誤不重試。
- walk 迴圈：離開 subtree、endOfMibView、OID 未遞增、超過迭代上限。
- 快取：每個讀取操作先查 ResponseCache；SET 永不快取，成功後清掉該設備的快取。
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from functools import partial
from typing import Any, TypeVar

from app.core.config import Settings, settings
from app.core.enums import InterfaceStatus, SnmpErrorStatus, SnmpVersion
from app.snmp import oid_maps
from app.snmp.engine import BaseSnmpEngine, SnmpSession
from app.snmp.errors import (
    SnmpAuthenticationError,
    SnmpCapabilityError,
    SnmpError,
    SnmpResponseError,
    SnmpTimeoutError,
    SnmpWalkLimitError,
)
from app.snmp.response_cache import ResponseCache, make_cache_key
from app.snmp.types import (
    ConnectionProbe,
    InterfaceRecord,
    SetFailure,
    SetResult,
    SnmpDevice,
    SystemInfo,
    Varbind,
    oid_in_subtree,
    oid_suffix,
    oid_to_tuple,
)
from app.snmp.validator import (
    require_valid,
    validate_bulk_parameters,
    validate_oid_list,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NO_SUCH_NAME = SnmpErrorStatus.NO_SUCH_NAME.wire_name


@dataclass
class SnmpClientConfig:
    """Client-level limits and cache TTLs."""

    max_oids_per_pdu: int = 50
    walk_max_iterations: int = 500
    walk_timeout: float = 120.0
    default_max_repetitions: int = 20
    default_ttl: float = 30.0
    system_ttl: float = 300.0
    counter_ttl: float = 0.0

    @classmethod
    def from_settings(cls, s: Settings | None = None) -> SnmpClientConfig:
        s = s or settings
        return cls(
            max_oids_per_pdu=s.snmp_max_oids_per_pdu,
            walk_max_iterations=s.snmp_walk_max_iterations,
            walk_timeout=s.snmp_walk_timeout,
            default_max_repetitions=s.snmp_default_max_repetitions,
            default_ttl=s.snmp_cache_ttl_seconds,
            system_ttl=s.snmp_cache_system_ttl_seconds,
            counter_ttl=s.snmp_cache_counter_ttl_seconds,
        )


def _chunks(items: Sequence[str], size: int) -> Iterable[list[str]]:
    for i in range(0, len(items), size):
        yield list(items[i:i + size])


def _format_mac(raw: Any) -> str | None:
    if isinstance(raw, bytes):
        return ":".join(f"{b:02x}" for b in raw) if raw else None
    return str(raw) if raw else None


class SnmpClient:
    """High-level SNMP operations with retries, walks and response caching."""

    def __init__(
        self,
        engine: BaseSnmpEngine,
        cache: ResponseCache | None = None,
        config: SnmpClientConfig | None = None,
    ) -> None:
        self._engine = engine
        self._config = config or SnmpClientConfig()
        self._cache = cache if cache is not None else ResponseCache(
            default_ttl=self._config.default_ttl,
        )

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def engine(self) -> BaseSnmpEngine:
        return self._engine

    async def close(self) -> None:
        await self._engine.close()

    # ── Retry / cache plumbing ───────────────────────────────────────

    async def _exchange(
        self,
        session: SnmpSession,
        op: str,
        call: Callable[[], Awaitable[T]],
    ) -> T:
        """
        One logical request with the device's retry policy.

        Each attempt is bounded by device.timeout; only timeouts are retried.
        """
        device = session.device
        attempts = device.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(call(), timeout=device.timeout_seconds)
            except (asyncio.TimeoutError, SnmpTimeoutError):
                logger.debug(
                    "SNMP %s timeout on %s (attempt %d/%d)",
                    op, device, attempt, attempts,
                )
        raise SnmpTimeoutError(
            f"SNMP {op} timeout: {device} did not respond after {attempts} attempts",
            attempts=attempts,
        )

    def _cached(self, key: str) -> Any | None:
        value = self._cache.get(key)
        if value is not None:
            logger.debug("SNMP cache hit: %s", key.split("|")[0])
        return value

    # ── GET / GET-NEXT ───────────────────────────────────────────────

    async def _get_chunk(self, session: SnmpSession, chunk: list[str]) -> list[Varbind]:
        """
        One GET for *chunk*, one varbind per requested OID in request order.

        SNMPv1 agents reject the whole PDU with noSuchName; the offending
        OID becomes a noSuchInstance sentinel and the rest are re-issued.
        """
        pending = list(chunk)
        found: dict[str, Varbind] = {}
        while pending:
            request = list(pending)
            try:
                varbinds = await self._exchange(
                    session, "GET", lambda: session.get(request),
                )
            except SnmpResponseError as e:
                if e.status != _NO_SUCH_NAME or not 1 <= e.index <= len(request):
                    raise
                missing = pending.pop(e.index - 1)
                found[missing] = Varbind.no_such_instance(missing)
                continue
            for requested, vb in zip(request, varbinds):
                found[requested] = vb
            for requested in request[len(varbinds):]:
                found[requested] = Varbind.no_such_instance(requested)
            break
        return [found[oid] for oid in chunk]

    async def _get_with(self, session: SnmpSession, oids: Sequence[str]) -> list[Varbind]:
        result: list[Varbind] = []
        for chunk in _chunks(oids, self._config.max_oids_per_pdu):
            result.extend(await self._get_chunk(session, chunk))
        return result

    async def get(self, device: SnmpDevice, oids: Sequence[str]) -> list[Varbind]:
        """
        SNMP GET for one or more OIDs.

        Returns:
            One Varbind per requested OID, in request order. Missing
            instances come back as noSuchInstance/noSuchObject sentinels.

        Raises:
            SnmpValidationError: malformed OID list.
            SnmpTimeoutError: no response after retries.
            SnmpAuthenticationError: credentials rejected.
        """
        oids = list(oids)
        require_valid(validate_oid_list(oids), "Invalid OID list")
        key = make_cache_key(device, "get", {"oids": oids})
        cached = self._cached(key)
        if cached is not None:
            return list(cached)

        async with self._engine.session(device) as session:
            result = await self._get_with(session, oids)
        self._cache.set(key, tuple(result), self._config.default_ttl)
        return result

    async def get_next(self, device: SnmpDevice, oids: Sequence[str]) -> list[Varbind]:
        """SNMP GET-NEXT: the lexicographic successor of each OID."""
        oids = list(oids)
        require_valid(validate_oid_list(oids), "Invalid OID list")
        key = make_cache_key(device, "get_next", {"oids": oids})
        cached = self._cached(key)
        if cached is not None:
            return list(cached)

        async with self._engine.session(device) as session:
            result: list[Varbind] = []
            for chunk in _chunks(oids, self._config.max_oids_per_pdu):
                result.extend(await self._exchange(
                    session, "GETNEXT", lambda chunk=chunk: session.get_next(chunk),
                ))
        self._cache.set(key, tuple(result), self._config.default_ttl)
        return result

    async def get_bulk(
        self,
        device: SnmpDevice,
        oid: str,
        non_repeaters: int = 0,
        max_repetitions: int = 20,
    ) -> list[Varbind]:
        """
        One GET-BULK exchange starting after *oid* (not a walk).

        Whatever the agent packs into the single response is returned,
        including varbinds past the subtree and endOfMibView. SNMPv1 has
        no GET-BULK, so it falls back to a plain GET of *oid*.
        """
        require_valid(validate_oid_list([oid]), "Invalid OID")
        require_valid(
            validate_bulk_parameters(non_repeaters, max_repetitions),
            "Invalid bulk parameters",
        )
        if device.version is SnmpVersion.V1:
            return await self.get(device, [oid])

        key = make_cache_key(device, "get_bulk", {
            "oid": oid,
            "nonRepeaters": non_repeaters,
            "maxRepetitions": max_repetitions,
        })
        cached = self._cached(key)
        if cached is not None:
            return list(cached)

        async with self._engine.session(device) as session:
            result = await self._exchange(
                session, "GETBULK",
                partial(session.get_bulk, non_repeaters, max_repetitions, [oid]),
            )
        self._cache.set(key, tuple(result), self._config.default_ttl)
        return result

    # ── WALK ─────────────────────────────────────────────────────────

    async def _walk_with(
        self,
        session: SnmpSession,
        root: str,
        *,
        use_bulk: bool,
        non_repeaters: int = 0,
        max_repetitions: int = 20,
    ) -> list[Varbind]:
        """Walk *root* within an open session; bounded by walk_max_iterations."""
        root = root.strip(".")
        results: list[Varbind] = []
        current = root
        last = oid_to_tuple(root)
        first = True

        for _ in range(self._config.walk_max_iterations):
            if use_bulk:
                nr = min(non_repeaters, 1) if first else 0
                call = partial(session.get_bulk, nr, max_repetitions, [current])
                op = "GETBULK"
            else:
                call = partial(session.get_next, [current])
                op = "GETNEXT"
            first = False

            try:
                varbinds = await self._exchange(session, op, call)
            except SnmpResponseError as e:
                # v1 以 noSuchName 表示 MIB 結尾
                if not use_bulk and e.status == _NO_SUCH_NAME:
                    return results
                raise

            if not varbinds:
                return results
            for vb in varbinds:
                if vb.is_exception or not oid_in_subtree(vb.oid, root):
                    return results
                position = oid_to_tuple(vb.oid)
                if position <= last:
                    raise SnmpWalkLimitError(
                        f"Agent {session.device} returned non-increasing OID "
                        f"{vb.oid} while walking {root}"
                    )
                results.append(vb)
                last = position
                current = vb.oid

        raise SnmpWalkLimitError(
            f"Walk of {root} on {session.device} exceeded "
            f"{self._config.walk_max_iterations} exchanges"
        )

    async def _bounded_walk(self, session: SnmpSession, root: str, **kwargs: Any) -> list[Varbind]:
        try:
            return await asyncio.wait_for(
                self._walk_with(session, root, **kwargs),
                timeout=self._config.walk_timeout,
            )
        except asyncio.TimeoutError as e:
            raise SnmpTimeoutError(
                f"SNMP walk of {root} on {session.device} exceeded "
                f"{self._config.walk_timeout}s"
            ) from e

    async def walk(
        self,
        device: SnmpDevice,
        root_oid: str,
        max_repetitions: int | None = None,
    ) -> list[Varbind]:
        """
        Walk a subtree: GET-NEXT on v1, GET-BULK on v2c/v3.

        Raises:
            SnmpWalkLimitError: iteration ceiling hit or agent looped.
        """
        require_valid(validate_oid_list([root_oid]), "Invalid root OID")
        if max_repetitions is None:
            max_repetitions = self._config.default_max_repetitions
        require_valid(validate_bulk_parameters(0, max_repetitions), "Invalid bulk parameters")

        key = make_cache_key(device, "walk", {"oid": root_oid, "maxRepetitions": max_repetitions})
        cached = self._cached(key)
        if cached is not None:
            return list(cached)

        async with self._engine.session(device) as session:
            result = await self._bounded_walk(
                session, root_oid,
                use_bulk=device.version is not SnmpVersion.V1,
                max_repetitions=max_repetitions,
            )
        self._cache.set(key, tuple(result), self._config.default_ttl)
        return result

    async def bulk_walk(
        self,
        device: SnmpDevice,
        root_oid: str,
        non_repeaters: int = 0,
        max_repetitions: int = 20,
    ) -> list[Varbind]:
        """
        Walk using GET-BULK with an explicit non-repeaters/max-repetitions split.

        Raises:
            SnmpCapabilityError: device speaks SNMPv1 (checked before any traffic).
        """
        if device.version is SnmpVersion.V1:
            raise SnmpCapabilityError("bulk-walk requires SNMPv2c or SNMPv3")
        require_valid(validate_oid_list([root_oid]), "Invalid root OID")
        require_valid(
            validate_bulk_parameters(non_repeaters, max_repetitions),
            "Invalid bulk parameters",
        )

        key = make_cache_key(device, "bulk_walk", {
            "oid": root_oid,
            "nonRepeaters": non_repeaters,
            "maxRepetitions": max_repetitions,
        })
        cached = self._cached(key)
        if cached is not None:
            return list(cached)

        async with self._engine.session(device) as session:
            result = await self._bounded_walk(
                session, root_oid,
                use_bulk=True,
                non_repeaters=non_repeaters,
                max_repetitions=max_repetitions,
            )
        self._cache.set(key, tuple(result), self._config.default_ttl)
        return result

    # ── SET ──────────────────────────────────────────────────────────

    async def set(self, device: SnmpDevice, varbinds: Sequence[Varbind]) -> SetResult:
        """
        SNMP SET.

        An agent rejection is returned as SetResult.failures naming the OID;
        timeouts / auth errors still raise.
        """
        varbinds = list(varbinds)
        require_valid(
            validate_oid_list([vb.oid for vb in varbinds]),
            "Invalid SET varbinds",
        )

        async with self._engine.session(device) as session:
            try:
                written = await self._exchange(
                    session, "SET", lambda: session.set(varbinds),
                )
            except SnmpResponseError as e:
                oid = e.oid
                if oid is None and 1 <= e.index <= len(varbinds):
                    oid = varbinds[e.index - 1].oid
                logger.warning("SNMP SET rejected by %s: %s at %s", device, e.status, oid)
                return SetResult(
                    success=False,
                    failures=[SetFailure(oid=oid or "", status=e.status, index=e.index)],
                    error=str(e),
                )
            finally:
                # 設備狀態可能已變更，舊的讀取結果一律作廢
                self._cache.invalidate_device(device)
        return SetResult(success=True, varbinds=written)

    # ── Connectivity ─────────────────────────────────────────────────

    async def probe(self, device: SnmpDevice) -> ConnectionProbe:
        """
        GET sysDescr.0 with the device's timeout/retries; never cached.

        An authentication failure still proves the agent is reachable.

        Raises:
            SnmpCapabilityError: transport not supported by the engine.
        """
        started = time.perf_counter()

        def elapsed() -> float:
            return round((time.perf_counter() - started) * 1000, 2)

        try:
            async with self._engine.session(device) as session:
                await self._exchange(
                    session, "GET", lambda: session.get([oid_maps.SYS_DESCR]),
                )
        except SnmpAuthenticationError as e:
            return ConnectionProbe(
                reachable=True, authenticated=False,
                message=f"Device reachable but credentials rejected: {e}",
                response_time_ms=elapsed(),
            )
        except SnmpResponseError as e:
            return ConnectionProbe(
                reachable=True, authenticated=True,
                message=f"Device responded with {e.status}",
                response_time_ms=elapsed(),
            )
        except SnmpTimeoutError as e:
            return ConnectionProbe(
                reachable=False, authenticated=False,
                message=f"No response after {e.attempts} attempts",
                response_time_ms=elapsed(),
            )
        except SnmpCapabilityError:
            raise
        except SnmpError as e:
            return ConnectionProbe(
                reachable=False, authenticated=False,
                message=str(e), response_time_ms=elapsed(),
            )
        return ConnectionProbe(
            reachable=True, authenticated=True,
            message="SNMP connection successful", response_time_ms=elapsed(),
        )

    async def test_connection(self, device: SnmpDevice) -> bool:
        return (await self.probe(device)).reachable

    # ── System / interfaces ──────────────────────────────────────────

    async def get_system_info(self, device: SnmpDevice) -> SystemInfo:
        """Fixed GET over the system group; absent fields stay None."""
        key = make_cache_key(device, "system_info")
        cached = self._cached(key)
        if cached is not None:
            return cached

        oids = list(oid_maps.SYSTEM_FIELDS)
        async with self._engine.session(device) as session:
            varbinds = await self._get_with(session, oids)

        info = SystemInfo()
        for vb in varbinds:
            if vb.is_exception:
                continue
            attr = oid_maps.SYSTEM_FIELDS[vb.oid]
            if attr in ("sys_uptime", "sys_services"):
                setattr(info, attr, vb.as_int())
            else:
                setattr(info, attr, vb.as_text())
        self._cache.set(key, info, self._config.system_ttl)
        return info

    async def get_interface_info(self, device: SnmpDevice) -> list[InterfaceRecord]:
        """
        Walk ifTable (and ifXTable on v2c/v3), joined by ifIndex.

        64-bit HC counters win over 32-bit ones; an ifXTable failure
        degrades to 32-bit data instead of failing the call.
        """
        key = make_cache_key(device, "interfaces")
        cached = self._cached(key)
        if cached is not None:
            return list(cached)

        use_bulk = device.version is not SnmpVersion.V1
        async with self._engine.session(device) as session:
            if_rows = await self._bounded_walk(session, oid_maps.IF_TABLE, use_bulk=use_bulk,
                                               max_repetitions=self._config.default_max_repetitions)
            x_rows: list[Varbind] = []
            if use_bulk:
                try:
                    x_rows = await self._bounded_walk(
                        session, oid_maps.IF_X_TABLE, use_bulk=True,
                        max_repetitions=self._config.default_max_repetitions,
                    )
                except SnmpAuthenticationError:
                    raise
                except SnmpError as e:
                    logger.warning("ifXTable walk failed on %s, using 32-bit counters: %s", device, e)

        records = self._join_interfaces(if_rows, x_rows)
        self._cache.set(key, tuple(records), self._config.counter_ttl)
        return records

    @staticmethod
    def _group_by_index(
        varbinds: Iterable[Varbind], entry: str, columns: dict[int, str],
    ) -> dict[int, dict[str, Varbind]]:
        rows: dict[int, dict[str, Varbind]] = {}
        for vb in varbinds:
            if vb.is_exception or not oid_in_subtree(vb.oid, entry):
                continue
            column, _, index = oid_suffix(vb.oid, entry).partition(".")
            if not (column.isdigit() and index.isdigit()):
                continue
            row = rows.setdefault(int(index), {})
            attr = columns.get(int(column))
            if attr:
                row[attr] = vb
        return rows

    def _join_interfaces(
        self, if_rows: list[Varbind], x_rows: list[Varbind],
    ) -> list[InterfaceRecord]:
        base = self._group_by_index(if_rows, oid_maps.IF_ENTRY, oid_maps.IF_TABLE_COLUMNS)
        ext = self._group_by_index(x_rows, oid_maps.IF_X_ENTRY, oid_maps.IF_X_TABLE_COLUMNS)

        def num(row: dict[str, Varbind], attr: str) -> int | None:
            vb = row.get(attr)
            return vb.as_int() if vb else None

        def text(row: dict[str, Varbind], attr: str) -> str | None:
            vb = row.get(attr)
            return vb.as_text() if vb else None

        records: list[InterfaceRecord] = []
        for if_index in sorted(set(base) | set(ext)):
            row = base.get(if_index, {})
            xrow = ext.get(if_index, {})
            hc_in = num(xrow, "hc_in_octets")
            hc_out = num(xrow, "hc_out_octets")
            phys = row.get("phys_address")
            records.append(InterfaceRecord(
                if_index=if_index,
                descr=text(row, "descr"),
                name=text(xrow, "name"),
                alias=text(xrow, "alias"),
                if_type=num(row, "if_type"),
                mtu=num(row, "mtu"),
                speed=num(row, "speed"),
                high_speed=num(xrow, "high_speed"),
                phys_address=_format_mac(phys.value) if phys else None,
                admin_status=InterfaceStatus.from_code(num(row, "admin_status")),
                oper_status=InterfaceStatus.from_code(num(row, "oper_status")),
                last_change=num(row, "last_change"),
                in_octets=hc_in if hc_in is not None else num(row, "in_octets"),
                out_octets=hc_out if hc_out is not None else num(row, "out_octets"),
                in_errors=num(row, "in_errors"),
                out_errors=num(row, "out_errors"),
                in_discards=num(row, "in_discards"),
                out_discards=num(row, "out_discards"),
                counters_64bit=hc_in is not None or hc_out is not None,
            ))
        return records

    async def get_sensor_info(self, device: SnmpDevice) -> list[dict[str, Any]]:
        """Sensor discovery is not implemented."""
        raise SnmpCapabilityError("Sensor discovery is not supported yet")
