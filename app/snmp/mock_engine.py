"""
Mock SNMP Engine.

Drop-in replacement for AsyncSnmpEngine that answers from an in-memory
agent instead of sending UDP packets. Used when SNMP_MOCK=true and as the
wire fake in the test suite.

每個 host 對應一個 MockAgent（排序好的 OID 表），完整實作
GET / GET-NEXT / GET-BULK / SET 語意，包含 v1 的 noSuchName 錯誤與
v2 的 noSuchInstance / endOfMibView 例外值。

測試用的控制項：
- exchange_count：實際「送出」的交換次數（快取命中時不會增加）
- silent：agent 永遠不回應 → client 端 timeout
- deny：agent 回應認證失敗（v3 USM 錯誤）
"""
from __future__ import annotations

import asyncio
import bisect
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from app.core.enums import SnmpDataType, SnmpErrorStatus, SnmpVersion
from app.snmp.engine import BaseSnmpEngine, SnmpSession
from app.snmp.errors import (
    SnmpAuthenticationError,
    SnmpCapabilityError,
    SnmpResponseError,
)
from app.snmp.mock_data import build_agent_table
from app.snmp.types import SnmpDevice, Varbind, oid_to_tuple

logger = logging.getLogger(__name__)


@dataclass
class MockAgent:
    """In-memory SNMP agent for one host."""

    varbinds: dict[str, Varbind] = field(default_factory=dict)
    community: str | None = None
    username: str | None = None
    read_only: set[str] = field(default_factory=set)
    silent: bool = False
    deny: bool = False

    def __post_init__(self) -> None:
        self._reindex()

    def _reindex(self) -> None:
        self._keys = sorted(self.varbinds, key=oid_to_tuple)
        self._tuples = [oid_to_tuple(k) for k in self._keys]

    @classmethod
    def from_varbinds(cls, varbinds: Iterable[Varbind], **kwargs) -> MockAgent:
        return cls(varbinds={vb.oid: vb for vb in varbinds}, **kwargs)

    def put(self, varbind: Varbind) -> None:
        self.varbinds[varbind.oid] = varbind
        self._reindex()

    def remove(self, oid: str) -> None:
        self.varbinds.pop(oid, None)
        self._reindex()

    def lookup(self, oid: str) -> Varbind | None:
        return self.varbinds.get(oid)

    def next_after(self, oid: str) -> Varbind | None:
        """First entry strictly greater than *oid* in MIB order."""
        pos = bisect.bisect_right(self._tuples, oid_to_tuple(oid))
        if pos >= len(self._keys):
            return None
        return self.varbinds[self._keys[pos]]

    def has_object(self, oid: str) -> bool:
        """True when *oid*'s parent object has any instance (noSuchInstance vs noSuchObject)."""
        parent = oid.rsplit(".", 1)[0] + "."
        return any(k.startswith(parent) for k in self._keys)


class MockSnmpSession(SnmpSession):
    """Session against a MockAgent; each call is one counted exchange."""

    def __init__(self, device: SnmpDevice, engine: MockSnmpEngine) -> None:
        super().__init__(device)
        self._engine = engine
        self.closed = False

    @property
    def _v1(self) -> bool:
        return self.device.version is SnmpVersion.V1

    async def _exchange(self) -> MockAgent:
        """Account for one request on the wire and return the answering agent."""
        engine = self._engine
        engine.exchange_count += 1
        engine.exchanges_by_host[self.device.hostname] = (
            engine.exchanges_by_host.get(self.device.hostname, 0) + 1
        )
        agent = engine.agent_for(self.device.hostname)
        if agent is None or agent.silent or engine.silent:
            # 不回應：讓 client 端的 timeout 處理
            await asyncio.Event().wait()
        creds = self.device.credentials
        if creds.version is SnmpVersion.V3:
            if agent.deny or (agent.username and creds.username != agent.username):
                raise SnmpAuthenticationError(
                    f"SNMP request rejected by {self.device}: unknownUserName"
                )
        elif agent.deny or (agent.community and creds.community != agent.community):
            # v1/v2c agents silently drop a wrong community
            await asyncio.Event().wait()
        if engine.latency:
            await asyncio.sleep(engine.latency)
        return agent

    def _no_such_name(self, op: str, index: int, oid: str) -> SnmpResponseError:
        return SnmpResponseError(
            f"SNMP {op} error status noSuchName at {oid} on {self.device}",
            status=SnmpErrorStatus.NO_SUCH_NAME.wire_name,
            index=index,
            oid=oid,
        )

    async def get(self, oids: Sequence[str]) -> list[Varbind]:
        agent = await self._exchange()
        result: list[Varbind] = []
        for i, oid in enumerate(oids, start=1):
            vb = agent.lookup(oid)
            if vb is not None:
                result.append(vb)
                continue
            if self._v1:
                raise self._no_such_name("GET", i, oid)
            tag = (
                SnmpDataType.NO_SUCH_INSTANCE
                if agent.has_object(oid)
                else SnmpDataType.NO_SUCH_OBJECT
            )
            result.append(Varbind(oid=oid, type=tag))
        return result

    async def get_next(self, oids: Sequence[str]) -> list[Varbind]:
        agent = await self._exchange()
        result: list[Varbind] = []
        for i, oid in enumerate(oids, start=1):
            vb = agent.next_after(oid)
            if vb is None:
                if self._v1:
                    raise self._no_such_name("GETNEXT", i, oid)
                vb = Varbind(oid=oid, type=SnmpDataType.END_OF_MIB_VIEW)
            result.append(vb)
        return result

    async def get_bulk(
        self, non_repeaters: int, max_repetitions: int, oids: Sequence[str],
    ) -> list[Varbind]:
        if self._v1:
            raise SnmpCapabilityError("GET-BULK is not available in SNMPv1")
        agent = await self._exchange()

        def step(oid: str) -> Varbind:
            nxt = agent.next_after(oid)
            return nxt or Varbind(oid=oid, type=SnmpDataType.END_OF_MIB_VIEW)

        non_repeaters = min(non_repeaters, len(oids))
        result = [step(oid) for oid in oids[:non_repeaters]]
        cursors = list(oids[non_repeaters:])
        for _ in range(max_repetitions if cursors else 0):
            row = [step(oid) for oid in cursors]
            result.extend(row)
            cursors = [vb.oid for vb in row]
            if all(vb.is_end_of_mib for vb in row):
                break
        return result

    async def set(self, varbinds: Sequence[Varbind]) -> list[Varbind]:
        agent = await self._exchange()
        # SET 在單一 PDU 內是 all-or-nothing
        for i, vb in enumerate(varbinds, start=1):
            current = agent.lookup(vb.oid)
            if current is None or vb.oid in agent.read_only:
                status = (
                    SnmpErrorStatus.NO_SUCH_NAME if self._v1
                    else SnmpErrorStatus.NOT_WRITABLE
                )
            elif current.type is not vb.type:
                status = (
                    SnmpErrorStatus.BAD_VALUE if self._v1
                    else SnmpErrorStatus.WRONG_TYPE
                )
            else:
                continue
            raise SnmpResponseError(
                f"SNMP SET error status {status.wire_name} at {vb.oid} on {self.device}",
                status=status.wire_name,
                index=i,
                oid=vb.oid,
            )
        for vb in varbinds:
            agent.put(vb)
        return list(varbinds)

    async def close(self) -> None:
        self.closed = True
        self._engine._session_closed(self.device.hostname)


class MockSnmpEngine(BaseSnmpEngine):
    """
    Mock SNMP engine — same interface as AsyncSnmpEngine.

    auto_populate=True 時，未註冊的 host 會用 mock_data 的預設 MIB 自動建立 agent
    （SNMP_MOCK 模式）；False 時未註冊的 host 不回應（測試用）。
    """

    def __init__(self, latency: float = 0.0, auto_populate: bool = False) -> None:
        self.latency = latency
        self.auto_populate = auto_populate
        self.silent = False
        self.agents: dict[str, MockAgent] = {}
        self.exchange_count = 0
        self.exchanges_by_host: dict[str, int] = {}
        self.sessions_opened = 0
        self.open_sessions = 0
        self.max_open_sessions = 0
        self.open_by_host: dict[str, int] = {}
        self.max_open_by_host: dict[str, int] = {}
        if auto_populate:
            logger.info("MockSnmpEngine initialized (no real SNMP traffic)")

    def add_agent(self, host: str, agent: MockAgent) -> MockAgent:
        self.agents[host] = agent
        return agent

    def agent_for(self, host: str) -> MockAgent | None:
        agent = self.agents.get(host)
        if agent is None and self.auto_populate:
            agent = self.add_agent(host, MockAgent(varbinds=build_agent_table(host)))
        return agent

    async def open_session(self, device: SnmpDevice) -> SnmpSession:
        host = device.hostname
        self.sessions_opened += 1
        self.open_sessions += 1
        self.max_open_sessions = max(self.max_open_sessions, self.open_sessions)
        self.open_by_host[host] = self.open_by_host.get(host, 0) + 1
        self.max_open_by_host[host] = max(
            self.max_open_by_host.get(host, 0), self.open_by_host[host],
        )
        return MockSnmpSession(device, self)

    def _session_closed(self, host: str) -> None:
        self.open_sessions -= 1
        self.open_by_host[host] -= 1
