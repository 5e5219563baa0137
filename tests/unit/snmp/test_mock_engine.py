"""Tests for MockSnmpEngine and the generated mock MIB (SNMP_MOCK mode)."""
from __future__ import annotations

import pytest

from app.core.enums import SnmpDataType, SnmpVersion
from app.snmp import oid_maps
from app.snmp.client import SnmpClient
from app.snmp.errors import SnmpCapabilityError
from app.snmp.mock_data import build_agent_table
from app.snmp.mock_engine import MockAgent, MockSnmpEngine
from tests.conftest import make_device, octets


class TestMockAgent:
    def test_next_after_is_mib_ordered(self):
        agent = MockAgent.from_varbinds([
            octets("1.3.6.1.2.1.1.10.0", "ten"),
            octets("1.3.6.1.2.1.1.9.0", "nine"),
        ])
        # numeric, not lexicographic, ordering
        assert agent.next_after("1.3.6.1.2.1.1").oid == "1.3.6.1.2.1.1.9.0"
        assert agent.next_after("1.3.6.1.2.1.1.9.0").oid == "1.3.6.1.2.1.1.10.0"
        assert agent.next_after("1.3.6.1.2.1.1.10.0") is None

    @pytest.mark.asyncio
    async def test_v2_missing_object_vs_instance(self, engine, agent, device):
        async with engine.session(device) as session:
            result = await session.get(["1.3.6.1.2.1.1.5.1", "1.3.6.1.2.1.99.0"])
        assert result[0].type is SnmpDataType.NO_SUCH_INSTANCE
        assert result[1].type is SnmpDataType.NO_SUCH_OBJECT

    @pytest.mark.asyncio
    async def test_get_bulk_rejected_on_v1(self, engine, agent):
        async with engine.session(make_device(version=SnmpVersion.V1)) as session:
            with pytest.raises(SnmpCapabilityError):
                await session.get_bulk(0, 10, ["1.3.6.1"])
        assert engine.exchange_count == 0

    @pytest.mark.asyncio
    async def test_exchange_accounting(self, engine, agent, device):
        async with engine.session(device) as session:
            await session.get([oid_maps.SYS_DESCR])
            await session.get_next([oid_maps.SYS_DESCR])
        assert engine.exchange_count == 2
        assert engine.exchanges_by_host == {"10.0.0.1": 2}
        assert engine.sessions_opened == 1
        assert engine.open_sessions == 0


class TestGeneratedTable:
    def test_deterministic_per_host(self):
        assert build_agent_table("10.1.2.3", now=0) == build_agent_table("10.1.2.3", now=0)

    def test_counters_increase_over_time(self):
        early = build_agent_table("10.1.2.3", now=0)
        later = build_agent_table("10.1.2.3", now=3600)
        oid = f"{oid_maps.IF_HC_IN_OCTETS}.1"
        assert later[oid].value > early[oid].value

    @pytest.mark.asyncio
    async def test_auto_populated_agent_is_pollable(self):
        engine = MockSnmpEngine(auto_populate=True)
        client = SnmpClient(engine)
        device = make_device(hostname="10.1.2.3")

        info = await client.get_system_info(device)
        interfaces = await client.get_interface_info(device)

        assert info.sys_name == "SW-10-1-2-3"
        assert info.sys_services == 6
        assert len(interfaces) == 20
        assert all(i.counters_64bit for i in interfaces)
        assert interfaces[-1].effective_speed == 10_000_000_000
