"""Root conftest — shared fixtures for all tests."""
from __future__ import annotations

import os

import pytest

# Ensure we use a test database URL (SQLite in-memory) for tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SNMP_MOCK", "true")

from app.core.enums import (  # noqa: E402
    SnmpAuthLevel,
    SnmpAuthProtocol,
    SnmpDataType,
    SnmpPrivProtocol,
    SnmpVersion,
)
from app.snmp.client import SnmpClient, SnmpClientConfig  # noqa: E402
from app.snmp.mock_engine import MockAgent, MockSnmpEngine  # noqa: E402
from app.snmp.response_cache import ResponseCache  # noqa: E402
from app.snmp.types import SnmpCredentials, SnmpDevice, Varbind  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_device(
    hostname: str = "10.0.0.1",
    version: SnmpVersion = SnmpVersion.V2C,
    community: str = "public",
    timeout: int = 1000,
    retries: int = 1,
) -> SnmpDevice:
    """SnmpDevice with short timeouts, suitable for the mock engine."""
    if version is SnmpVersion.V3:
        credentials = SnmpCredentials(
            version=version,
            username="monitor",
            auth_level=SnmpAuthLevel.AUTH_PRIV,
            auth_protocol=SnmpAuthProtocol.SHA256,
            auth_password="auth-secret",
            priv_protocol=SnmpPrivProtocol.AES,
            priv_password="priv-secret",
        )
    else:
        credentials = SnmpCredentials(version=version, community=community)
    return SnmpDevice(
        hostname=hostname, credentials=credentials,
        timeout=timeout, retries=retries,
    )


def octets(oid: str, text: str) -> Varbind:
    return Varbind(oid=oid, type=SnmpDataType.OCTET_STRING, value=text.encode())


def integer(oid: str, value: int, tag: SnmpDataType = SnmpDataType.INTEGER) -> Varbind:
    return Varbind(oid=oid, type=tag, value=value)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine() -> MockSnmpEngine:
    """Mock engine with no agents registered (unknown hosts never answer)."""
    return MockSnmpEngine()


@pytest.fixture
def agent(engine: MockSnmpEngine) -> MockAgent:
    """Small agent on 10.0.0.1: system group + a 5-row table."""
    table = [
        octets("1.3.6.1.2.1.1.1.0", "Test switch"),
        Varbind(oid="1.3.6.1.2.1.1.2.0", type=SnmpDataType.OBJECT_IDENTIFIER,
                value="1.3.6.1.4.1.9.1.1"),
        integer("1.3.6.1.2.1.1.3.0", 123456, SnmpDataType.TIMETICKS),
        octets("1.3.6.1.2.1.1.4.0", "noc@example.com"),
        octets("1.3.6.1.2.1.1.5.0", "sw-test-01"),
        octets("1.3.6.1.2.1.1.6.0", "Lab"),
    ]
    table += [octets(f"1.3.6.1.4.1.99999.1.{i}", f"row-{i}") for i in range(1, 6)]
    table.append(octets("1.3.6.1.4.1.99999.2.1", "after-table"))
    return engine.add_agent("10.0.0.1", MockAgent.from_varbinds(table, community="public"))


@pytest.fixture
def client(engine: MockSnmpEngine, clock: FakeClock) -> SnmpClient:
    config = SnmpClientConfig(walk_max_iterations=50, walk_timeout=10.0)
    cache = ResponseCache(max_entries=100, default_ttl=config.default_ttl, clock=clock)
    return SnmpClient(engine, cache=cache, config=config)


@pytest.fixture
def device() -> SnmpDevice:
    return make_device()
