"""
Tests for app.api.endpoints.snmp.

Covers:
- 400 on malformed device / OID / bulk parameters (no traffic sent)
- POST /snmp/get, /walk, /bulk-walk, /set
- POST /snmp/test-connection, /snmp/discover
- GET  /snmp/cache/stats, POST /snmp/cache/clear, GET /snmp/oids/common

Uses httpx.AsyncClient + ASGITransport; the SNMP client dependency is
overridden with one backed by MockSnmpEngine.
"""
from __future__ import annotations

from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.api.endpoints.snmp import router
from app.snmp import oid_maps
from app.snmp.polling_service import get_snmp_client


# ══════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════


def _create_app(snmp_client) -> FastAPI:
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_snmp_client] = lambda: snmp_client
    return app


def _device(**overrides) -> dict[str, Any]:
    device: dict[str, Any] = {
        "hostname": "10.0.0.1",
        "timeout": 1000,
        "retries": 0,
        "credentials": {"version": "v2c", "community": "public"},
    }
    device.update(overrides)
    return device


@pytest.fixture
def app(client, agent) -> FastAPI:
    return _create_app(client)


async def _post(app: FastAPI, path: str, payload: dict[str, Any]):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        return await ac.post(path, json=payload)


async def _get(app: FastAPI, path: str):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        return await ac.get(path)


# ══════════════════════════════════════════════════════════════════
# Validation
# ══════════════════════════════════════════════════════════════════


class TestValidation:
    @pytest.mark.asyncio
    async def test_bad_oid_is_400_without_traffic(self, app, engine):
        resp = await _post(app, "/snmp/get", {
            "device": _device(),
            "oids": ["1.3.6.1.2.1.1.1.0", "1.3.x"],
        })

        assert resp.status_code == 400
        detail = resp.json()["detail"]
        assert detail["message"] == "Invalid OIDs"
        assert detail["errors"] == ["Invalid OID at index 1: 1.3.x"]
        assert engine.exchange_count == 0

    @pytest.mark.asyncio
    async def test_device_errors_are_aggregated(self, app, engine):
        resp = await _post(app, "/snmp/get", {
            "device": _device(
                hostname="", timeout=10,
                credentials={"version": "v3", "username": "monitor", "authLevel": "authPriv",
                             "authProtocol": "SHA", "authPassword": "auth-secret"},
            ),
            "oids": [oid_maps.SYS_DESCR],
        })

        assert resp.status_code == 400
        errors = resp.json()["detail"]["errors"]
        assert "Hostname is required" in errors
        assert "Timeout must be between 1000 and 30000 ms" in errors
        assert "Privacy password is required for authPriv" in errors
        assert engine.sessions_opened == 0

    @pytest.mark.asyncio
    async def test_unknown_version_is_400_not_422(self, app):
        resp = await _post(app, "/snmp/test-connection", {
            "device": _device(credentials={"version": "v4", "community": "public"}),
        })
        assert resp.status_code == 400
        assert resp.json()["detail"]["errors"] == ["Invalid SNMP version. Must be v1, v2c, or v3"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("credentials", [
        {"version": "v2c", "community": "public", "authLevel": "bogus"},
        {"version": "v3", "username": "u", "authLevel": "noAuthNoPriv", "authProtocol": "bogus"},
        {"version": "v3", "username": "u", "authLevel": "authNoPriv", "authProtocol": "SHA",
         "authPassword": "authpass1", "privProtocol": "bogus"},
    ])
    async def test_unknown_value_in_unused_credential_field_is_400(
        self, app, engine, credentials,
    ):
        resp = await _post(app, "/snmp/get", {
            "device": _device(credentials=credentials),
            "oids": [oid_maps.SYS_DESCR],
        })

        assert resp.status_code == 400
        assert len(resp.json()["detail"]["errors"]) == 1
        assert engine.sessions_opened == 0

    @pytest.mark.asyncio
    async def test_bulk_walk_on_v1_is_400(self, app, engine):
        resp = await _post(app, "/snmp/bulk-walk", {
            "device": _device(credentials={"version": "v1", "community": "public"}),
            "oid": "1.3.6.1.4.1.99999.1",
        })
        assert resp.status_code == 400
        assert engine.exchange_count == 0

    @pytest.mark.asyncio
    async def test_bulk_parameters_out_of_range(self, app):
        resp = await _post(app, "/snmp/bulk-walk", {
            "device": _device(),
            "oid": "1.3.6.1.4.1.99999.1",
            "nonRepeaters": 101,
            "maxRepetitions": 0,
        })
        assert resp.status_code == 400
        assert resp.json()["detail"]["errors"] == [
            "Non-repeaters must not exceed 100",
            "Max repetitions must be a positive integer",
        ]


# ══════════════════════════════════════════════════════════════════
# Protocol operations
# ══════════════════════════════════════════════════════════════════


class TestOperations:
    @pytest.mark.asyncio
    async def test_get(self, app):
        resp = await _post(app, "/snmp/get", {
            "device": _device(),
            "oids": [oid_maps.SYS_NAME, oid_maps.SYS_UPTIME],
        })

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["varbinds"] == [
            {"oid": oid_maps.SYS_NAME, "type": "OCTET STRING", "value": "sw-test-01"},
            {"oid": oid_maps.SYS_UPTIME, "type": "TimeTicks", "value": 123456},
        ]

    @pytest.mark.asyncio
    async def test_get_timeout_is_200_with_error(self, app):
        resp = await _post(app, "/snmp/get", {
            "device": _device(hostname="10.9.9.9"),
            "oids": [oid_maps.SYS_DESCR],
        })

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is False
        assert body["errorType"] == "timeout"
        assert body["varbinds"] == []

    @pytest.mark.asyncio
    async def test_walk(self, app):
        resp = await _post(app, "/snmp/walk", {
            "device": _device(),
            "oid": "1.3.6.1.4.1.99999.1",
            "maxRepetitions": 2,
        })

        body = resp.json()
        assert body["success"] is True
        assert [vb["value"] for vb in body["varbinds"]] == [f"row-{i}" for i in range(1, 6)]

    @pytest.mark.asyncio
    async def test_bulk_walk(self, app):
        resp = await _post(app, "/snmp/bulk-walk", {
            "device": _device(),
            "oid": "1.3.6.1.4.1.99999.1",
            "nonRepeaters": 0,
            "maxRepetitions": 10,
        })
        assert resp.status_code == 200
        assert len(resp.json()["varbinds"]) == 5

    @pytest.mark.asyncio
    async def test_set(self, app, agent):
        resp = await _post(app, "/snmp/set", {
            "device": _device(),
            "varbinds": [{"oid": oid_maps.SYS_LOCATION, "type": "OCTET STRING", "value": "Rack 9"}],
        })

        body = resp.json()
        assert body["success"] is True
        assert body["varbinds"][0]["value"] == "Rack 9"
        assert agent.lookup(oid_maps.SYS_LOCATION).value == b"Rack 9"

    @pytest.mark.asyncio
    async def test_set_rejection_names_the_oid(self, app, agent):
        agent.read_only.add(oid_maps.SYS_NAME)

        resp = await _post(app, "/snmp/set", {
            "device": _device(),
            "varbinds": [{"oid": oid_maps.SYS_NAME, "type": "OCTET STRING", "value": "x"}],
        })

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is False
        assert body["errorType"] == "partial_failure"
        assert body["failures"] == [{"oid": oid_maps.SYS_NAME, "status": "notWritable", "index": 1}]

    @pytest.mark.asyncio
    async def test_set_value_not_matching_type_is_400(self, app, engine):
        resp = await _post(app, "/snmp/set", {
            "device": _device(),
            "varbinds": [{"oid": oid_maps.SYS_LOCATION, "type": "INTEGER", "value": "abc"}],
        })
        assert resp.status_code == 400
        assert engine.exchange_count == 0


# ══════════════════════════════════════════════════════════════════
# Connectivity / discovery
# ══════════════════════════════════════════════════════════════════


class TestConnectivity:
    @pytest.mark.asyncio
    async def test_connection_ok(self, app):
        resp = await _post(app, "/snmp/test-connection", {"device": _device()})

        body = resp.json()
        assert body["success"] is True
        assert body["authenticated"] is True
        assert body["responseTime"] is not None

    @pytest.mark.asyncio
    async def test_connection_unreachable(self, app):
        resp = await _post(app, "/snmp/test-connection", {"device": _device(hostname="10.9.9.9")})

        body = resp.json()
        assert body["success"] is False
        assert body["message"] == "No response after 1 attempts"

    @pytest.mark.asyncio
    async def test_discover_with_unsupported_sensors(self, app):
        resp = await _post(app, "/snmp/discover", {
            "device": _device(),
            "includeSensors": True,
        })

        body = resp.json()
        assert body["success"] is True
        assert body["hostname"] == "10.0.0.1"
        assert body["systemInfo"]["sysName"] == "sw-test-01"
        assert body["interfaces"] == []
        assert body["sensors"] == []
        assert "sensors" in body["failures"]

    @pytest.mark.asyncio
    async def test_discover_without_interfaces(self, app):
        resp = await _post(app, "/snmp/discover", {
            "device": _device(),
            "includeInterfaces": False,
        })

        body = resp.json()
        assert "interfaces" not in body
        assert "failures" not in body


# ══════════════════════════════════════════════════════════════════
# Cache / reference
# ══════════════════════════════════════════════════════════════════


class TestCacheEndpoints:
    @pytest.mark.asyncio
    async def test_stats_and_clear(self, app, client):
        payload = {"device": _device(), "oids": [oid_maps.SYS_DESCR]}
        await _post(app, "/snmp/get", payload)
        await _post(app, "/snmp/get", payload)

        stats = (await _get(app, "/snmp/cache/stats")).json()
        assert stats["size"] == 1
        assert stats["hits"] == 1

        resp = await _post(app, "/snmp/cache/clear", {})
        assert resp.json() == {"message": "Cache cleared successfully"}
        assert len(client.cache) == 0

    @pytest.mark.asyncio
    async def test_common_oids(self, app):
        body = (await _get(app, "/snmp/oids/common")).json()
        assert body["system"]["sysDescr"] == "1.3.6.1.2.1.1.1.0"
        assert body["interfaces"]["ifTable"] == oid_maps.IF_TABLE
