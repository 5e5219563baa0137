"""
SNMP API endpoints.

給 dashboard 直接對設備下 SNMP 指令（get / walk / bulk-walk / set）、
測試連線、即時 discover，以及管理 response cache。

回應規則：
- 輸入不合法 / 版本不支援 → 400 {"detail": {"message", "errors"}}，不會送出任何封包
- 設備層失敗（timeout、認證、agent error-status）→ 200 + success=false
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException

from app.schemas.snmp import (
    SnmpBulkWalkRequest,
    SnmpDeviceRequest,
    SnmpDiscoverRequest,
    SnmpGetRequest,
    SnmpSetRequest,
    SnmpTestConnectionRequest,
    SnmpWalkRequest,
)
from app.snmp.client import SnmpClient
from app.snmp.codec import to_varbind
from app.snmp.errors import SnmpCapabilityError, SnmpError, SnmpValidationError
from app.snmp.oid_maps import COMMON_OIDS
from app.snmp.polling_service import get_snmp_client
from app.snmp.types import SnmpDevice, Varbind
from app.snmp.validator import (
    ValidationResult,
    validate_bulk_parameters,
    validate_device,
    validate_oid_list,
    validate_set_varbinds,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/snmp", tags=["SNMP"])

Client = Annotated[SnmpClient, Depends(get_snmp_client)]


# ── Helpers ─────────────────────────────────────────────────


def _bad_request(message: str, errors: list[str]) -> HTTPException:
    return HTTPException(status_code=400, detail={"message": message, "errors": errors})


def _check(result: ValidationResult, message: str) -> None:
    if not result.is_valid:
        raise _bad_request(message, result.errors)


def _device(data: SnmpDeviceRequest) -> SnmpDevice:
    _check(validate_device(data), "Invalid device configuration")
    return data.to_domain()


def _varbinds_payload(varbinds: list[Varbind]) -> list[dict[str, Any]]:
    return [vb.to_dict() for vb in varbinds]


def _failure(operation: str, device: SnmpDevice, e: SnmpError) -> dict[str, Any]:
    """Wire-level failure in the same shape as a successful response."""
    logger.warning("SNMP %s on %s failed (%s): %s", operation, device, e.error_type, e)
    return {
        "success": False,
        "error": str(e),
        "errorType": e.error_type,
        "varbinds": [],
    }


def _rejected(e: SnmpValidationError | SnmpCapabilityError) -> HTTPException:
    errors = getattr(e, "errors", None) or [str(e)]
    return _bad_request(str(e), errors)


# ── Protocol operations ─────────────────────────────────────


@router.post("/get")
async def snmp_get(data: SnmpGetRequest, client: Client) -> dict[str, Any]:
    """SNMP GET：每個 OID 回一筆 varbind，順序與請求相同。"""
    device = _device(data.device)
    _check(validate_oid_list(data.oids), "Invalid OIDs")
    try:
        varbinds = await client.get(device, data.oids)
    except (SnmpValidationError, SnmpCapabilityError) as e:
        raise _rejected(e) from e
    except SnmpError as e:
        return _failure("GET", device, e)
    return {"success": True, "varbinds": _varbinds_payload(varbinds)}


@router.post("/walk")
async def snmp_walk(data: SnmpWalkRequest, client: Client) -> dict[str, Any]:
    """SNMP WALK（v1 用 GET-NEXT，v2c/v3 用 GET-BULK）。"""
    device = _device(data.device)
    _check(validate_oid_list([data.oid]), "Invalid OID format")
    _check(validate_bulk_parameters(0, data.max_repetitions), "Invalid bulk parameters")
    try:
        varbinds = await client.walk(device, data.oid, data.max_repetitions)
    except (SnmpValidationError, SnmpCapabilityError) as e:
        raise _rejected(e) from e
    except SnmpError as e:
        return _failure("WALK", device, e)
    return {"success": True, "varbinds": _varbinds_payload(varbinds)}


@router.post("/bulk-walk")
async def snmp_bulk_walk(data: SnmpBulkWalkRequest, client: Client) -> dict[str, Any]:
    """GET-BULK walk；SNMPv1 設備直接回 400。"""
    device = _device(data.device)
    _check(validate_oid_list([data.oid]), "Invalid OID format")
    _check(
        validate_bulk_parameters(data.non_repeaters, data.max_repetitions),
        "Invalid bulk parameters",
    )
    try:
        varbinds = await client.bulk_walk(
            device, data.oid, data.non_repeaters, data.max_repetitions,
        )
    except (SnmpValidationError, SnmpCapabilityError) as e:
        raise _rejected(e) from e
    except SnmpError as e:
        return _failure("BULKWALK", device, e)
    return {"success": True, "varbinds": _varbinds_payload(varbinds)}


@router.post("/set")
async def snmp_set(data: SnmpSetRequest, client: Client) -> dict[str, Any]:
    """
    SNMP SET.

    Agent 拒絕的 varbind 以 failures 列出（哪個 OID、哪個 error-status），
    不會變成 500。
    """
    device = _device(data.device)
    _check(validate_set_varbinds(data.varbinds), "Invalid varbinds")
    try:
        varbinds = [to_varbind(vb.oid, vb.type, vb.value) for vb in data.varbinds]
        result = await client.set(device, varbinds)
    except (SnmpValidationError, SnmpCapabilityError) as e:
        raise _rejected(e) from e
    except SnmpError as e:
        return _failure("SET", device, e)

    response: dict[str, Any] = {
        "success": result.success,
        "varbinds": _varbinds_payload(result.varbinds),
    }
    if result.failures:
        response["failures"] = [f.to_dict() for f in result.failures]
    if result.error:
        response["error"] = result.error
        response["errorType"] = "partial_failure"
    return response


# ── Connectivity / discovery ────────────────────────────────


@router.post("/test-connection")
async def snmp_test_connection(
    data: SnmpTestConnectionRequest, client: Client,
) -> dict[str, Any]:
    """
    GET sysDescr.0 測試連線。

    認證失敗仍算 reachable（success=true, authenticated=false），
    與完全無回應（success=false）區分開來。
    """
    device = _device(data.device)
    try:
        probe = await client.probe(device)
    except SnmpCapabilityError as e:
        raise _rejected(e) from e
    return {
        "success": probe.reachable,
        "authenticated": probe.authenticated,
        "message": probe.message,
        "responseTime": probe.response_time_ms,
    }


@router.post("/discover")
async def snmp_discover(data: SnmpDiscoverRequest, client: Client) -> dict[str, Any]:
    """
    即時 discover：system info / interfaces / sensors 各自獨立。

    其中一部分失敗只記在 failures，不影響其他部分的結果。
    """
    device = _device(data.device)
    discovery: dict[str, Any] = {
        "hostname": device.hostname,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    failures: dict[str, str] = {}

    if data.include_system_info:
        try:
            discovery["systemInfo"] = (await client.get_system_info(device)).to_dict()
        except SnmpError as e:
            failures["systemInfo"] = str(e)

    if data.include_interfaces:
        try:
            interfaces = await client.get_interface_info(device)
            discovery["interfaces"] = [i.to_dict() for i in interfaces]
        except SnmpError as e:
            failures["interfaces"] = str(e)

    if data.include_sensors:
        discovery["sensors"] = []
        try:
            discovery["sensors"] = await client.get_sensor_info(device)
        except SnmpCapabilityError as e:
            failures["sensors"] = str(e)

    # sensors 尚未支援，不算 discover 失敗
    hard_failures = {k: v for k, v in failures.items() if k != "sensors"}
    discovery["success"] = not hard_failures
    if hard_failures:
        discovery["error"] = "; ".join(f"{k}: {v}" for k, v in hard_failures.items())
        logger.warning("Discover on %s partially failed: %s", device, sorted(hard_failures))
    if failures:
        discovery["failures"] = failures
    return discovery


# ── Cache / reference ───────────────────────────────────────


@router.get("/cache/stats")
async def snmp_cache_stats(client: Client) -> dict[str, Any]:
    return client.cache.get_cache_stats()


@router.post("/cache/clear")
async def snmp_cache_clear(client: Client) -> dict[str, str]:
    client.cache.clear()
    return {"message": "Cache cleared successfully"}


@router.get("/oids/common")
async def snmp_common_oids() -> dict[str, dict[str, str]]:
    """常用 system / interface OID 對照表。"""
    return COMMON_OIDS
