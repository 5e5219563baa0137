"""
System Log Service.

SNMP 子系統的稽核日誌：設備 poll 失敗、排程整體失敗、API 未處理例外
各寫一筆到 system_logs。

結構化欄位讓日誌頁面直接依設備或錯誤分類篩選，不用解析 detail：
- operation        poll / poll_all / HTTP 路由
- device_identity  transport:host:port/version[/user@context]，不含任何密碼
- error_type       SnmpError.error_type（timeout、authentication_error…），
                   非 SNMP 例外則為類別名稱
- probe_succeeded  poll 失敗時 probe 那一步是否成功

使用獨立 session，主流程 rollback 也寫得進去；寫入本身失敗只記到 stdout。
"""
from __future__ import annotations

import logging
import re
import traceback as tb_module

from app.db.base import get_session_context
from app.db.models import SystemLog
from app.snmp.errors import (
    SnmpError,
    SnmpResponseError,
    SnmpTimeoutError,
    SnmpValidationError,
)
from app.snmp.types import SnmpDevice

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 300


def error_type_of(exc: BaseException | None) -> str | None:
    """Classification stored in system_logs.error_type."""
    if exc is None:
        return None
    if isinstance(exc, SnmpError):
        return exc.error_type
    return type(exc).__name__


def _snmp_fields(exc: BaseException) -> dict[str, str]:
    """Protocol details worth showing next to the message."""
    if isinstance(exc, SnmpTimeoutError):
        return {"嘗試次數": str(exc.attempts)}
    if isinstance(exc, SnmpResponseError):
        fields = {"error-status": exc.status, "error-index": str(exc.index)}
        if exc.oid:
            fields["OID"] = exc.oid
        return fields
    if isinstance(exc, SnmpValidationError):
        return {"驗證錯誤": "; ".join(exc.errors)}
    return {}


def _location(tb_text: str) -> str:
    """Last ``File "...", line N, in f`` frame, path trimmed to the repo."""
    frames = re.findall(r'File "([^"]+)", line (\d+), in (\w+)', tb_text)
    if not frames:
        return ""
    filepath, lineno, funcname = frames[-1]
    filepath = re.sub(r"^.*?/(?=(app|tests)/)", "", filepath)
    return f"{filepath}:{lineno} ({funcname})"


def format_error_detail(
    exc: BaseException | None = None,
    tb_text: str | None = None,
    *,
    operation: str | None = None,
    device: SnmpDevice | None = None,
    context: dict[str, str] | None = None,
) -> str:
    """
    組出 system_logs.detail 的文字。

    SnmpError 是可預期的協定層結果（timeout、認證失敗…），只列分類與協定欄位，
    不附 traceback；其他例外才附完整 traceback 方便定位程式錯誤。

    Args:
        exc: 例外物件（優先使用）
        tb_text: 沒有 exc 時，直接給 traceback 文字
        operation: SNMP 操作 / 排程任務 / API 路由
        device: 相關設備；只輸出 identity，不會帶出 community 或密碼
        context: 其他業務上下文，空值略過
    """
    exc_type = ""
    exc_msg = ""
    show_traceback = True

    if exc is not None:
        exc_type = type(exc).__name__
        exc_msg = str(exc)
        show_traceback = not isinstance(exc, SnmpError)
        if show_traceback and tb_text is None:
            tb_text = "".join(tb_module.format_exception(exc))
    elif tb_text:
        last_line = tb_text.strip().rsplit("\n", 1)[-1]
        exc_type, _, exc_msg = (part.strip() for part in last_line.partition(":"))

    lines = ["┌ 錯誤定位"]
    if exc_type:
        lines.append(f"│ 類型: {exc_type}")
    if exc is not None:
        lines.append(f"│ 分類: {error_type_of(exc)}")
    if exc_msg:
        if len(exc_msg) > MAX_MESSAGE_LENGTH:
            exc_msg = exc_msg[:MAX_MESSAGE_LENGTH] + "..."
        lines.append(f"│ 訊息: {exc_msg}")
    location = _location(tb_text) if tb_text else ""
    if location:
        lines.append(f"│ 位置: {location}")

    snmp = {}
    if operation:
        snmp["操作"] = operation
    if device is not None:
        snmp["設備"] = device.identity()
    if exc is not None:
        snmp.update(_snmp_fields(exc))
    if snmp:
        lines.append("│")
        lines.append("│ SNMP:")
        lines.extend(f"│   {key}: {value}" for key, value in snmp.items())

    extra = {k: v for k, v in (context or {}).items() if v}
    if extra:
        lines.append("│")
        lines.append("│ 上下文:")
        lines.extend(f"│   {key}: {value}" for key, value in extra.items())

    if show_traceback and tb_text:
        lines.append("│")
        lines.append("└ 完整 Traceback")
        lines.extend(f"  {tb_line}" for tb_line in tb_text.strip().split("\n"))
    else:
        lines.append("└")
    return "\n".join(lines)


async def write_log(
    *,
    level: str,
    source: str,
    summary: str,
    detail: str | None = None,
    operation: str | None = None,
    device: SnmpDevice | None = None,
    error: BaseException | None = None,
    probe_succeeded: bool | None = None,
    request_path: str | None = None,
    request_method: str | None = None,
    status_code: int | None = None,
) -> None:
    """
    寫入一筆 system_logs。

    Args:
        level: ERROR / WARNING / INFO
        source: api / scheduler / poller
        summary: 給人看的中文摘要
        detail: 通常是 format_error_detail() 的結果
        operation: poll / poll_all / HTTP 路由
        device: 相關設備，存 hostname 與 identity
        error: 觸發這筆日誌的例外，存其分類
        probe_succeeded: poll 失敗時 probe 是否成功
        request_path / request_method / status_code: API 來源時的請求資訊
    """
    try:
        async with get_session_context() as session:
            session.add(SystemLog(
                level=level.upper(),
                source=source,
                operation=operation,
                summary=summary[:500] if summary else "",
                detail=detail,
                device_hostname=device.hostname if device is not None else None,
                device_identity=device.identity() if device is not None else None,
                error_type=error_type_of(error),
                probe_succeeded=probe_succeeded,
                request_path=request_path,
                request_method=request_method,
                status_code=status_code,
            ))
            await session.commit()
    except Exception as e:
        # 日誌寫入本身失敗時只記錄到 stdout，不能再拋異常
        logger.error("Failed to write system log: %s", e)
