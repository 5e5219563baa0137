"""
NetPulse - FastAPI Application Entry Point.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import api_router
from app.core.config import settings
from app.db.base import close_db, init_db
from app.services.scheduler import (
    get_scheduler_service,
    load_scheduler_config,
    setup_scheduled_jobs,
)
from app.services.system_log import error_type_of, format_error_detail, write_log

VERSION = "0.1.0"

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.app_debug else logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    建表 → 啟動 poll 排程；關閉時先停排程（等跑到一半的 poll 結束），
    再釋放 SNMP engine 與 DB 連線。
    """
    from app.snmp.polling_service import get_polling_service

    logger.info(
        "Starting %s (SNMP engine: %s)",
        settings.app_name, "mock" if settings.snmp_mock else "pysnmp",
    )
    await init_db()

    if await setup_scheduled_jobs(load_scheduler_config()):
        logger.info("Device poll scheduler started")

    yield

    logger.info("Shutting down %s", settings.app_name)
    get_scheduler_service().stop()
    await get_polling_service().close()
    await close_db()


def _operation_of(request: Request) -> str:
    """Route template ("POST /api/v1/snmp/walk"), not the raw URL."""
    route = request.scope.get("route")
    return f"{request.method} {getattr(route, 'path', request.url.path)}"


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    路由沒接住的例外：回 500 並寫一筆 SystemLog。

    回應只帶錯誤分類，不帶例外訊息（可能含設備位址等內部資訊）。
    """
    operation = _operation_of(request)
    error_type = error_type_of(exc)
    logger.error("Unhandled %s on %s: %s", error_type, operation, exc, exc_info=exc)

    await write_log(
        level="ERROR",
        source="api",
        summary=f"API 未處理例外 ({error_type}): {operation}",
        detail=format_error_detail(exc=exc, operation=operation),
        operation=operation,
        error=exc,
        request_path=str(request.url.path),
        request_method=request.method,
        status_code=500,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "內部伺服器錯誤", "errorType": error_type},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="SNMP 設備監控 API",
        version=VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        """Scheduler state plus the response cache counters."""
        from app.snmp.polling_service import get_snmp_client

        scheduler = get_scheduler_service()
        return {
            "status": "ok",
            "version": VERSION,
            "snmpMock": settings.snmp_mock,
            "schedulerRunning": scheduler.is_running(),
            "scheduledJobs": len(scheduler.get_jobs()),
            "cache": get_snmp_client().cache.get_cache_stats(),
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_debug,
    )
