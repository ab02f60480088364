"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.fm_admin.api.router import router as admin_router
from src.fm_bet.api.router import router as bet_router
from src.fm_coin.api.router import router as coin_router
from src.fm_common.database import engine
from src.fm_common.errors import AppError
from src.fm_common.redis_client import close_redis, ping_redis
from src.fm_common.response import error_response
from src.fm_gateway.middleware.request_log import RequestLogMiddleware
from src.fm_period.api.router import router as period_router
from src.fm_settlement.scheduler import SettlementScheduler
from src.fm_target.api.revenue_router import router as revenue_router
from src.fm_target.api.router import router as target_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, start settlement. Shutdown: stop and dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await ping_redis()
    scheduler = SettlementScheduler()
    if settings.SCHEDULER_ENABLED:
        scheduler.start()
    yield
    # Shutdown
    scheduler.shutdown()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(coin_router, prefix="/api/v1")
app.include_router(target_router, prefix="/api/v1")
app.include_router(period_router, prefix="/api/v1")
app.include_router(bet_router, prefix="/api/v1")
app.include_router(revenue_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
