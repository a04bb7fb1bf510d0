"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.pm_claim.api.router import router as claim_router
from src.pm_common.database import async_session_factory, engine
from src.pm_common.errors import AppError
from src.pm_common.redis_client import close_redis, get_redis
from src.pm_common.response import error_response
from src.pm_gateway.middleware.rate_limit import RateLimitMiddleware
from src.pm_gateway.middleware.request_log import RequestLogMiddleware
from src.pm_keeper.api.router import router as keeper_router
from src.pm_keeper.application.scheduler import AutoManageScheduler
from src.pm_keeper.application.service import build_auto_manager
from src.pm_ledger.application.service import close_ledger, get_keeper_identity
from src.pm_oracle.api.router import router as price_router
from src.pm_oracle.application.service import close_price_oracle
from src.pm_round.api.router import router as round_router
from src.pm_round.application.service import build_round_service

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def _resume_interrupted_advance() -> None:
    """Finish a settle -> start advance that a previous process left half done."""
    async with async_session_factory() as db:
        try:
            result = await build_round_service(get_keeper_identity()).resume_pending_advance(db)
        except AppError as exc:
            await db.rollback()
            logger.error("Startup recovery failed: [%d] %s", exc.code, exc.message)
            return
    if result is not None:
        logger.warning("Startup recovery: round %d advanced", result.round_id)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, recover, start scheduler. Shutdown: dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()

    scheduler: AutoManageScheduler | None = None
    if settings.KEEPER_PRIVATE_KEY:
        await _resume_interrupted_advance()
        if settings.AUTO_MANAGE_INTERVAL_SECS > 0:
            scheduler = AutoManageScheduler(
                lambda: build_auto_manager(get_keeper_identity()),
                async_session_factory,
                settings.AUTO_MANAGE_INTERVAL_SECS,
            )
            scheduler.start()
    else:
        logger.warning("KEEPER_PRIVATE_KEY not set: keeper endpoints will answer 4004")
    yield
    # Shutdown
    if scheduler is not None:
        await scheduler.stop()
    await close_price_oracle()
    await close_ledger()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


# Added first so RequestLogMiddleware wraps it and request_id is already set
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, exc.detail)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(round_router, prefix="/api/v1")
app.include_router(keeper_router, prefix="/api/v1")
app.include_router(claim_router, prefix="/api/v1")
app.include_router(price_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
