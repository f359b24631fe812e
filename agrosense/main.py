"""FastAPI application entrypoint: lifespan, routers, middleware."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis

from agrosense.config import get_settings
from agrosense.middleware.logging import RequestLoggingMiddleware, configure_structured_logging
from agrosense.routes import recommendation, sensors
from agrosense.services.catalog import CatalogSource

VERSION = "0.1.0"

logger = logging.getLogger("agrosense")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup / shutdown lifecycle.

    Startup:
      1. Initialize structured logging
      2. Connect to Redis when a URL is configured (sensor snapshot cache)

    Shutdown:
      1. Close Redis connection pool
    """
    configure_structured_logging()
    settings = get_settings()
    logger.info(
        "AgroSense starting",
        extra={
            "log_level": settings.log_level,
            "catalog_path": settings.catalog_path,
        },
    )

    redis: Redis | None = None
    app.state.redis = None
    if settings.redis_url:
        try:
            redis = Redis.from_url(settings.redis_url, decode_responses=True)
            await redis.ping()
            app.state.redis = redis
        except Exception as exc:
            logger.exception("startup failure", extra={"error": str(exc)})
            raise

    yield

    logger.info("AgroSense shutting down")
    if redis is not None:
        await redis.aclose()


async def _run_readiness_checks(app: FastAPI) -> dict[str, dict[str, Any]]:
    checks: dict[str, dict[str, Any]] = {}

    catalog = CatalogSource(get_settings().catalog_path)
    try:
        rows = await run_in_threadpool(catalog.read_rows)
        checks["catalog"] = {"ok": True, "message": f"{len(rows)} crop rows"}
    except Exception as exc:
        checks["catalog"] = {"ok": False, "message": str(exc)}

    redis_client = getattr(app.state, "redis", None)
    if redis_client is not None:
        try:
            await redis_client.ping()
            checks["redis"] = {"ok": True, "message": "ok"}
        except Exception as exc:
            checks["redis"] = {"ok": False, "message": str(exc)}

    return checks


app = FastAPI(
    title="AgroSense API",
    description=(
        "Fertilizer recommendation API that looks up crop nutrient baselines from a "
        "catalog spreadsheet and adjusts NPK doses from live soil pH and moisture."
    ),
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── Middleware ──────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


# ── Health check ────────────────────────────────────────────────────────────
@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Basic health check: verifies the API process is alive."""
    return {
        "status": "ok",
        "service": "agrosense",
        "version": VERSION,
    }


@app.get("/health/ready", tags=["system"])
async def readiness_check() -> JSONResponse:
    """Readiness: catalog readable and Redis reachable (when configured)."""
    checks = await _run_readiness_checks(app)
    ok = all(check["ok"] for check in checks.values())
    return JSONResponse(
        status_code=200 if ok else 503,
        content={"status": "ok" if ok else "degraded", "checks": checks},
    )


# ── Router registration ────────────────────────────────────────────────────
app.include_router(recommendation.router, prefix="/api/v1")
app.include_router(sensors.router, prefix="/api/v1")
