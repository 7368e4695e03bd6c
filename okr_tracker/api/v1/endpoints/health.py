import asyncio
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from okr_tracker.core.config import settings
from okr_tracker.core.database import session_manager

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)

REQUIRED_ENV_VARS = (
    "NEXT_PUBLIC_SUPABASE_URL",
    "NEXT_PUBLIC_SUPABASE_ANON_KEY",
    "SUPABASE_SERVICE_ROLE_KEY",
)
NO_STORE = {"Cache-Control": "no-store, no-cache, must-revalidate"}


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def check_env_vars() -> dict:
    missing = [name for name in REQUIRED_ENV_VARS if not getattr(settings, name)]
    if missing:
        return {"name": "env_vars", "status": "fail", "message": f"Missing: {', '.join(missing)}"}
    return {"name": "env_vars", "status": "pass"}


async def _ping_database() -> None:
    if session_manager.engine is None:
        raise RuntimeError("Database not initialized")
    async with session_manager.engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def check_database() -> dict:
    start = time.perf_counter()
    try:
        await asyncio.wait_for(_ping_database(), timeout=settings.HEALTH_CHECK_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        return {"name": "database", "status": "fail", "message": "Timeout", "durationMs": _elapsed_ms(start)}
    except (SQLAlchemyError, OSError, RuntimeError) as e:
        return {
            "name": "database",
            "status": "fail",
            "message": f"Query failed: {e.__class__.__name__}",
            "durationMs": _elapsed_ms(start),
        }
    return {"name": "database", "status": "pass", "durationMs": _elapsed_ms(start)}


@router.get("/health")
async def health():
    """Composite liveness check: configuration and database reachability. 503 if any check fails."""
    start = time.perf_counter()
    checks = [check_env_vars(), await check_database()]
    healthy = all(check["status"] == "pass" for check in checks)
    duration = _elapsed_ms(start)

    if not healthy:
        logger.warning(
            "Health check failed",
            extra={
                "checks": ", ".join(c["name"] for c in checks if c["status"] == "fail"),
                "duration_ms": duration,
            },
        )

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": _now_iso(),
            "durationMs": duration,
            "version": settings.APP_VERSION,
            "checks": checks,
        },
        headers=NO_STORE,
    )


@router.get("/version")
async def version():
    return JSONResponse(
        content={
            "app": "okr-tracker",
            "version": settings.APP_VERSION,
            "buildTime": settings.BUILD_TIME,
            "gitCommit": settings.GIT_COMMIT,
            "gitBranch": settings.GIT_BRANCH,
            "environment": settings.NODE_ENV or "unknown",
            "region": settings.REGION,
            "runtime": "python",
            "timestamp": _now_iso(),
        },
        headers=NO_STORE,
    )
