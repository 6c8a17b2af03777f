"""Liveness, readiness and version endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.config import get_settings
from wordduel.database import get_session
from wordduel.redis_client import redis_status
from wordduel.ws.manager import manager

router = APIRouter()

# Redis is optional; running without it is not a failure
_REDIS_HEALTHY = frozenset({"ok", "disabled"})


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Database and Redis checks plus live WebSocket counts."""
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as exc:
        database = f"error: {exc}"
    redis = await redis_status()

    ready = database == "ok" and redis in _REDIS_HEALTHY
    return {
        "status": "ready" if ready else "degraded",
        "checks": {"database": database, "redis": redis},
        "websockets": manager.get_stats(),
    }


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {"version": settings.app_version, "environment": settings.environment}
