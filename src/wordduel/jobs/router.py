"""Admin-triggered job endpoints: POST /api/v1/functions/{name}."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.dependencies import require_admin
from wordduel.database import get_session
from wordduel.db.models import Profile
from wordduel.dependencies import get_redis_dep
from wordduel.jobs.tasks import JOBS, run_job

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/functions", tags=["Functions"])


@router.get("")
async def list_functions(admin: Profile = Depends(require_admin)) -> dict:
    return {"functions": sorted(JOBS)}


@router.post("/{name}")
async def run_function(
    name: str,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> dict:
    """Run a maintenance job immediately."""
    if name not in JOBS:
        raise HTTPException(status_code=404, detail=f"Unknown function: {name}")
    logger.info("function_triggered", function=name, admin_id=admin.id)
    return await run_job(name, db, redis)
