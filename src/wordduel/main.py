"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from wordduel.admin.router import router as admin_router
from wordduel.auth.router import router as auth_router
from wordduel.battle.router import router as battle_router
from wordduel.config import get_settings
from wordduel.database import close_db, create_all, get_session, init_db
from wordduel.gamification.router import router as gamification_router
from wordduel.gamification.seed import seed_all
from wordduel.health.router import router as health_router
from wordduel.jobs.router import router as functions_router
from wordduel.leaderboard.router import router as leaderboard_router
from wordduel.learning.router import router as learning_router
from wordduel.middleware import setup_middleware
from wordduel.profiles.router import router as profiles_router
from wordduel.redis_client import close_redis, init_redis
from wordduel.seasons.router import router as seasons_router
from wordduel.social.notification_router import router as notification_router
from wordduel.social.router import router as social_router
from wordduel.teams.router import router as teams_router
from wordduel.ws.bridge import PubSubBridge
from wordduel.ws.router import router as ws_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    redis = await init_redis(settings.redis_url)

    if settings.database_url.startswith("sqlite"):
        await create_all()

    # Seed reference data (idempotent)
    try:
        async for db in get_session():
            await seed_all(db)
            break
    except Exception:
        logger.warning("Seeding failed (tables may not exist yet)", exc_info=True)

    # Redis pub/sub -> WebSocket bridge
    bridge: PubSubBridge | None = None
    bridge_task: asyncio.Task[None] | None = None
    if redis is not None:
        bridge = PubSubBridge(redis)
        bridge_task = asyncio.create_task(bridge.start())
    else:
        logger.warning("Redis disabled: realtime events, rate limits and caches are off")

    yield

    if bridge is not None and bridge_task is not None:
        await bridge.stop()
        bridge_task.cancel()
        try:
            await bridge_task
        except asyncio.CancelledError:
            pass

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="WordDuel API",
        description="Backend API for WordDuel, a vocabulary learning game with real-time duels",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(profiles_router)
    app.include_router(gamification_router)
    app.include_router(learning_router)
    app.include_router(battle_router)
    app.include_router(leaderboard_router)
    app.include_router(teams_router)
    app.include_router(social_router)
    app.include_router(notification_router)
    app.include_router(seasons_router)
    app.include_router(admin_router)
    app.include_router(functions_router)
    app.include_router(ws_router)

    return app


app = create_app()
