"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from codebro.admin.router import router as admin_router
from codebro.ai.router import router as ai_router
from codebro.cache import close_cache, init_cache
from codebro.config import get_settings
from codebro.database import close_db, get_session_factory, init_db
from codebro.gamification.router import router as gamification_router
from codebro.gamification.seed import seed_achievements
from codebro.health.router import router as health_router
from codebro.middleware import setup_middleware
from codebro.redis_client import close_redis, get_redis, init_redis
from codebro.users.router import router as users_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    init_cache(settings.cache_backend, get_redis())

    # Seed achievement definitions (idempotent)
    if settings.seed_achievements:
        try:
            async with get_session_factory()() as db:
                await seed_achievements(db)
        except Exception:
            logger.warning("Achievement seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_cache()
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Code, Bro! API",
        description="Backend API for Code, Bro! (points, levels, streaks, achievements and leaderboards)",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(gamification_router)
    app.include_router(users_router)
    app.include_router(ai_router)
    app.include_router(admin_router)

    return app


app = create_app()
