"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI

from classquest.admin.router import router as admin_router
from classquest.bets.router import router as bets_router
from classquest.challenges.router import router as challenges_router
from classquest.characters.router import router as characters_router
from classquest.config import get_settings
from classquest.database import close_db, init_db
from classquest.health.router import router as health_router
from classquest.loans.router import router as loans_router
from classquest.middleware import setup_middleware
from classquest.redis_client import close_redis, get_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    try:
        await get_redis().ping()
    except redis.RedisError:
        logger.warning("Redis unreachable at startup; rate limiting and notifications are off", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="ClassQuest API",
        description="Classroom gamification: credits, challenges, fixed-odds bets and peer loans",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(characters_router)
    app.include_router(bets_router)
    app.include_router(challenges_router)
    app.include_router(loans_router)
    app.include_router(admin_router)

    return app


app = create_app()
