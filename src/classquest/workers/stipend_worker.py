"""Weekly stipend arq worker.

Pays every initialized character the weekly stipend each Monday at
00:05 UTC. The job is idempotent per ISO week, so a retried or duplicated
run pays nothing extra.
"""

from __future__ import annotations

import logging

from arq.connections import RedisSettings
from arq.cron import cron

from classquest.characters.stipend_service import grant_weekly_stipend
from classquest.characters.week_utils import week_iso_at
from classquest.clock import now_ms
from classquest.config import get_settings
from classquest.database import close_db, get_session, init_db
from classquest.middleware.logging import setup_logging

logger = logging.getLogger(__name__)


async def stipend_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize logging and the DB engine on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)
    logger.info("Stipend worker started")


async def stipend_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    await close_db()
    logger.info("Stipend worker shut down")


async def weekly_stipend(ctx: dict, week_iso: str | None = None) -> dict[str, object]:  # type: ignore[type-arg]
    """Scheduled arq task: pay the stipend for the current ISO week.

    ``week_iso`` can be passed when enqueuing by hand to back-fill a week.
    """
    now = now_ms()
    week = week_iso or week_iso_at(now)
    amount = get_settings().weekly_stipend

    async for db in get_session():
        run, created = await grant_weekly_stipend(db, week, now, amount)
        await db.commit()

    logger.info(
        "Stipend job for %s finished: created=%s, %d recipients",
        week, created, run.recipients,
    )
    return {"week_iso": week, "created": created, "recipients": run.recipients}


class WorkerSettings:
    """arq worker settings for the stipend scheduler."""

    functions = [weekly_stipend]
    cron_jobs = [
        cron(weekly_stipend, weekday=0, hour=0, minute=5, run_at_startup=False),  # Monday 00:05 UTC
    ]
    on_startup = stipend_startup
    on_shutdown = stipend_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    max_jobs = 2
    job_timeout = 300
