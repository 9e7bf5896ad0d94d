"""Weekly stipend: every initialized character receives a fixed credit grant.

Idempotent per ISO week. The ``stipend_runs`` row is inserted in the same
transaction as the grant, so a week is paid at most once; a run that
loses the race on the unique week fails instead of paying twice.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from classquest.db.models import StipendRun
from classquest.ledger import service as ledger
from classquest.ledger.errors import InvalidArgument, InvariantViolation

logger = logging.getLogger(__name__)


async def get_stipend_run(db: AsyncSession, week_iso: str) -> StipendRun | None:
    result = await db.execute(select(StipendRun).where(StipendRun.week_iso == week_iso))
    return result.scalar_one_or_none()


async def grant_weekly_stipend(
    db: AsyncSession,
    week_iso: str,
    now: int,
    amount: int,
) -> tuple[StipendRun, bool]:
    """Pay the stipend for ``week_iso``. Returns (run, created).

    If the week was already paid the existing run is returned and no
    credits move.
    """
    if amount < 0:
        raise InvalidArgument("Stipend amount must not be negative")

    existing = await get_stipend_run(db, week_iso)
    if existing is not None:
        logger.info("Stipend for %s already paid (id=%d), skipping", week_iso, existing.id)
        return existing, False

    run = StipendRun(week_iso=week_iso, amount=amount, recipients=0, created_at=now)
    db.add(run)
    try:
        # Claim the week before touching balances
        await db.flush()
    except IntegrityError as e:
        msg = f"Stipend for {week_iso} is already being paid"
        raise InvariantViolation(msg) from e

    run.recipients = await ledger.mint_all(db, amount)
    await db.flush()

    logger.info("Stipend for %s paid: %d credits to %d characters", week_iso, amount, run.recipients)
    return run, True
