"""Role administration."""

from __future__ import annotations

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from classquest.auth.service import get_user_by_email
from classquest.db.models import User
from classquest.ledger.errors import NotFound
from classquest.ledger.permissions import ADMIN_ROLE, Action, authenticated, require

logger = structlog.get_logger()


async def count_admins(db: AsyncSession) -> int:
    return await db.scalar(select(func.count()).select_from(User).where(User.role == ADMIN_ROLE)) or 0


async def make_admin(db: AsyncSession, actor: User | None, email: str) -> User:
    """Promote the user with ``email`` to admin.

    While no admin exists any authenticated caller may promote (bootstrap);
    afterwards only admins can.
    """
    caller = authenticated(actor)
    if await count_admins(db) > 0:
        require(caller, Action.GRANT_ADMIN)

    target = await get_user_by_email(db, email)
    if target is None:
        raise NotFound("User not found")

    target.role = ADMIN_ROLE
    await db.flush()
    logger.info("admin_granted", user_id=target.id, granted_by=caller.id)
    return target
