"""Character setup, XP progression and the credits leaderboard."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from classquest.config import get_settings
from classquest.db.models import User
from classquest.ledger import service as ledger
from classquest.ledger.errors import InvalidArgument, InvariantViolation, NotFound
from classquest.ledger.permissions import Action, authenticated, require

logger = logging.getLogger(__name__)

MAX_CHARACTER_NAME = 64


@dataclass(frozen=True)
class XpResult:
    leveled_up: bool
    new_level: int
    new_xp: int


def compute_level(xp: int, xp_per_level: int) -> int:
    """Level for a total XP amount. Level 1 starts at 0 XP."""
    return max(xp, 0) // xp_per_level + 1


async def initialize_character(db: AsyncSession, actor: User | None, character_name: str) -> User:
    """Create the caller's character and grant the starting balance.

    The starting grant is minted once: a second call fails instead of
    resetting the balance.
    """
    user = require(actor, Action.INITIALIZE_CHARACTER)
    name = character_name.strip()
    if not name:
        raise InvalidArgument("Character name must not be empty")
    if len(name) > MAX_CHARACTER_NAME:
        msg = f"Character name must be at most {MAX_CHARACTER_NAME} characters"
        raise InvalidArgument(msg)

    result = await db.execute(select(User).where(User.id == user.id).with_for_update())
    row = result.scalar_one()
    if row.has_character:
        raise InvariantViolation("Character already initialized")

    row.character_name = name
    row.level = 1
    row.xp = 0
    row.weekly_xp = 0
    row.badges = []
    await db.flush()

    starting = get_settings().starting_credits
    if starting:
        await ledger.credit(db, row.id, starting)

    logger.info("Character initialized for user %d: %s (credits=%d)", row.id, name, starting)
    return row


def get_character(actor: User | None) -> User:
    """The caller's character. Raises NotFound until it is initialized."""
    user = authenticated(actor)
    if not user.has_character:
        raise NotFound("Character not initialized")
    return user


async def add_xp(db: AsyncSession, actor: User | None, user_id: int, amount: int) -> XpResult:
    """Grant XP to a user (admin only) and recompute their level."""
    require(actor, Action.GRANT_XP)
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidArgument("XP amount must be a whole number")
    if abs(amount) > ledger.MAX_AMOUNT:
        msg = f"XP amount must be at most {ledger.MAX_AMOUNT}"
        raise InvalidArgument(msg)

    result = await db.execute(select(User).where(User.id == user_id).with_for_update())
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")

    old_level = user.level
    user.xp += amount
    user.weekly_xp += amount
    user.level = compute_level(user.xp, get_settings().xp_per_level)
    await db.flush()

    leveled_up = user.level > old_level
    if leveled_up:
        logger.info("User %d leveled up: %d -> %d", user_id, old_level, user.level)
    return XpResult(leveled_up=leveled_up, new_level=user.level, new_xp=user.xp)


async def get_leaderboard(db: AsyncSession, limit: int = 100) -> list[User]:
    """Initialized characters ordered by credits, richest first."""
    result = await db.execute(
        select(User)
        .where(User.character_name.is_not(None))
        .order_by(User.credits.desc(), User.id)
        .limit(limit)
    )
    return list(result.scalars().all())
