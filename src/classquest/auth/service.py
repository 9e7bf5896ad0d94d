"""
User lookup and first-authentication provisioning.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from classquest.db.models import User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def get_user_by_subject(db: AsyncSession, subject: str) -> User | None:
    """Fetch a user by identity-provider subject."""
    result = await db.execute(select(User).where(User.subject == subject))
    return result.scalar_one_or_none()


async def get_or_create_user(
    db: AsyncSession,
    subject: str,
    now: int,
    email: str | None = None,
    name: str | None = None,
) -> tuple[User, bool]:
    """
    Get the user for an identity subject, creating the row on first sight.

    The new row has no character yet and a zero balance; character defaults
    are applied later, once, by ``initialize_character``.

    Returns:
        Tuple of (user, created) where created is True if a new user was made.
    """
    user = await get_user_by_subject(db, subject)
    if user is not None:
        return user, False

    user = User(
        subject=subject,
        email=email,
        name=name,
        role="user",
        credits=0,
        xp=0,
        level=1,
        weekly_xp=0,
        badges=[],
        created_at=now,
    )
    db.add(user)
    await db.flush()
    logger.info("user_created", user_id=user.id, subject=subject)
    return user, True
