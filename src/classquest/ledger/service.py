"""Account ledger: the only writer of ``users.credits``.

Every primitive is a single conditional ``UPDATE ... RETURNING`` executed in
the caller's transaction, so concurrent deltas on one balance add up
instead of overwriting each other, and a debit can never take a balance
below zero. The callers (bet, challenge, loan and stipend engines) run the
primitive together with their own status change; if anything later in the
operation fails, the uncommitted session is rolled back as a whole.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import inspect, select, update
from sqlalchemy.orm.attributes import set_committed_value

from classquest.db.models import User
from classquest.ledger.errors import InsufficientCredits, InvalidArgument, InvariantViolation, NotFound

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

# Largest single stake, loan, reward or grant
MAX_AMOUNT = 1_000_000_000
# users.credits is a signed 64-bit column
MAX_BALANCE = 2**63 - 1


def _check_amount(amount: int, *, allow_zero: bool) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        msg = f"Credit amounts must be integers, got {amount!r}"
        raise InvalidArgument(msg)
    if amount < 0 or (amount == 0 and not allow_zero) or amount > MAX_BALANCE:
        msg = f"Invalid credit amount: {amount}"
        raise InvalidArgument(msg)


def _sync_loaded_balance(db: AsyncSession, user_id: int, balance: int) -> None:
    """Refresh the balance of a User already loaded in this session.

    The UPDATE bypasses the identity map; without this, a caller holding the
    User object would keep seeing the pre-update balance.
    """
    key = inspect(User).identity_key_from_primary_key([user_id])
    loaded = db.sync_session.identity_map.get(key)
    if loaded is not None:
        set_committed_value(loaded, "credits", balance)


async def get_balance(db: AsyncSession, user_id: int) -> int:
    """Current balance of a user. Raises NotFound for an unknown user."""
    balance = await db.scalar(select(User.credits).where(User.id == user_id))
    if balance is None:
        raise NotFound("User not found")
    return balance


async def debit(db: AsyncSession, user_id: int, amount: int) -> int:
    """Atomically subtract ``amount`` from a balance. Returns the new balance.

    Raises InsufficientCredits if the balance is lower than ``amount``.
    """
    _check_amount(amount, allow_zero=False)
    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.credits >= amount)
        .values(credits=User.credits - amount)
        .returning(User.credits)
        .execution_options(synchronize_session=False)
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        # Either the user is missing or the guard rejected the debit
        await get_balance(db, user_id)
        raise InsufficientCredits()

    _sync_loaded_balance(db, user_id, balance)
    logger.info("credits_debited", user_id=user_id, amount=amount, balance=balance)
    return balance


async def credit(db: AsyncSession, user_id: int, amount: int) -> int:
    """Atomically add ``amount`` to a balance. Returns the new balance.

    ``amount`` must already be a whole number; callers floor fractional
    payouts before crediting. Raises InvariantViolation if the balance would
    exceed MAX_BALANCE.
    """
    _check_amount(amount, allow_zero=True)
    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.credits <= MAX_BALANCE - amount)
        .values(credits=User.credits + amount)
        .returning(User.credits)
        .execution_options(synchronize_session=False)
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        await get_balance(db, user_id)
        raise InvariantViolation("Balance limit exceeded")

    _sync_loaded_balance(db, user_id, balance)
    logger.info("credits_credited", user_id=user_id, amount=amount, balance=balance)
    return balance


async def transfer(db: AsyncSession, from_user_id: int, to_user_id: int, amount: int) -> tuple[int, int]:
    """Move ``amount`` between two users. Returns (from_balance, to_balance).

    Rows are updated in primary-key order so two opposite transfers cannot
    deadlock; the transaction is all-or-nothing either way.
    """
    if from_user_id == to_user_id:
        raise InvalidArgument("Cannot transfer credits to the same user")

    if from_user_id < to_user_id:
        from_balance = await debit(db, from_user_id, amount)
        to_balance = await credit(db, to_user_id, amount)
    else:
        to_balance = await credit(db, to_user_id, amount)
        from_balance = await debit(db, from_user_id, amount)

    logger.info(
        "credits_transferred",
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        amount=amount,
    )
    return from_balance, to_balance


async def mint_all(db: AsyncSession, amount: int) -> int:
    """Credit every initialized character with ``amount``. Returns the recipient count."""
    _check_amount(amount, allow_zero=True)
    result = await db.execute(
        update(User)
        .where(User.character_name.is_not(None))
        .values(credits=User.credits + amount)
        .returning(User.id, User.credits)
        .execution_options(synchronize_session=False)
    )
    rows = result.all()
    for user_id, balance in rows:
        _sync_loaded_balance(db, user_id, balance)

    logger.info("credits_minted", amount=amount, recipients=len(rows))
    return len(rows)
