"""Fixed-odds betting engine.

State progression: open -> closed -> resolved, and open -> resolved
directly. Transitions only move forward; closing or resolving an event
that is already past that state is a no-op rather than an error.

Stakes are escrowed (debited) at placement and refunded on cancellation.
At resolution every bet on the winning option is paid
``floor(amount * odds)`` using the odds recorded on the bet. Payouts are
independent per bet, so the total paid out is not bounded by the stakes.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from classquest.clock import deadline_after, is_past
from classquest.db.models import Bet, BettingEvent, User
from classquest.ledger import service as ledger
from classquest.ledger.errors import InvalidArgument, InvariantViolation, NotFound
from classquest.ledger.permissions import Action, authenticated, require

logger = structlog.get_logger()

VALID_TRANSITIONS: dict[str, list[str]] = {
    "open": ["closed", "resolved"],
    "closed": ["resolved"],
    "resolved": [],
}

MIN_OPTIONS = 2
MAX_ODDS = 1000.0


@dataclass(frozen=True)
class ResolveOutcome:
    event: BettingEvent
    winners: int
    total_payout: int
    already_resolved: bool = False


def validate_transition(current_status: str, target_status: str) -> None:
    """Validate a state transition. Raises InvariantViolation if invalid."""
    valid = VALID_TRANSITIONS.get(current_status, [])
    if target_status not in valid:
        msg = f"Invalid transition: {current_status} -> {target_status}. Valid transitions: {valid}"
        raise InvariantViolation(msg)


def normalize_options(options: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """Validate event options and return them as plain ``{label, odds}`` dicts."""
    if len(options) < MIN_OPTIONS:
        raise InvalidArgument("Provide at least two options")

    seen: set[str] = set()
    normalized = []
    for opt in options:
        label = str(opt["label"]).strip()
        odds = float(opt["odds"])
        if not label:
            raise InvalidArgument("Option labels must not be empty")
        if label in seen:
            msg = f'Duplicate option label "{label}"'
            raise InvalidArgument(msg)
        if not (math.isfinite(odds) and 0 < odds <= MAX_ODDS):
            msg = f'Invalid odds for "{label}". Must be > 0 and at most {MAX_ODDS:g}'
            raise InvalidArgument(msg)
        seen.add(label)
        normalized.append({"label": label, "odds": odds})
    return normalized


async def get_event(db: AsyncSession, event_id: int, *, for_update: bool = False) -> BettingEvent:
    """Get a betting event by ID, optionally locking its row."""
    stmt = select(BettingEvent).where(BettingEvent.id == event_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    event = result.scalar_one_or_none()
    if event is None:
        raise NotFound("Event not found")
    return event


async def get_user_bet(db: AsyncSession, event_id: int, user_id: int) -> Bet | None:
    """The user's bet on an event, if any."""
    result = await db.execute(
        select(Bet).where(Bet.event_id == event_id, Bet.user_id == user_id).with_for_update()
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


async def create_event(
    db: AsyncSession,
    actor: User | None,
    title: str,
    options: Sequence[dict[str, Any]],
    now: int,
    description: str | None = None,
    duration_hours: float | None = None,
) -> BettingEvent:
    """Create an open betting event. Any authenticated user may create one."""
    user = require(actor, Action.CREATE_EVENT)
    if not title.strip():
        raise InvalidArgument("Title must not be empty")
    if duration_hours is not None and duration_hours < 0:
        raise InvalidArgument("Duration must not be negative")

    event = BettingEvent(
        title=title.strip(),
        description=description,
        options=normalize_options(options),
        status="open",
        created_by=user.id,
        closes_at=deadline_after(now, duration_hours),
        created_at=now,
    )
    db.add(event)
    await db.flush()
    logger.info("event_created", event_id=event.id, created_by=user.id, options=len(event.options))
    return event


async def place_bet(
    db: AsyncSession,
    actor: User | None,
    event_id: int,
    option: str,
    amount: int,
    now: int,
) -> Bet:
    """Escrow ``amount`` on one option of an open event (one bet per user per event)."""
    user = require(actor, Action.PLACE_BET)
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidArgument("Bet amount must be a whole number greater than 0")
    if amount > ledger.MAX_AMOUNT:
        msg = f"Bet amount must be at most {ledger.MAX_AMOUNT}"
        raise InvalidArgument(msg)

    event = await get_event(db, event_id, for_update=True)
    if event.status != "open":
        raise InvariantViolation("Event is not open for betting")
    if is_past(event.closes_at, now):
        raise InvariantViolation("Event betting period has ended")
    odds = event.odds_for(option)
    if odds is None:
        raise InvalidArgument("Invalid option")

    if await get_user_bet(db, event_id, user.id) is not None:
        raise InvariantViolation("You already placed a bet on this event")

    await ledger.debit(db, user.id, amount)

    bet = Bet(
        event_id=event_id,
        user_id=user.id,
        option=option,
        odds=odds,
        amount=amount,
        placed_at=now,
    )
    db.add(bet)
    try:
        await db.flush()
    except IntegrityError as e:
        # A concurrent placement won the unique (event_id, user_id) slot
        raise InvariantViolation("You already placed a bet on this event") from e

    logger.info("bet_placed", bet_id=bet.id, event_id=event_id, user_id=user.id, option=option, amount=amount)
    return bet


async def cancel_bet(db: AsyncSession, actor: User | None, event_id: int, now: int) -> int:
    """Refund and delete the caller's bet while the event is still open. Returns the refund."""
    user = require(actor, Action.CANCEL_BET)

    event = await get_event(db, event_id, for_update=True)
    if event.status != "open":
        raise InvariantViolation("Cannot cancel; event is not open")
    if is_past(event.closes_at, now):
        raise InvariantViolation("Cannot cancel; betting period has ended")

    bet = await get_user_bet(db, event_id, user.id)
    if bet is None:
        raise NotFound("No bet to cancel for this event")

    refund = bet.amount
    await ledger.credit(db, user.id, refund)
    await db.delete(bet)
    await db.flush()

    logger.info("bet_canceled", event_id=event_id, user_id=user.id, refund=refund)
    return refund


async def close_event(db: AsyncSession, actor: User | None, event_id: int) -> BettingEvent:
    """Stop accepting bets. No-op unless the event is open."""
    authenticated(actor)
    event = await get_event(db, event_id, for_update=True)
    require(actor, Action.CLOSE_EVENT, event)

    if event.status != "open":
        return event

    validate_transition(event.status, "closed")
    event.status = "closed"
    await db.flush()
    logger.info("event_closed", event_id=event_id)
    return event


async def resolve_event(
    db: AsyncSession,
    actor: User | None,
    event_id: int,
    winning_option: str,
) -> ResolveOutcome:
    """Pay out every bet on ``winning_option`` and mark the event resolved.

    Resolving an already resolved event changes nothing and pays nothing,
    whatever option is passed the second time.
    """
    authenticated(actor)
    event = await get_event(db, event_id, for_update=True)
    require(actor, Action.RESOLVE_EVENT, event)

    if event.odds_for(winning_option) is None:
        raise InvalidArgument("Invalid winning option")

    if event.status == "resolved":
        winners = await db.scalar(
            select(func.count(Bet.id)).where(Bet.event_id == event_id, Bet.option == event.resolved_option)
        )
        return ResolveOutcome(event=event, winners=winners or 0, total_payout=0, already_resolved=True)

    validate_transition(event.status, "resolved")

    result = await db.execute(
        select(Bet).where(Bet.event_id == event_id, Bet.option == winning_option).order_by(Bet.id)
    )
    winning_bets = result.scalars().all()

    raw = [(bet.user_id, bet.amount * bet.odds) for bet in winning_bets]
    if any(not math.isfinite(value) or value > ledger.MAX_BALANCE for _, value in raw):
        raise InvariantViolation("Payout exceeds the balance limit")
    payouts = [(user_id, math.floor(value)) for user_id, value in raw]

    total_payout = 0
    for user_id, payout in payouts:
        await ledger.credit(db, user_id, payout)
        total_payout += payout

    event.status = "resolved"
    event.resolved_option = winning_option
    await db.flush()

    logger.info(
        "event_resolved",
        event_id=event_id,
        winning_option=winning_option,
        winners=len(winning_bets),
        total_payout=total_payout,
    )
    return ResolveOutcome(event=event, winners=len(winning_bets), total_payout=total_payout)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_open_events(db: AsyncSession) -> list[BettingEvent]:
    result = await db.execute(
        select(BettingEvent).where(BettingEvent.status == "open").order_by(BettingEvent.id)
    )
    return list(result.scalars().all())


async def list_all_events(db: AsyncSession, actor: User | None) -> list[BettingEvent]:
    """Every event regardless of status (admin only)."""
    require(actor, Action.LIST_ALL_EVENTS)
    result = await db.execute(select(BettingEvent).order_by(BettingEvent.id))
    return list(result.scalars().all())


async def list_events_created_by(db: AsyncSession, user_id: int) -> list[BettingEvent]:
    result = await db.execute(
        select(BettingEvent).where(BettingEvent.created_by == user_id).order_by(BettingEvent.id)
    )
    return list(result.scalars().all())


async def list_user_bets(db: AsyncSession, user_id: int) -> list[Bet]:
    result = await db.execute(select(Bet).where(Bet.user_id == user_id).order_by(Bet.placed_at, Bet.id))
    return list(result.scalars().all())


async def count_bets_for_events(db: AsyncSession, event_ids: Iterable[int]) -> dict[int, int]:
    """Number of live bets per event id; ids without bets map to 0."""
    ids = list(dict.fromkeys(event_ids))
    counts = dict.fromkeys(ids, 0)
    if not ids:
        return counts
    result = await db.execute(
        select(Bet.event_id, func.count(Bet.id)).where(Bet.event_id.in_(ids)).group_by(Bet.event_id)
    )
    for event_id, count in result.all():
        counts[event_id] = count
    return counts
