"""Betting API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from classquest.auth.dependencies import get_current_user
from classquest.bets.schemas import (
    BetCountsResponse,
    BetResponse,
    CancelBetResponse,
    CreateEventRequest,
    EventOption,
    EventResponse,
    PlaceBetRequest,
    ResolveEventRequest,
    ResolveEventResponse,
)
from classquest.bets.service import (
    cancel_bet,
    close_event,
    count_bets_for_events,
    create_event,
    get_event,
    list_all_events,
    list_events_created_by,
    list_open_events,
    list_user_bets,
    place_bet,
    resolve_event,
)
from classquest.clock import now_ms
from classquest.database import get_session
from classquest.db.models import Bet, BettingEvent, User
from classquest.redis_client import publish
from classquest.schemas import CreatedResponse, SuccessResponse

router = APIRouter(prefix="/api/v1", tags=["Betting"])


# ── Helpers ──


def _event_response(event: BettingEvent) -> EventResponse:
    return EventResponse(
        id=event.id,
        title=event.title,
        description=event.description,
        options=[EventOption(label=o["label"], odds=o["odds"]) for o in event.options],
        status=event.status,
        created_by=event.created_by,
        closes_at=event.closes_at,
        resolved_option=event.resolved_option,
        created_at=event.created_at,
    )


def _bet_response(bet: Bet) -> BetResponse:
    return BetResponse(
        id=bet.id,
        event_id=bet.event_id,
        option=bet.option,
        odds=bet.odds,
        amount=bet.amount,
        placed_at=bet.placed_at,
    )


# ── Queries ──


@router.get("/events", response_model=list[EventResponse])
async def list_open_events_endpoint(db: AsyncSession = Depends(get_session)):
    """List events that are open for betting."""
    return [_event_response(e) for e in await list_open_events(db)]


@router.get("/events/all", response_model=list[EventResponse])
async def list_all_events_endpoint(
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """List every event (admin only)."""
    return [_event_response(e) for e in await list_all_events(db, user)]


@router.get("/events/mine", response_model=list[EventResponse])
async def list_my_events_endpoint(
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """List events created by the caller."""
    if user is None:
        return []
    return [_event_response(e) for e in await list_events_created_by(db, user.id)]


@router.get("/events/bet-counts", response_model=BetCountsResponse)
async def bet_counts_endpoint(
    ids: list[int] = Query(default=[]),
    db: AsyncSession = Depends(get_session),
):
    """Count live bets for a list of events."""
    return BetCountsResponse(counts=await count_bets_for_events(db, ids))


@router.get("/events/{event_id}", response_model=EventResponse)
async def get_event_endpoint(event_id: int, db: AsyncSession = Depends(get_session)):
    return _event_response(await get_event(db, event_id))


@router.get("/bets/mine", response_model=list[BetResponse])
async def list_my_bets_endpoint(
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """List the caller's bets."""
    if user is None:
        return []
    return [_bet_response(b) for b in await list_user_bets(db, user.id)]


# ── Mutations ──


@router.post("/events", response_model=CreatedResponse, status_code=201)
async def create_event_endpoint(
    body: CreateEventRequest,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Create a betting event with fixed odds per option."""
    event = await create_event(
        db,
        user,
        body.title,
        [o.model_dump() for o in body.options],
        now_ms(),
        description=body.description,
        duration_hours=body.duration_hours,
    )
    await db.commit()
    return CreatedResponse(id=event.id)


@router.post("/events/{event_id}/bets", response_model=CreatedResponse, status_code=201)
async def place_bet_endpoint(
    event_id: int,
    body: PlaceBetRequest,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Place the caller's single bet on an open event."""
    bet = await place_bet(db, user, event_id, body.option, body.amount, now_ms())
    await db.commit()
    return CreatedResponse(id=bet.id)


@router.delete("/events/{event_id}/bets/me", response_model=CancelBetResponse)
async def cancel_bet_endpoint(
    event_id: int,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Cancel the caller's bet and refund the stake."""
    refunded = await cancel_bet(db, user, event_id, now_ms())
    await db.commit()
    return CancelBetResponse(refunded=refunded)


@router.post("/events/{event_id}/close", response_model=SuccessResponse)
async def close_event_endpoint(
    event_id: int,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Stop accepting bets (creator or admin)."""
    await close_event(db, user, event_id)
    await db.commit()
    return SuccessResponse()


@router.post("/events/{event_id}/resolve", response_model=ResolveEventResponse)
async def resolve_event_endpoint(
    event_id: int,
    body: ResolveEventRequest,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Resolve an event and pay the winners (creator or admin)."""
    outcome = await resolve_event(db, user, event_id, body.winning_option)
    await db.commit()

    if not outcome.already_resolved:
        await publish("pubsub:event_resolved", {
            "event_id": event_id,
            "winning_option": body.winning_option,
            "winners": outcome.winners,
        })

    return ResolveEventResponse(
        winners=outcome.winners,
        total_payout=outcome.total_payout,
        already_resolved=outcome.already_resolved,
    )
