"""Pydantic schemas for betting endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from classquest.bets.service import MAX_ODDS
from classquest.ledger.service import MAX_AMOUNT
from classquest.schemas import SuccessResponse


class EventOption(BaseModel):
    label: str = Field(..., min_length=1, max_length=128)
    odds: float


class EventOptionRequest(EventOption):
    odds: float = Field(..., le=MAX_ODDS)


class CreateEventRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    options: list[EventOptionRequest]
    duration_hours: float | None = None


class PlaceBetRequest(BaseModel):
    option: str
    amount: int = Field(..., le=MAX_AMOUNT)


class ResolveEventRequest(BaseModel):
    winning_option: str


class EventResponse(BaseModel):
    id: int
    title: str
    description: str | None = None
    options: list[EventOption]
    status: str
    created_by: int
    closes_at: int | None = None
    resolved_option: str | None = None
    created_at: int


class BetResponse(BaseModel):
    id: int
    event_id: int
    option: str
    odds: float
    amount: int
    placed_at: int


class CancelBetResponse(SuccessResponse):
    refunded: int


class ResolveEventResponse(SuccessResponse):
    winners: int
    total_payout: int
    already_resolved: bool = False


class BetCountsResponse(BaseModel):
    counts: dict[int, int]
