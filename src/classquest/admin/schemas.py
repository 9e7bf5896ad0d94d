"""Pydantic schemas for admin endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from classquest.ledger.service import MAX_AMOUNT
from classquest.schemas import SuccessResponse


class MakeAdminRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)


class AddXpRequest(BaseModel):
    amount: int = Field(..., ge=-MAX_AMOUNT, le=MAX_AMOUNT)


class AddXpResponse(BaseModel):
    leveled_up: bool
    new_level: int
    new_xp: int


class RunStipendRequest(BaseModel):
    week_iso: str | None = Field(None, pattern=r"^\d{4}-W\d{2}$")


class StipendRunResponse(SuccessResponse):
    week_iso: str
    amount: int
    recipients: int
    already_paid: bool
