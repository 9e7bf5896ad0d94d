"""Pydantic schemas for loan endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from classquest.ledger.service import MAX_AMOUNT


class CreateLoanRequest(BaseModel):
    amount: float = Field(..., le=MAX_AMOUNT)
    note: str | None = Field(None, max_length=500)


class LoanResponse(BaseModel):
    id: int
    borrower_id: int
    amount: int
    status: str
    note: str | None = None
    lender_id: int | None = None
    requested_at: int
    fulfilled_at: int | None = None
    repaid_at: int | None = None
