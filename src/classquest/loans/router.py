"""Peer loan API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from classquest.auth.dependencies import get_current_user
from classquest.clock import now_ms
from classquest.database import get_session
from classquest.db.models import LoanRequest, User
from classquest.loans.schemas import CreateLoanRequest, LoanResponse
from classquest.loans.service import (
    cancel_loan_request,
    create_loan_request,
    fund_loan,
    list_loan_requests,
    list_my_loans,
    repay_loan,
)
from classquest.schemas import CreatedResponse, SuccessResponse

router = APIRouter(prefix="/api/v1/loans", tags=["Loans"])


def _loan_response(loan: LoanRequest) -> LoanResponse:
    return LoanResponse(
        id=loan.id,
        borrower_id=loan.borrower_id,
        amount=loan.amount,
        status=loan.status,
        note=loan.note,
        lender_id=loan.lender_id,
        requested_at=loan.requested_at,
        fulfilled_at=loan.fulfilled_at,
        repaid_at=loan.repaid_at,
    )


@router.get("", response_model=list[LoanResponse])
async def list_loan_requests_endpoint(
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Pending requests from other users, available to fund."""
    if user is None:
        return []
    return [_loan_response(loan) for loan in await list_loan_requests(db, user.id)]


@router.get("/mine", response_model=list[LoanResponse])
async def list_my_loans_endpoint(
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """The caller's own loan requests."""
    if user is None:
        return []
    return [_loan_response(loan) for loan in await list_my_loans(db, user.id)]


@router.post("", response_model=CreatedResponse, status_code=201)
async def create_loan_request_endpoint(
    body: CreateLoanRequest,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Ask for a loan (only with a zero balance)."""
    loan = await create_loan_request(db, user, body.amount, now_ms(), note=body.note)
    await db.commit()
    return CreatedResponse(id=loan.id)


@router.post("/{loan_id}/fund", response_model=SuccessResponse)
async def fund_loan_endpoint(
    loan_id: int,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await fund_loan(db, user, loan_id, now_ms())
    await db.commit()
    return SuccessResponse()


@router.post("/{loan_id}/cancel", response_model=SuccessResponse)
async def cancel_loan_request_endpoint(
    loan_id: int,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await cancel_loan_request(db, user, loan_id)
    await db.commit()
    return SuccessResponse()


@router.post("/{loan_id}/repay", response_model=SuccessResponse)
async def repay_loan_endpoint(
    loan_id: int,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await repay_loan(db, user, loan_id, now_ms())
    await db.commit()
    return SuccessResponse()
