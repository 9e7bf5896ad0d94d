"""Peer loan engine.

A borrower with an empty balance posts a request; another user funds it,
which moves the credits from lender to borrower. Requests go
pending -> accepted or pending -> canceled and never leave those terminal
states. Repaying an accepted loan moves the amount back to the lender and
stamps ``repaid_at`` on the request.
"""

from __future__ import annotations

import math

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from classquest.db.models import LoanRequest, User
from classquest.ledger import service as ledger
from classquest.ledger.errors import InsufficientCredits, InvalidArgument, InvariantViolation, NotFound
from classquest.ledger.permissions import Action, authenticated, require

logger = structlog.get_logger()

MAX_NOTE_LENGTH = 500


async def get_loan(db: AsyncSession, loan_id: int, *, for_update: bool = False) -> LoanRequest:
    """Get a loan request by ID. Raises NotFound."""
    stmt = select(LoanRequest).where(LoanRequest.id == loan_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    loan = result.scalar_one_or_none()
    if loan is None:
        raise NotFound("Loan not found")
    return loan


async def has_pending_request(db: AsyncSession, borrower_id: int) -> bool:
    result = await db.execute(
        select(LoanRequest.id).where(
            LoanRequest.borrower_id == borrower_id,
            LoanRequest.status == "pending",
        )
    )
    return result.first() is not None


async def create_loan_request(
    db: AsyncSession,
    actor: User | None,
    amount: float,
    now: int,
    note: str | None = None,
) -> LoanRequest:
    """Open a loan request. Only a borrower with exactly 0 credits may ask."""
    user = require(actor, Action.CREATE_LOAN)

    if await ledger.get_balance(db, user.id) != 0:
        raise InvariantViolation("Loan requests are allowed only when you have 0 credits")
    if isinstance(amount, bool) or not math.isfinite(amount) or math.floor(amount) <= 0:
        raise InvalidArgument("Amount must be greater than 0")
    if amount > ledger.MAX_AMOUNT:
        msg = f"Amount must be at most {ledger.MAX_AMOUNT}"
        raise InvalidArgument(msg)
    if note is not None and len(note) > MAX_NOTE_LENGTH:
        msg = f"Note must be at most {MAX_NOTE_LENGTH} characters"
        raise InvalidArgument(msg)

    if await has_pending_request(db, user.id):
        raise InvariantViolation("You already have a pending loan request")

    loan = LoanRequest(
        borrower_id=user.id,
        amount=math.floor(amount),
        status="pending",
        note=note,
        requested_at=now,
    )
    db.add(loan)
    try:
        await db.flush()
    except IntegrityError as e:
        raise InvariantViolation("You already have a pending loan request") from e

    logger.info("loan_requested", loan_id=loan.id, borrower_id=user.id, amount=loan.amount)
    return loan


async def fund_loan(db: AsyncSession, actor: User | None, loan_id: int, now: int) -> LoanRequest:
    """Fund a pending request: lender pays the borrower the full amount."""
    lender = authenticated(actor)

    loan = await get_loan(db, loan_id, for_update=True)
    if loan.status != "pending":
        raise InvariantViolation("Loan is not pending")
    require(lender, Action.FUND_LOAN, loan)

    try:
        await ledger.transfer(db, lender.id, loan.borrower_id, loan.amount)
    except InsufficientCredits as e:
        raise InsufficientCredits("Insufficient credits to fund this loan") from e

    loan.status = "accepted"
    loan.lender_id = lender.id
    loan.fulfilled_at = now
    await db.flush()

    logger.info(
        "loan_funded",
        loan_id=loan.id,
        lender_id=lender.id,
        borrower_id=loan.borrower_id,
        amount=loan.amount,
    )
    return loan


async def cancel_loan_request(db: AsyncSession, actor: User | None, loan_id: int) -> LoanRequest:
    """Withdraw the caller's pending request. Nothing was escrowed, so no credits move."""
    authenticated(actor)

    loan = await get_loan(db, loan_id, for_update=True)
    require(actor, Action.CANCEL_LOAN, loan)
    if loan.status != "pending":
        raise InvariantViolation("Only pending requests can be canceled")

    loan.status = "canceled"
    await db.flush()
    logger.info("loan_canceled", loan_id=loan.id, borrower_id=loan.borrower_id)
    return loan


async def repay_loan(db: AsyncSession, actor: User | None, loan_id: int, now: int) -> LoanRequest:
    """Pay an accepted loan back to its lender, once."""
    authenticated(actor)

    loan = await get_loan(db, loan_id, for_update=True)
    borrower = require(actor, Action.REPAY_LOAN, loan)
    if loan.status != "accepted" or loan.lender_id is None:
        raise InvariantViolation("Only accepted loans can be repaid")
    if loan.repaid_at is not None:
        raise InvariantViolation("Loan has already been repaid")

    try:
        await ledger.transfer(db, borrower.id, loan.lender_id, loan.amount)
    except InsufficientCredits as e:
        raise InsufficientCredits("Insufficient credits to repay this loan") from e

    loan.repaid_at = now
    await db.flush()

    logger.info(
        "loan_repaid",
        loan_id=loan.id,
        borrower_id=borrower.id,
        lender_id=loan.lender_id,
        amount=loan.amount,
    )
    return loan


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_loan_requests(db: AsyncSession, user_id: int) -> list[LoanRequest]:
    """Pending requests from other users, oldest first."""
    result = await db.execute(
        select(LoanRequest)
        .where(LoanRequest.status == "pending", LoanRequest.borrower_id != user_id)
        .order_by(LoanRequest.requested_at, LoanRequest.id)
    )
    return list(result.scalars().all())


async def list_my_loans(db: AsyncSession, user_id: int) -> list[LoanRequest]:
    result = await db.execute(
        select(LoanRequest)
        .where(LoanRequest.borrower_id == user_id)
        .order_by(LoanRequest.requested_at.desc(), LoanRequest.id.desc())
    )
    return list(result.scalars().all())
