"""Unit tests for the peer loan engine."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from classquest.db.models import User
from classquest.ledger import service as ledger
from classquest.ledger.errors import (
    InsufficientCredits,
    InvalidArgument,
    InvariantViolation,
    NotAuthenticated,
    NotAuthorized,
    NotFound,
)
from classquest.loans.service import (
    cancel_loan_request,
    create_loan_request,
    fund_loan,
    list_loan_requests,
    list_my_loans,
    repay_loan,
)

NOW = 1_760_000_000_000


async def _create_user(db: AsyncSession, subject: str, credits: int = 0) -> User:
    user = User(subject=subject, credits=credits, character_name=subject, badges=[], created_at=0)
    db.add(user)
    await db.flush()
    return user


class TestCreateLoanRequest:
    @pytest.mark.asyncio
    async def test_zero_balance_may_request(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower")
        loan = await create_loan_request(db_session, borrower, 75, NOW, note="lunch")
        assert loan.status == "pending"
        assert loan.amount == 75
        assert loan.note == "lunch"
        assert loan.requested_at == NOW

    @pytest.mark.asyncio
    async def test_positive_balance_rejected(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower", credits=50)
        with pytest.raises(InvariantViolation, match="0 credits"):
            await create_loan_request(db_session, borrower, 10, NOW)

    @pytest.mark.asyncio
    async def test_amount_is_floored(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower")
        loan = await create_loan_request(db_session, borrower, 12.9, NOW)
        assert loan.amount == 12

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -3, 0.5, float("nan"), float("inf"), ledger.MAX_AMOUNT + 1, 1e20])
    async def test_invalid_amount(self, db_session: AsyncSession, amount):
        borrower = await _create_user(db_session, "borrower")
        with pytest.raises(InvalidArgument):
            await create_loan_request(db_session, borrower, amount, NOW)

    @pytest.mark.asyncio
    async def test_one_pending_per_borrower(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower")
        await create_loan_request(db_session, borrower, 10, NOW)
        with pytest.raises(InvariantViolation, match="pending"):
            await create_loan_request(db_session, borrower, 20, NOW)

    @pytest.mark.asyncio
    async def test_new_request_after_cancel(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower")
        first = await create_loan_request(db_session, borrower, 10, NOW)
        await cancel_loan_request(db_session, borrower, first.id)
        second = await create_loan_request(db_session, borrower, 20, NOW)
        assert second.status == "pending"

    @pytest.mark.asyncio
    async def test_anonymous(self, db_session: AsyncSession):
        with pytest.raises(NotAuthenticated):
            await create_loan_request(db_session, None, 10, NOW)


class TestFundLoan:
    @pytest.mark.asyncio
    async def test_fund_moves_credits(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower")
        lender = await _create_user(db_session, "lender", credits=500)
        loan = await create_loan_request(db_session, borrower, 200, NOW)

        before = lender.credits + borrower.credits
        funded = await fund_loan(db_session, lender, loan.id, NOW + 1)
        assert funded.status == "accepted"
        assert funded.lender_id == lender.id
        assert funded.fulfilled_at == NOW + 1
        assert await ledger.get_balance(db_session, lender.id) == 300
        assert await ledger.get_balance(db_session, borrower.id) == 200
        assert lender.credits + borrower.credits == before

    @pytest.mark.asyncio
    async def test_cannot_fund_own_loan(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower")
        loan = await create_loan_request(db_session, borrower, 10, NOW)
        with pytest.raises(NotAuthorized, match="own loan"):
            await fund_loan(db_session, borrower, loan.id, NOW)

    @pytest.mark.asyncio
    async def test_insufficient_lender_balance(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower")
        lender = await _create_user(db_session, "lender", credits=5)
        loan = await create_loan_request(db_session, borrower, 10, NOW)
        with pytest.raises(InsufficientCredits, match="fund this loan"):
            await fund_loan(db_session, lender, loan.id, NOW)
        assert await ledger.get_balance(db_session, lender.id) == 5
        assert await ledger.get_balance(db_session, borrower.id) == 0

    @pytest.mark.asyncio
    async def test_fund_twice_rejected(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower")
        lender = await _create_user(db_session, "lender", credits=100)
        other = await _create_user(db_session, "other", credits=100)
        loan = await create_loan_request(db_session, borrower, 10, NOW)
        await fund_loan(db_session, lender, loan.id, NOW)
        with pytest.raises(InvariantViolation, match="not pending"):
            await fund_loan(db_session, other, loan.id, NOW)
        assert await ledger.get_balance(db_session, other.id) == 100

    @pytest.mark.asyncio
    async def test_missing_loan(self, db_session: AsyncSession):
        lender = await _create_user(db_session, "lender", credits=100)
        with pytest.raises(NotFound):
            await fund_loan(db_session, lender, 404, NOW)


class TestCancelLoanRequest:
    @pytest.mark.asyncio
    async def test_only_borrower(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower")
        other = await _create_user(db_session, "other")
        loan = await create_loan_request(db_session, borrower, 10, NOW)
        with pytest.raises(NotAuthorized):
            await cancel_loan_request(db_session, other, loan.id)
        canceled = await cancel_loan_request(db_session, borrower, loan.id)
        assert canceled.status == "canceled"

    @pytest.mark.asyncio
    async def test_only_pending(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower")
        lender = await _create_user(db_session, "lender", credits=100)
        loan = await create_loan_request(db_session, borrower, 10, NOW)
        await fund_loan(db_session, lender, loan.id, NOW)
        with pytest.raises(InvariantViolation, match="pending"):
            await cancel_loan_request(db_session, borrower, loan.id)


class TestRepayLoan:
    @pytest.mark.asyncio
    async def test_repay_returns_credits_once(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower")
        lender = await _create_user(db_session, "lender", credits=100)
        loan = await create_loan_request(db_session, borrower, 40, NOW)
        await fund_loan(db_session, lender, loan.id, NOW)

        repaid = await repay_loan(db_session, borrower, loan.id, NOW + 10)
        assert repaid.repaid_at == NOW + 10
        assert repaid.status == "accepted"
        assert await ledger.get_balance(db_session, lender.id) == 100
        assert await ledger.get_balance(db_session, borrower.id) == 0

        with pytest.raises(InvariantViolation, match="already been repaid"):
            await repay_loan(db_session, borrower, loan.id, NOW + 20)

    @pytest.mark.asyncio
    async def test_repay_requires_balance(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower")
        lender = await _create_user(db_session, "lender", credits=100)
        loan = await create_loan_request(db_session, borrower, 40, NOW)
        await fund_loan(db_session, lender, loan.id, NOW)
        await ledger.debit(db_session, borrower.id, 1)

        with pytest.raises(InsufficientCredits):
            await repay_loan(db_session, borrower, loan.id, NOW)
        assert loan.repaid_at is None

    @pytest.mark.asyncio
    async def test_pending_cannot_be_repaid(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower")
        loan = await create_loan_request(db_session, borrower, 40, NOW)
        with pytest.raises(InvariantViolation, match="accepted"):
            await repay_loan(db_session, borrower, loan.id, NOW)

    @pytest.mark.asyncio
    async def test_lender_cannot_repay(self, db_session: AsyncSession):
        borrower = await _create_user(db_session, "borrower")
        lender = await _create_user(db_session, "lender", credits=100)
        loan = await create_loan_request(db_session, borrower, 40, NOW)
        await fund_loan(db_session, lender, loan.id, NOW)
        with pytest.raises(NotAuthorized):
            await repay_loan(db_session, lender, loan.id, NOW)


class TestLoanQueries:
    @pytest.mark.asyncio
    async def test_requests_exclude_my_own(self, db_session: AsyncSession):
        alice = await _create_user(db_session, "alice")
        bob = await _create_user(db_session, "bob")
        a_loan = await create_loan_request(db_session, alice, 10, NOW)
        b_loan = await create_loan_request(db_session, bob, 20, NOW + 1)

        assert [loan.id for loan in await list_loan_requests(db_session, alice.id)] == [b_loan.id]
        assert [loan.id for loan in await list_my_loans(db_session, alice.id)] == [a_loan.id]
