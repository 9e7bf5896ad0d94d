"""ORM models for the credits ledger and the engines that move credits.

All timestamps are integer epoch milliseconds. Uniqueness rules that the
engines rely on under concurrency (one bet per user per event, one
submission per user per challenge, one pending loan per borrower, one
stipend per week) are enforced by constraints here as well as checked in
the services.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from classquest.db.base import Base

# SQLite only auto-increments INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, "sqlite")
JSONType = JSON().with_variant(JSONB, "postgresql")


# ---------------------------------------------------------------------------
# Users / Characters
# ---------------------------------------------------------------------------


class User(Base):
    """Identity row extended with the character and its credit balance."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("credits >= 0", name="credits_non_negative"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    subject: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), unique=True, nullable=True)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user", server_default="user")
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # --- Character ---
    character_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    credits: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    level: Mapped[int] = mapped_column(BigInteger, nullable=False, default=1, server_default="1")
    weekly_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    badges: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    @property
    def has_character(self) -> bool:
        return self.character_name is not None


# ---------------------------------------------------------------------------
# Betting
# ---------------------------------------------------------------------------


class BettingEvent(Base):
    """A fixed-odds proposition with labeled options."""

    __tablename__ = "betting_events"
    __table_args__ = (
        CheckConstraint(
            "(status = 'resolved') = (resolved_option IS NOT NULL)",
            name="resolved_option_iff_resolved",
        ),
        Index("ix_betting_events_status", "status"),
        Index("ix_betting_events_created_by", "created_by"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # [{"label": str, "odds": float}, ...] in display order
    options: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="open")
    created_by: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    closes_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    resolved_option: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def odds_for(self, label: str) -> float | None:
        """Odds of the option with this label, or None if there is no such option."""
        for option in self.options:
            if option["label"] == label:
                return float(option["odds"])
        return None


class Bet(Base):
    """A stake escrowed on one option of an event."""

    __tablename__ = "bets"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_bets_event_user"),
        CheckConstraint("amount > 0", name="amount_positive"),
        Index("ix_bets_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("betting_events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    option: Mapped[str] = mapped_column(String(128), nullable=False)
    odds: Mapped[float] = mapped_column(Float, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    placed_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


class Challenge(Base):
    __tablename__ = "challenges"
    __table_args__ = (
        Index("ix_challenges_status", "status"),
        Index("ix_challenges_created_by", "created_by"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    xp_reward: Mapped[float] = mapped_column(Float, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    created_by: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    expires_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class Submission(Base):
    """Proof of a completed challenge awaiting admin review."""

    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("challenge_id", "user_id", name="uq_submissions_challenge_user"),
        Index("ix_submissions_status", "status"),
        Index("ix_submissions_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    challenge_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    proof_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    proof_image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    submitted_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reviewed_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    reviewed_by: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=True)


# ---------------------------------------------------------------------------
# Loans
# ---------------------------------------------------------------------------


class LoanRequest(Base):
    """Peer loan request from a zero-balance borrower."""

    __tablename__ = "loans"
    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        Index(
            "uq_loans_one_pending_per_borrower",
            "borrower_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("ix_loans_status", "status"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    borrower_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    lender_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=True)
    requested_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    fulfilled_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    repaid_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)


# ---------------------------------------------------------------------------
# Stipends
# ---------------------------------------------------------------------------


class StipendRun(Base):
    """One row per ISO week whose stipend has been paid."""

    __tablename__ = "stipend_runs"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    week_iso: Mapped[str] = mapped_column(String(8), unique=True, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    recipients: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
