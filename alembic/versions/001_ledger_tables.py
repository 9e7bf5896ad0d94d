"""Ledger tables: users with balances, betting, challenges, loans, stipends.

Revision ID: 001_ledger_tables
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_ledger_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users / Characters ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            subject VARCHAR(128) UNIQUE NOT NULL,
            email VARCHAR(320) UNIQUE,
            name VARCHAR(128),
            role VARCHAR(16) NOT NULL DEFAULT 'user',
            created_at BIGINT NOT NULL,
            character_name VARCHAR(64),
            credits BIGINT NOT NULL DEFAULT 0,
            xp BIGINT NOT NULL DEFAULT 0,
            level BIGINT NOT NULL DEFAULT 1,
            weekly_xp BIGINT NOT NULL DEFAULT 0,
            badges JSONB NOT NULL DEFAULT '[]'::jsonb,
            CONSTRAINT ck_users_credits_non_negative CHECK (credits >= 0)
        )
    """)

    # --- Betting ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS betting_events (
            id BIGSERIAL PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            description TEXT,
            options JSONB NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'open',
            created_by BIGINT NOT NULL REFERENCES users(id),
            closes_at BIGINT,
            resolved_option VARCHAR(128),
            created_at BIGINT NOT NULL,
            CONSTRAINT ck_betting_events_resolved_option_iff_resolved
                CHECK ((status = 'resolved') = (resolved_option IS NOT NULL))
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_betting_events_status ON betting_events(status)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_betting_events_created_by ON betting_events(created_by)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS bets (
            id BIGSERIAL PRIMARY KEY,
            event_id BIGINT NOT NULL REFERENCES betting_events(id) ON DELETE CASCADE,
            user_id BIGINT NOT NULL REFERENCES users(id),
            option VARCHAR(128) NOT NULL,
            odds DOUBLE PRECISION NOT NULL,
            amount BIGINT NOT NULL,
            placed_at BIGINT NOT NULL,
            CONSTRAINT uq_bets_event_user UNIQUE (event_id, user_id),
            CONSTRAINT ck_bets_amount_positive CHECK (amount > 0)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_bets_user_id ON bets(user_id)")

    # --- Challenges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenges (
            id BIGSERIAL PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            description TEXT NOT NULL,
            xp_reward DOUBLE PRECISION NOT NULL,
            type VARCHAR(16) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            created_by BIGINT NOT NULL REFERENCES users(id),
            expires_at BIGINT,
            created_at BIGINT NOT NULL
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_challenges_status ON challenges(status)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_challenges_created_by ON challenges(created_by)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS submissions (
            id BIGSERIAL PRIMARY KEY,
            challenge_id BIGINT NOT NULL REFERENCES challenges(id) ON DELETE CASCADE,
            user_id BIGINT NOT NULL REFERENCES users(id),
            proof_text TEXT,
            proof_image_url VARCHAR(2048),
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            submitted_at BIGINT NOT NULL,
            reviewed_at BIGINT,
            reviewed_by BIGINT REFERENCES users(id),
            CONSTRAINT uq_submissions_challenge_user UNIQUE (challenge_id, user_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_submissions_status ON submissions(status)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_submissions_user_id ON submissions(user_id)")

    # --- Loans ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS loans (
            id BIGSERIAL PRIMARY KEY,
            borrower_id BIGINT NOT NULL REFERENCES users(id),
            amount BIGINT NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            note VARCHAR(500),
            lender_id BIGINT REFERENCES users(id),
            requested_at BIGINT NOT NULL,
            fulfilled_at BIGINT,
            repaid_at BIGINT,
            CONSTRAINT ck_loans_amount_positive CHECK (amount > 0)
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_loans_one_pending_per_borrower
        ON loans(borrower_id) WHERE status = 'pending'
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_loans_status ON loans(status)")

    # --- Stipends ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS stipend_runs (
            id BIGSERIAL PRIMARY KEY,
            week_iso VARCHAR(8) UNIQUE NOT NULL,
            amount BIGINT NOT NULL,
            recipients BIGINT NOT NULL,
            created_at BIGINT NOT NULL
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS stipend_runs")
    op.execute("DROP TABLE IF EXISTS loans")
    op.execute("DROP TABLE IF EXISTS submissions")
    op.execute("DROP TABLE IF EXISTS challenges")
    op.execute("DROP TABLE IF EXISTS bets")
    op.execute("DROP TABLE IF EXISTS betting_events")
    op.execute("DROP TABLE IF EXISTS users")
