"""Challenge and submission engine.

Rules:
- Any authenticated user may create a challenge
- One submission per user per challenge, with text or image proof
- Admins review each submission exactly once; approval credits the
  submitter floor(xp_reward) through the ledger
- Challenges past expires_at stop accepting submissions and are marked
  expired lazily, the next time active challenges are listed
"""

from __future__ import annotations

import logging
import math

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from classquest.clock import deadline_after, is_past
from classquest.db.models import Challenge, Submission, User
from classquest.ledger import service as ledger
from classquest.ledger.errors import InvalidArgument, InvariantViolation, NotFound
from classquest.ledger.permissions import Action, authenticated, require

logger = logging.getLogger(__name__)

CHALLENGE_TYPES = ("daily", "weekly", "one-time")


async def get_challenge(db: AsyncSession, challenge_id: int) -> Challenge:
    """Get a challenge by ID."""
    result = await db.execute(select(Challenge).where(Challenge.id == challenge_id))
    challenge = result.scalar_one_or_none()
    if challenge is None:
        raise NotFound("Challenge not found")
    return challenge


async def get_user_submission(db: AsyncSession, challenge_id: int, user_id: int) -> Submission | None:
    result = await db.execute(
        select(Submission).where(Submission.challenge_id == challenge_id, Submission.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def create_challenge(
    db: AsyncSession,
    actor: User | None,
    title: str,
    description: str,
    xp_reward: float,
    challenge_type: str,
    now: int,
    duration_hours: float | None = None,
) -> Challenge:
    """Create an active challenge."""
    user = require(actor, Action.CREATE_CHALLENGE)
    if not title.strip():
        raise InvalidArgument("Title must not be empty")
    if challenge_type not in CHALLENGE_TYPES:
        msg = f"Invalid challenge type: {challenge_type}"
        raise InvalidArgument(msg)
    if not (math.isfinite(xp_reward) and 0 <= xp_reward <= ledger.MAX_AMOUNT):
        msg = f"Reward must be a number between 0 and {ledger.MAX_AMOUNT}"
        raise InvalidArgument(msg)
    if duration_hours is not None and duration_hours < 0:
        raise InvalidArgument("Duration must not be negative")

    challenge = Challenge(
        title=title.strip(),
        description=description,
        xp_reward=xp_reward,
        type=challenge_type,
        status="active",
        created_by=user.id,
        expires_at=deadline_after(now, duration_hours),
        created_at=now,
    )
    db.add(challenge)
    await db.flush()
    logger.info("Challenge created: %s (id=%d, by=%d)", challenge.title, challenge.id, user.id)
    return challenge


async def submit_proof(
    db: AsyncSession,
    actor: User | None,
    challenge_id: int,
    now: int,
    proof_text: str | None = None,
    proof_image_url: str | None = None,
) -> Submission:
    """Submit proof for an active challenge. One submission per user per challenge."""
    user = require(actor, Action.SUBMIT_PROOF)
    proof_text = (proof_text or "").strip() or None
    proof_image_url = (proof_image_url or "").strip() or None
    if proof_text is None and proof_image_url is None:
        raise InvalidArgument("Provide proof text or an image URL")

    challenge = await get_challenge(db, challenge_id)
    if challenge.status != "active":
        raise InvariantViolation("Challenge is not active")
    if is_past(challenge.expires_at, now):
        raise InvariantViolation("Challenge has expired")

    if await get_user_submission(db, challenge_id, user.id) is not None:
        raise InvariantViolation("You have already submitted for this challenge")

    submission = Submission(
        challenge_id=challenge_id,
        user_id=user.id,
        proof_text=proof_text,
        proof_image_url=proof_image_url,
        status="pending",
        submitted_at=now,
    )
    db.add(submission)
    try:
        await db.flush()
    except IntegrityError as e:
        raise InvariantViolation("You have already submitted for this challenge") from e

    logger.info("Submission %d created for challenge %d by user %d", submission.id, challenge_id, user.id)
    return submission


async def review_submission(
    db: AsyncSession,
    actor: User | None,
    submission_id: int,
    approved: bool,
    now: int,
) -> tuple[Submission, int]:
    """Approve or reject a pending submission (admin only).

    Review is terminal: a submission that was already approved or rejected
    cannot be reviewed again, so the reward is credited at most once.
    Returns (submission, credits awarded).
    """
    reviewer = require(actor, Action.REVIEW_SUBMISSION)

    result = await db.execute(
        select(Submission).where(Submission.id == submission_id).with_for_update()
    )
    submission = result.scalar_one_or_none()
    if submission is None:
        raise NotFound("Submission not found")
    if submission.status != "pending":
        raise InvariantViolation("Submission has already been reviewed")

    submission.status = "approved" if approved else "rejected"
    submission.reviewed_at = now
    submission.reviewed_by = reviewer.id

    reward = 0
    if approved:
        challenge = await get_challenge(db, submission.challenge_id)
        reward = math.floor(challenge.xp_reward)
        await ledger.credit(db, submission.user_id, reward)

    await db.flush()
    logger.info(
        "Submission %d %s by admin %d (reward=%d)",
        submission_id, submission.status, reviewer.id, reward,
    )
    return submission, reward


async def expire_overdue_challenges(db: AsyncSession, now: int) -> int:
    """Mark active challenges whose deadline has passed as expired. Returns the count."""
    result = await db.execute(
        update(Challenge)
        .where(
            Challenge.status == "active",
            Challenge.expires_at.is_not(None),
            Challenge.expires_at < now,
        )
        .values(status="expired")
        .execution_options(synchronize_session="evaluate")
    )
    if result.rowcount:
        logger.info("Expired %d overdue challenges", result.rowcount)
    return result.rowcount


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_active_challenges(
    db: AsyncSession,
    user_id: int | None,
) -> list[tuple[Challenge, Submission | None]]:
    """Active challenges, each paired with the caller's own submission (if any)."""
    result = await db.execute(
        select(Challenge).where(Challenge.status == "active").order_by(Challenge.id)
    )
    challenges = result.scalars().all()
    if user_id is None:
        return [(c, None) for c in challenges]

    subs_result = await db.execute(select(Submission).where(Submission.user_id == user_id))
    by_challenge = {s.challenge_id: s for s in subs_result.scalars()}
    return [(c, by_challenge.get(c.id)) for c in challenges]


async def list_all_challenges(db: AsyncSession, actor: User | None) -> list[Challenge]:
    require(actor, Action.LIST_ALL_CHALLENGES)
    result = await db.execute(select(Challenge).order_by(Challenge.id))
    return list(result.scalars().all())


async def list_challenges_created_by(db: AsyncSession, user_id: int) -> list[Challenge]:
    result = await db.execute(
        select(Challenge).where(Challenge.created_by == user_id).order_by(Challenge.id)
    )
    return list(result.scalars().all())


async def list_pending_submissions(
    db: AsyncSession,
    actor: User | None,
) -> list[tuple[Submission, Challenge, User]]:
    """Pending submissions with their challenge and submitter (admin only)."""
    require(actor, Action.LIST_PENDING_SUBMISSIONS)
    result = await db.execute(
        select(Submission, Challenge, User)
        .join(Challenge, Submission.challenge_id == Challenge.id)
        .join(User, Submission.user_id == User.id)
        .where(Submission.status == "pending")
        .order_by(Submission.submitted_at, Submission.id)
    )
    return [(row.Submission, row.Challenge, row.User) for row in result]


async def list_submissions_for_challenge(
    db: AsyncSession,
    actor: User | None,
    challenge_id: int,
) -> list[tuple[Submission, User]]:
    """Every submission for one challenge (its creator or an admin)."""
    authenticated(actor)
    challenge = await get_challenge(db, challenge_id)
    require(actor, Action.VIEW_CHALLENGE_SUBMISSIONS, challenge)

    result = await db.execute(
        select(Submission, User)
        .join(User, Submission.user_id == User.id)
        .where(Submission.challenge_id == challenge_id)
        .order_by(Submission.submitted_at, Submission.id)
    )
    return [(row.Submission, row.User) for row in result]
