"""Challenge and submission API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from classquest.auth.dependencies import get_current_user
from classquest.challenges.schemas import (
    ActiveChallengeResponse,
    ChallengeResponse,
    ChallengeSubmissionResponse,
    CreateChallengeRequest,
    PendingSubmissionResponse,
    ReviewSubmissionRequest,
    ReviewSubmissionResponse,
    SubmissionResponse,
    SubmitProofRequest,
    SubmitterResponse,
)
from classquest.challenges.service import (
    create_challenge,
    expire_overdue_challenges,
    list_active_challenges,
    list_all_challenges,
    list_challenges_created_by,
    list_pending_submissions,
    list_submissions_for_challenge,
    review_submission,
    submit_proof,
)
from classquest.clock import now_ms
from classquest.database import get_session
from classquest.db.models import Challenge, Submission, User
from classquest.schemas import CreatedResponse

router = APIRouter(prefix="/api/v1", tags=["Challenges"])


# ── Helpers ──


def _challenge_fields(c: Challenge) -> dict:
    return {
        "id": c.id,
        "title": c.title,
        "description": c.description,
        "xp_reward": c.xp_reward,
        "type": c.type,
        "status": c.status,
        "created_by": c.created_by,
        "expires_at": c.expires_at,
        "created_at": c.created_at,
    }


def _submission_fields(s: Submission) -> dict:
    return {
        "id": s.id,
        "challenge_id": s.challenge_id,
        "user_id": s.user_id,
        "proof_text": s.proof_text,
        "proof_image_url": s.proof_image_url,
        "status": s.status,
        "submitted_at": s.submitted_at,
        "reviewed_at": s.reviewed_at,
        "reviewed_by": s.reviewed_by,
    }


def _submitter(user: User) -> SubmitterResponse:
    return SubmitterResponse(
        id=user.id,
        name=user.name or "Anonymous",
        character_name=user.character_name or "Unknown",
    )


# ── Queries ──


@router.get("/challenges", response_model=list[ActiveChallengeResponse])
async def list_active_challenges_endpoint(
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Active challenges, with the caller's own submission attached."""
    await expire_overdue_challenges(db, now_ms())
    await db.commit()

    rows = await list_active_challenges(db, user.id if user else None)
    return [
        ActiveChallengeResponse(
            **_challenge_fields(c),
            user_submission=SubmissionResponse(**_submission_fields(s)) if s else None,
        )
        for c, s in rows
    ]


@router.get("/challenges/all", response_model=list[ChallengeResponse])
async def list_all_challenges_endpoint(
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Every challenge (admin only)."""
    return [ChallengeResponse(**_challenge_fields(c)) for c in await list_all_challenges(db, user)]


@router.get("/challenges/mine", response_model=list[ChallengeResponse])
async def list_my_challenges_endpoint(
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Challenges created by the caller."""
    if user is None:
        return []
    return [ChallengeResponse(**_challenge_fields(c)) for c in await list_challenges_created_by(db, user.id)]


@router.get("/challenges/{challenge_id}/submissions", response_model=list[ChallengeSubmissionResponse])
async def list_challenge_submissions_endpoint(
    challenge_id: int,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Submissions for one challenge (its creator or an admin)."""
    rows = await list_submissions_for_challenge(db, user, challenge_id)
    return [
        ChallengeSubmissionResponse(**_submission_fields(s), submitter=_submitter(u))
        for s, u in rows
    ]


@router.get("/submissions/pending", response_model=list[PendingSubmissionResponse])
async def list_pending_submissions_endpoint(
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Pending submissions awaiting review (admin only)."""
    rows = await list_pending_submissions(db, user)
    return [
        PendingSubmissionResponse(
            **_submission_fields(s),
            challenge=ChallengeResponse(**_challenge_fields(c)),
            submitter=_submitter(u),
        )
        for s, c, u in rows
    ]


# ── Mutations ──


@router.post("/challenges", response_model=CreatedResponse, status_code=201)
async def create_challenge_endpoint(
    body: CreateChallengeRequest,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Create a challenge."""
    challenge = await create_challenge(
        db,
        user,
        body.title,
        body.description,
        body.xp_reward,
        body.type,
        now_ms(),
        duration_hours=body.duration_hours,
    )
    await db.commit()
    return CreatedResponse(id=challenge.id)


@router.post("/challenges/{challenge_id}/submissions", response_model=CreatedResponse, status_code=201)
async def submit_proof_endpoint(
    challenge_id: int,
    body: SubmitProofRequest,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Submit proof for a challenge."""
    submission = await submit_proof(
        db,
        user,
        challenge_id,
        now_ms(),
        proof_text=body.proof_text,
        proof_image_url=body.proof_image_url,
    )
    await db.commit()
    return CreatedResponse(id=submission.id)


@router.post("/submissions/{submission_id}/review", response_model=ReviewSubmissionResponse)
async def review_submission_endpoint(
    submission_id: int,
    body: ReviewSubmissionRequest,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Approve or reject a submission (admin only)."""
    submission, reward = await review_submission(db, user, submission_id, body.approved, now_ms())
    await db.commit()
    return ReviewSubmissionResponse(status=submission.status, credits_awarded=reward)
