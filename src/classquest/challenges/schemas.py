"""Pydantic schemas for challenge and submission endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from classquest.ledger.service import MAX_AMOUNT

from classquest.schemas import SuccessResponse


class CreateChallengeRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., max_length=4000)
    xp_reward: float = Field(..., le=MAX_AMOUNT)
    type: str
    duration_hours: float | None = None


class SubmitProofRequest(BaseModel):
    proof_text: str | None = Field(None, max_length=4000)
    proof_image_url: str | None = Field(None, max_length=2048)


class ReviewSubmissionRequest(BaseModel):
    approved: bool


class SubmissionResponse(BaseModel):
    id: int
    challenge_id: int
    user_id: int
    proof_text: str | None = None
    proof_image_url: str | None = None
    status: str
    submitted_at: int
    reviewed_at: int | None = None
    reviewed_by: int | None = None


class ChallengeResponse(BaseModel):
    id: int
    title: str
    description: str
    xp_reward: float
    type: str
    status: str
    created_by: int
    expires_at: int | None = None
    created_at: int


class ActiveChallengeResponse(ChallengeResponse):
    user_submission: SubmissionResponse | None = None


class SubmitterResponse(BaseModel):
    id: int
    name: str
    character_name: str


class PendingSubmissionResponse(SubmissionResponse):
    challenge: ChallengeResponse
    submitter: SubmitterResponse


class ChallengeSubmissionResponse(SubmissionResponse):
    submitter: SubmitterResponse


class ReviewSubmissionResponse(SuccessResponse):
    status: str
    credits_awarded: int
