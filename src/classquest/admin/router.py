"""Admin endpoints: role grants, XP grants and manual stipend runs."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from classquest.admin.schemas import (
    AddXpRequest,
    AddXpResponse,
    MakeAdminRequest,
    RunStipendRequest,
    StipendRunResponse,
)
from classquest.admin.service import make_admin
from classquest.auth.dependencies import get_current_user
from classquest.characters.service import add_xp
from classquest.characters.stipend_service import grant_weekly_stipend
from classquest.characters.week_utils import is_valid_week_iso, week_iso_at
from classquest.clock import now_ms
from classquest.config import get_settings
from classquest.database import get_session
from classquest.db.models import User
from classquest.ledger.errors import InvalidArgument
from classquest.ledger.permissions import Action, require
from classquest.schemas import SuccessResponse

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


@router.post("/admins", response_model=SuccessResponse)
async def make_admin_endpoint(
    body: MakeAdminRequest,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Promote a user by email (first admin may be self-appointed)."""
    await make_admin(db, user, body.email)
    await db.commit()
    return SuccessResponse()


@router.post("/users/{user_id}/xp", response_model=AddXpResponse)
async def add_xp_endpoint(
    user_id: int,
    body: AddXpRequest,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    result = await add_xp(db, user, user_id, body.amount)
    await db.commit()
    return AddXpResponse(leveled_up=result.leveled_up, new_level=result.new_level, new_xp=result.new_xp)


@router.post("/stipend", response_model=StipendRunResponse)
async def run_stipend_endpoint(
    body: RunStipendRequest,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Pay the weekly stipend now. Defaults to the current ISO week."""
    require(user, Action.RUN_STIPEND)
    now = now_ms()
    week_iso = body.week_iso or week_iso_at(now)
    if not is_valid_week_iso(week_iso):
        msg = f"Invalid ISO week: {week_iso}"
        raise InvalidArgument(msg)

    run, created = await grant_weekly_stipend(db, week_iso, now, get_settings().weekly_stipend)
    await db.commit()
    return StipendRunResponse(
        week_iso=run.week_iso,
        amount=run.amount,
        recipients=run.recipients,
        already_paid=not created,
    )
