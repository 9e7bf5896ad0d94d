"""Character and leaderboard endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from classquest.auth.dependencies import get_current_user
from classquest.characters.schemas import CharacterResponse, InitializeCharacterRequest, LeaderboardEntry
from classquest.characters.service import get_character, get_leaderboard, initialize_character
from classquest.database import get_session
from classquest.db.models import User
from classquest.schemas import SuccessResponse

router = APIRouter(prefix="/api/v1", tags=["Characters"])


@router.post("/characters", response_model=SuccessResponse, status_code=201)
async def initialize_character_endpoint(
    body: InitializeCharacterRequest,
    user: User | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Create the caller's character with the starting balance."""
    await initialize_character(db, user, body.character_name)
    await db.commit()
    return SuccessResponse()


@router.get("/characters/me", response_model=CharacterResponse)
async def get_my_character(user: User | None = Depends(get_current_user)):
    character = get_character(user)
    return CharacterResponse(
        id=character.id,
        name=character.name,
        character_name=character.character_name,
        level=character.level,
        xp=character.xp,
        weekly_xp=character.weekly_xp,
        badges=character.badges or [],
        credits=character.credits,
        role=character.role,
    )


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def leaderboard_endpoint(
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_session),
):
    """Characters ranked by credits."""
    users = await get_leaderboard(db, limit=limit)
    return [
        LeaderboardEntry(
            rank=i + 1,
            user_id=u.id,
            name=u.name or "Anonymous",
            character_name=u.character_name or "Unknown",
            credits=u.credits,
            level=u.level,
        )
        for i, u in enumerate(users)
    ]
