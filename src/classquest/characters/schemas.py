"""Pydantic schemas for character endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class InitializeCharacterRequest(BaseModel):
    character_name: str = Field(..., min_length=1, max_length=64)


class CharacterResponse(BaseModel):
    id: int
    name: str | None = None
    character_name: str
    level: int
    xp: int
    weekly_xp: int
    badges: list[str]
    credits: int
    role: str


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    name: str
    character_name: str
    credits: int
    level: int
