"""Response models shared by every domain router."""

from __future__ import annotations

from pydantic import BaseModel


class CreatedResponse(BaseModel):
    id: int


class SuccessResponse(BaseModel):
    success: bool = True
