"""FastAPI authentication dependencies (the identity/role gate)."""

from __future__ import annotations

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from classquest.auth.jwt import verify_token
from classquest.auth.service import get_or_create_user
from classquest.clock import now_ms
from classquest.database import get_session
from classquest.db.models import User
from classquest.ledger.errors import NotAuthenticated

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User | None:
    """
    Resolve the bearer token to a User, or None when no token was sent.

    Services decide what an anonymous caller may do: every mutation raises
    NotAuthenticated for None. A token that is present but invalid is
    rejected here. Users are created on first authentication.
    """
    if credentials is None:
        return None

    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise NotAuthenticated(str(e)) from e

    user, created = await get_or_create_user(
        db,
        payload["sub"],
        now_ms(),
        email=payload.get("email"),
        name=payload.get("name"),
    )
    if created:
        # Provisioning must survive a rollback of the operation that follows
        await db.commit()
    return user
