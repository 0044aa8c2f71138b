import uuid
from typing import Optional
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import COOKIE_NAME
from core.database import get_db
from core.security import decode_access_token
from db.models import User
from db.queries import get_user_by_id


def _read_token(request: Request) -> Optional[str]:
    # browser sessions use the cookie, API clients may send a bearer token
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token

    auth = request.headers.get("authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip()
    return None


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Signed-in user, or None for anonymous requests and bad/expired tokens."""
    token = _read_token(request)
    if not token:
        return None

    payload = decode_access_token(token)
    if not payload or "sub" not in payload:
        return None

    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except ValueError:
        return None

    return await get_user_by_id(db, user_id)


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user
