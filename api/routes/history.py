from typing import Optional
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_optional_user
from api.schemas.chat import ChatOut
from core.database import get_db
from core.errors import ChatSDKError
from db.models import User
from db.queries import get_chats_by_user_id


router = APIRouter(prefix="/api/history", tags=["History"])


@router.get("")
async def get_history(
    limit: int = 10,
    starting_after: Optional[uuid.UUID] = None,
    ending_before: Optional[uuid.UUID] = None,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if starting_after and ending_before:
        raise ChatSDKError(
            "bad_request:api", "Only one of starting_after or ending_before can be provided."
        )

    if user is None:
        raise ChatSDKError("unauthorized:chat")

    chats, has_more = await get_chats_by_user_id(
        db,
        user_id=user.id,
        limit=limit,
        starting_after=starting_after,
        ending_before=ending_before,
    )
    return {"chats": [ChatOut.model_validate(c).to_json() for c in chats], "hasMore": has_more}
