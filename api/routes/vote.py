from typing import Optional
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_optional_user
from api.schemas.chat import VoteOut, VoteRequest
from core.database import get_db
from core.errors import ChatSDKError
from db.models import User
from db.queries import get_chat_by_id, get_votes_by_chat_id, vote_message


router = APIRouter(prefix="/api/vote", tags=["Vote"])


@router.get("")
async def get_votes(
    chatId: Optional[uuid.UUID] = None,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if chatId is None:
        raise ChatSDKError("bad_request:api", "Parameter chatId is required.")

    if user is None:
        raise ChatSDKError("unauthorized:vote")

    chat = await get_chat_by_id(db, chatId)
    if chat is None:
        raise ChatSDKError("not_found:chat")
    if chat.user_id != user.id:
        raise ChatSDKError("forbidden:vote")

    votes = await get_votes_by_chat_id(db, chatId)
    return [VoteOut.model_validate(v).to_json() for v in votes]


@router.patch("")
async def patch_vote(
    body: VoteRequest,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if body.chat_id is None or body.message_id is None or body.type is None:
        raise ChatSDKError(
            "bad_request:api", "Parameters chatId, messageId, and type are required."
        )

    if user is None:
        raise ChatSDKError("unauthorized:vote")

    chat = await get_chat_by_id(db, body.chat_id)
    if chat is None:
        raise ChatSDKError("not_found:vote")
    if chat.user_id != user.id:
        raise ChatSDKError("forbidden:vote")

    await vote_message(db, chat_id=body.chat_id, message_id=body.message_id, type=body.type)
    return "Message voted"
