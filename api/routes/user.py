from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from api.dependencies import get_current_user
from api.schemas.user import UserOut
from core.database import get_db
from core.errors import ChatSDKError
from db.models import User
from db.queries import get_user
from services.entitlements import get_entitlements
from services.file_compatibility import (
    get_supported_file_types,
    is_model_compatible_with_attachments,
    normalize_media_type,
)
from services.model_catalog import DEFAULT_CHAT_MODEL, chat_models

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["User"])


@router.get("/user")
async def get_user_profile(
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        users = await get_user(db, current.email)
    except ChatSDKError as exc:
        logger.error("Error in GET /api/user: %s", exc.cause)
        raise HTTPException(status_code=500, detail="Failed to fetch user data")

    if not users:
        raise HTTPException(status_code=404, detail="User not found")

    user = users[0]
    return UserOut(
        id=str(user.id),
        email=user.email,
        name=user.name,
        profile_url=user.profile_url,
        type=user.type,
    ).model_dump(by_alias=True)


@router.get("/models")
async def list_models(
    content_types: Optional[List[str]] = Query(default=None, alias="contentType"),
    current: User = Depends(get_current_user),
):
    """Model picker data; ``contentType`` narrows ``compatible`` to the attached files."""
    entitlements = get_entitlements(current.type)
    attached = [normalize_media_type(t) for t in content_types or []]

    return {
        "defaultModel": DEFAULT_CHAT_MODEL,
        "models": [
            {
                **model.model_dump(),
                "available": model.id in entitlements.available_chat_model_ids,
                "compatible": is_model_compatible_with_attachments(model.id, attached),
                "supportedFileTypes": get_supported_file_types(model.id),
            }
            for model in chat_models
        ],
    }
