from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from api.dependencies import get_current_user
from api.schemas.personalization import BioUpdate, PersonalInformation
from core.database import get_db
from core.errors import ChatSDKError
from db.models import User
from db.queries import (
    get_all_personalizations_by_user_id,
    get_user,
    update_bio_by_user_id,
    update_personal_information_by_user_id,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/personalization", tags=["Personalization"])


async def _load_user(db: AsyncSession, session_user: User) -> User:
    # the session only vouches for the email; the row may have been removed since
    users = await get_user(db, session_user.email)
    if not users:
        raise HTTPException(status_code=404, detail="User not found")
    return users[0]


@router.get("")
async def get_personalization(
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await _load_user(db, current)

    try:
        records = await get_all_personalizations_by_user_id(db, user.id)
    except ChatSDKError as exc:
        logger.error("Error getting personalizations: %s", exc.cause)
        raise HTTPException(status_code=500, detail="Failed to get personalization")

    if not records:
        raise HTTPException(status_code=404, detail="Personalization data not found")

    record = records[0]
    return {
        "success": True,
        "personalization": {**(record.information or {}), "bio": record.bio},
    }


@router.post("/bio")
async def post_bio(
    body: BioUpdate,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await _load_user(db, current)

    try:
        await update_bio_by_user_id(db, user_id=user.id, bio=body.bio)
    except ChatSDKError as exc:
        logger.error("Error posting user bio: %s", exc.cause)
        raise HTTPException(status_code=500, detail="Failed to post user bio")

    return {"success": True}


@router.patch("/personal-information")
async def patch_personal_information(
    updates: PersonalInformation,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await _load_user(db, current)

    try:
        records = await get_all_personalizations_by_user_id(db, user.id)
        existing = (records[0].information if records else None) or {}
        merged = {**existing, **updates.model_dump(mode="json", exclude_unset=True)}

        await update_personal_information_by_user_id(
            db, user_id=user.id, personal_information=merged
        )
    except ChatSDKError as exc:
        logger.error("Error patching personal information: %s", exc.cause)
        raise HTTPException(status_code=500, detail="Failed to patch personal information")

    return {"success": True}
