from datetime import datetime, timezone
from typing import Optional
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_optional_user
from api.schemas.chat import DocumentOut, DocumentRequest, SuggestionOut
from core.database import get_db
from core.errors import ChatSDKError
from db.models import User
from db.queries import (
    delete_documents_by_id_after_timestamp,
    get_documents_by_id,
    get_suggestions_by_document_id,
    save_document,
)


router = APIRouter(prefix="/api", tags=["Documents"])


@router.get("/document")
async def get_document(
    id: Optional[uuid.UUID] = None,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if id is None:
        raise ChatSDKError("bad_request:api", "Parameter id is missing")

    if user is None:
        raise ChatSDKError("unauthorized:document")

    documents = await get_documents_by_id(db, id)
    if not documents:
        raise ChatSDKError("not_found:document")
    if documents[0].user_id != user.id:
        raise ChatSDKError("forbidden:document")

    return [DocumentOut.model_validate(d).to_json() for d in documents]


@router.post("/document")
async def post_document(
    body: DocumentRequest,
    id: Optional[uuid.UUID] = None,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if id is None:
        raise ChatSDKError("bad_request:api", "Parameter id is required.")

    if user is None:
        raise ChatSDKError("unauthorized:document")

    # every save is a new version of the same document id
    documents = await get_documents_by_id(db, id)
    if documents and documents[0].user_id != user.id:
        raise ChatSDKError("forbidden:document")

    document = await save_document(
        db, id=id, title=body.title, kind=body.kind, content=body.content, user_id=user.id
    )
    return DocumentOut.model_validate(document).to_json()


@router.delete("/document")
async def delete_document_versions(
    id: Optional[uuid.UUID] = None,
    timestamp: Optional[datetime] = None,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if id is None:
        raise ChatSDKError("bad_request:api", "Parameter id is required.")
    if timestamp is None:
        raise ChatSDKError("bad_request:api", "Parameter timestamp is required.")

    if user is None:
        raise ChatSDKError("unauthorized:document")

    documents = await get_documents_by_id(db, id)
    if not documents:
        raise ChatSDKError("not_found:document")
    if documents[0].user_id != user.id:
        raise ChatSDKError("forbidden:document")

    # stored timestamps are naive UTC
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc).replace(tzinfo=None)

    deleted = await delete_documents_by_id_after_timestamp(db, id=id, timestamp=timestamp)
    return [DocumentOut.model_validate(d).to_json() for d in deleted]


@router.get("/suggestions")
async def get_suggestions(
    documentId: Optional[uuid.UUID] = None,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if documentId is None:
        raise ChatSDKError("bad_request:api", "Parameter documentId is required.")

    if user is None:
        raise ChatSDKError("unauthorized:suggestions")

    suggestions = await get_suggestions_by_document_id(db, document_id=documentId)
    if not suggestions:
        return []
    if suggestions[0].user_id != user.id:
        raise ChatSDKError("forbidden:api")

    return [SuggestionOut.model_validate(s).to_json() for s in suggestions]
