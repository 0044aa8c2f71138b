# db/queries.py
"""Database access for chats, messages, documents and personalization.

Every function takes the caller's ``AsyncSession`` and commits its own writes.
Driver failures surface as ``ChatSDKError("bad_request:database", ...)`` so the
details end up in the log and not in the response.
"""
from datetime import datetime, timedelta
from typing import List, Optional, Sequence
import uuid

from sqlalchemy import select, delete, update, func, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ChatSDKError
from core.security import hash_password
from db.models import (
    User, Chat, Message, Vote, Document, Suggestion, Stream, Personalization, utcnow,
)


# ---------- users ----------
async def get_user(db: AsyncSession, email: str) -> List[User]:
    try:
        result = await db.execute(select(User).where(User.email == email))
        return list(result.scalars().all())
    except SQLAlchemyError as exc:
        raise ChatSDKError("bad_request:database", "Failed to get user by email") from exc


async def get_user_by_id(db: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
    try:
        return await db.get(User, user_id)
    except SQLAlchemyError as exc:
        raise ChatSDKError("bad_request:database", "Failed to get user by id") from exc


async def create_user(
    db: AsyncSession,
    *,
    email: str,
    password: Optional[str],
    name: str,
    profile_url: Optional[str] = None,
    type: Optional[str] = None,
) -> User:
    new_user = User(
        email=email,
        password=hash_password(password) if password else None,
        name=name,
        profile_url=profile_url,
        type=type or "free",
    )
    try:
        db.add(new_user)
        await db.commit()
        await db.refresh(new_user)
        return new_user
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ChatSDKError("bad_request:database", "Failed to create user") from exc


# ---------- chats ----------
async def save_chat(
    db: AsyncSession,
    *,
    id: uuid.UUID,
    user_id: uuid.UUID,
    title: str,
    visibility: str,
) -> Chat:
    now = utcnow()
    chat = Chat(
        id=id,
        user_id=user_id,
        title=title,
        visibility=visibility,
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(chat)
        await db.commit()
        return chat
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ChatSDKError("bad_request:database", "Failed to save chat") from exc


async def delete_chat_by_id(db: AsyncSession, id: uuid.UUID) -> Optional[Chat]:
    try:
        chat = await db.get(Chat, id)
        await db.execute(delete(Vote).where(Vote.chat_id == id))
        await db.execute(delete(Message).where(Message.chat_id == id))
        await db.execute(delete(Stream).where(Stream.chat_id == id))
        await db.execute(delete(Chat).where(Chat.id == id))
        await db.commit()
        return chat
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ChatSDKError("bad_request:database", "Failed to delete chat by id") from exc


async def get_chats_by_user_id(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    limit: int,
    starting_after: Optional[uuid.UUID] = None,
    ending_before: Optional[uuid.UUID] = None,
) -> tuple[List[Chat], bool]:
    """Return one page of the user's chats, newest first, plus a ``has_more`` flag."""
    extended_limit = limit + 1

    async def page(where=None) -> List[Chat]:
        stmt = select(Chat).where(Chat.user_id == user_id)
        if where is not None:
            stmt = stmt.where(where)
        stmt = stmt.order_by(Chat.created_at.desc()).limit(extended_limit)
        return list((await db.execute(stmt)).scalars().all())

    try:
        if starting_after:
            anchor = await db.get(Chat, starting_after)
            if anchor is None:
                raise ChatSDKError(
                    "not_found:database", f"Chat with id {starting_after} not found"
                )
            chats = await page(Chat.created_at > anchor.created_at)
        elif ending_before:
            anchor = await db.get(Chat, ending_before)
            if anchor is None:
                raise ChatSDKError(
                    "not_found:database", f"Chat with id {ending_before} not found"
                )
            chats = await page(Chat.created_at < anchor.created_at)
        else:
            chats = await page()
    except SQLAlchemyError as exc:
        raise ChatSDKError("bad_request:database", "Failed to get chats by user id") from exc

    has_more = len(chats) > limit
    return (chats[:limit] if has_more else chats), has_more


async def get_chat_by_id(db: AsyncSession, id: uuid.UUID) -> Optional[Chat]:
    try:
        return await db.get(Chat, id)
    except SQLAlchemyError as exc:
        raise ChatSDKError("bad_request:database", "Failed to get chat by id") from exc


async def update_chat_visibility_by_id(
    db: AsyncSession, *, chat_id: uuid.UUID, visibility: str
) -> None:
    try:
        await db.execute(
            update(Chat).where(Chat.id == chat_id).values(visibility=visibility)
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ChatSDKError("bad_request:database", "Failed to update chat visibility by id") from exc


async def update_chat_last_context_by_id(
    db: AsyncSession, *, chat_id: uuid.UUID, context: dict
) -> None:
    try:
        await db.execute(
            update(Chat).where(Chat.id == chat_id).values(last_context=context)
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ChatSDKError("bad_request:database", "Failed to update chat last context") from exc


# ---------- messages ----------
async def save_messages(db: AsyncSession, messages: Sequence[dict]) -> None:
    """Insert messages given as dicts with ``id, chat_id, role, parts, attachments, created_at``."""
    try:
        db.add_all([
            Message(
                id=m["id"],
                chat_id=m["chat_id"],
                role=m["role"],
                parts=m["parts"],
                attachments=m.get("attachments") or [],
                created_at=m.get("created_at") or utcnow(),
            )
            for m in messages
        ])
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ChatSDKError("bad_request:database", "Failed to save messages") from exc


async def get_messages_by_chat_id(db: AsyncSession, id: uuid.UUID) -> List[Message]:
    try:
        stmt = (
            select(Message)
            .where(Message.chat_id == id)
            .order_by(Message.created_at.asc())
        )
        return list((await db.execute(stmt)).scalars().all())
    except SQLAlchemyError as exc:
        raise ChatSDKError("bad_request:database", "Failed to get messages by chat id") from exc


async def get_message_by_id(db: AsyncSession, id: uuid.UUID) -> Optional[Message]:
    try:
        return await db.get(Message, id)
    except SQLAlchemyError as exc:
        raise ChatSDKError("bad_request:database", "Failed to get message by id") from exc


async def delete_messages_by_chat_id_after_timestamp(
    db: AsyncSession, *, chat_id: uuid.UUID, timestamp: datetime
) -> None:
    try:
        ids = (
            await db.execute(
                select(Message.id).where(
                    Message.chat_id == chat_id, Message.created_at >= timestamp
                )
            )
        ).scalars().all()
        if ids:
            await db.execute(
                delete(Vote).where(Vote.chat_id == chat_id, Vote.message_id.in_(ids))
            )
            await db.execute(
                delete(Message).where(Message.chat_id == chat_id, Message.id.in_(ids))
            )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ChatSDKError(
            "bad_request:database", "Failed to delete messages by chat id after timestamp"
        ) from exc


async def get_message_count_by_user_id(
    db: AsyncSession, *, id: uuid.UUID, difference_in_hours: int
) -> int:
    """Count user-role messages the user sent in the last ``difference_in_hours``."""
    since = utcnow() - timedelta(hours=difference_in_hours)
    try:
        stmt = (
            select(func.count(Message.id))
            .join(Chat, Message.chat_id == Chat.id)
            .where(
                Chat.user_id == id,
                Message.created_at >= since,
                Message.role == "user",
            )
        )
        return int((await db.execute(stmt)).scalar_one() or 0)
    except SQLAlchemyError as exc:
        raise ChatSDKError(
            "bad_request:database", "Failed to get message count by user id"
        ) from exc


# ---------- votes ----------
async def vote_message(
    db: AsyncSession, *, chat_id: uuid.UUID, message_id: uuid.UUID, type: str
) -> None:
    try:
        existing = await db.get(Vote, (chat_id, message_id))
        if existing:
            existing.is_upvoted = type == "up"
        else:
            db.add(Vote(chat_id=chat_id, message_id=message_id, is_upvoted=type == "up"))
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ChatSDKError("bad_request:database", "Failed to vote message") from exc


async def get_votes_by_chat_id(db: AsyncSession, id: uuid.UUID) -> List[Vote]:
    try:
        return list((await db.execute(select(Vote).where(Vote.chat_id == id))).scalars().all())
    except SQLAlchemyError as exc:
        raise ChatSDKError("bad_request:database", "Failed to get votes by chat id") from exc


# ---------- documents ----------
async def save_document(
    db: AsyncSession,
    *,
    id: uuid.UUID,
    title: str,
    kind: str,
    content: str,
    user_id: uuid.UUID,
) -> Document:
    document = Document(
        id=id, title=title, kind=kind, content=content, user_id=user_id, created_at=utcnow()
    )
    try:
        db.add(document)
        await db.commit()
        return document
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ChatSDKError("bad_request:database", "Failed to save document") from exc


async def get_documents_by_id(db: AsyncSession, id: uuid.UUID) -> List[Document]:
    try:
        stmt = select(Document).where(Document.id == id).order_by(Document.created_at.asc())
        return list((await db.execute(stmt)).scalars().all())
    except SQLAlchemyError as exc:
        raise ChatSDKError("bad_request:database", "Failed to get documents by id") from exc


async def get_document_by_id(db: AsyncSession, id: uuid.UUID) -> Optional[Document]:
    try:
        stmt = (
            select(Document)
            .where(Document.id == id)
            .order_by(Document.created_at.desc())
            .limit(1)
        )
        return (await db.execute(stmt)).scalars().first()
    except SQLAlchemyError as exc:
        raise ChatSDKError("bad_request:database", "Failed to get document by id") from exc


async def delete_documents_by_id_after_timestamp(
    db: AsyncSession, *, id: uuid.UUID, timestamp: datetime
) -> List[Document]:
    try:
        await db.execute(
            delete(Suggestion).where(
                and_(
                    Suggestion.document_id == id,
                    Suggestion.document_created_at > timestamp,
                )
            )
        )
        doomed = list(
            (
                await db.execute(
                    select(Document).where(Document.id == id, Document.created_at > timestamp)
                )
            ).scalars().all()
        )
        await db.execute(
            delete(Document).where(Document.id == id, Document.created_at > timestamp)
        )
        await db.commit()
        return doomed
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ChatSDKError(
            "bad_request:database", "Failed to delete documents by id after timestamp"
        ) from exc


async def save_suggestions(db: AsyncSession, suggestions: Sequence[Suggestion]) -> None:
    try:
        db.add_all(list(suggestions))
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ChatSDKError("bad_request:database", "Failed to save suggestions") from exc


async def get_suggestions_by_document_id(
    db: AsyncSession, document_id: uuid.UUID
) -> List[Suggestion]:
    try:
        stmt = select(Suggestion).where(Suggestion.document_id == document_id)
        return list((await db.execute(stmt)).scalars().all())
    except SQLAlchemyError as exc:
        raise ChatSDKError(
            "bad_request:database", "Failed to get suggestions by document id"
        ) from exc


# ---------- streams ----------
async def create_stream_id(db: AsyncSession, *, stream_id: uuid.UUID, chat_id: uuid.UUID) -> None:
    try:
        db.add(Stream(id=stream_id, chat_id=chat_id, created_at=utcnow()))
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ChatSDKError("bad_request:database", "Failed to create stream id") from exc


async def get_stream_ids_by_chat_id(db: AsyncSession, chat_id: uuid.UUID) -> List[uuid.UUID]:
    try:
        stmt = (
            select(Stream.id)
            .where(Stream.chat_id == chat_id)
            .order_by(Stream.created_at.asc())
        )
        return list((await db.execute(stmt)).scalars().all())
    except SQLAlchemyError as exc:
        raise ChatSDKError("bad_request:database", "Failed to get stream ids by chat id") from exc


# ---------- personalization ----------
async def get_all_personalizations_by_user_id(
    db: AsyncSession, user_id: uuid.UUID
) -> List[Personalization]:
    try:
        stmt = select(Personalization).where(Personalization.user_id == user_id)
        return list((await db.execute(stmt)).scalars().all())
    except SQLAlchemyError as exc:
        raise ChatSDKError(
            "bad_request:database", "Failed to get personalizations by user id"
        ) from exc


async def _upsert_personalization(db: AsyncSession, user_id: uuid.UUID, **values) -> None:
    existing = (
        await db.execute(select(Personalization).where(Personalization.user_id == user_id))
    ).scalars().first()

    if existing:
        for key, value in values.items():
            setattr(existing, key, value)
    else:
        db.add(Personalization(user_id=user_id, **values))
    await db.commit()


async def update_bio_by_user_id(db: AsyncSession, *, user_id: uuid.UUID, bio: str) -> None:
    try:
        await _upsert_personalization(db, user_id, bio=bio)
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ChatSDKError("bad_request:database", "Failed to update bio") from exc


async def update_personal_information_by_user_id(
    db: AsyncSession, *, user_id: uuid.UUID, personal_information: dict
) -> None:
    try:
        await _upsert_personalization(db, user_id, information=personal_information)
    except SQLAlchemyError as exc:
        await db.rollback()
        raise ChatSDKError(
            "bad_request:database", "Failed to update personal information"
        ) from exc
