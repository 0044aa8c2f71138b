from datetime import timedelta
import json
from typing import Optional
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from api.dependencies import get_optional_user
from api.schemas.chat import ChatOut, FilePart, PostRequestBody, VisibilityUpdate
from core.config import CHAT_MODEL_COOKIE
from core.database import get_db
from core.errors import ChatSDKError
from db.database import AsyncSessionLocal
from db.models import User, utcnow
from db.queries import (
    create_stream_id,
    delete_chat_by_id,
    get_chat_by_id,
    get_message_count_by_user_id,
    get_messages_by_chat_id,
    get_stream_ids_by_chat_id,
    save_chat,
    save_messages,
    update_chat_last_context_by_id,
    update_chat_visibility_by_id,
)
from graphs.chat_graph import build_chat_graph
from services.attachments import (
    convert_to_model_messages,
    convert_to_ui_messages,
    process_ui_messages_with_text_files,
)
from services.chat_model import get_language_model
from services.chat_stream import stream_chat_turn
from services.chat_title import generate_title_from_user_message
from services.entitlements import get_entitlements
from services.file_compatibility import (
    FileAttachment,
    generate_compatibility_error_message,
    validate_file_compatibility,
)
from services.model_catalog import DEFAULT_CHAT_MODEL, get_chat_model
from services.prompts import RequestHints, analyze_attachment_prompt, system_prompt
from services.resumable_stream import get_stream_context, run_in_background
from services.ui_stream import (
    UI_STREAM_HEADERS,
    create_ui_message_stream,
    generate_uuid,
    to_sse,
)
from tools.gather_tools import gather_tools


router = APIRouter(prefix="/api/chat", tags=["Chat"])

STREAM_ERROR_TEXT = "Oops, an error occurred!"
GATEWAY_CARD_ERROR = "AI Gateway requires a valid credit card on file to service requests"
RESUME_WINDOW = timedelta(seconds=15)


def _set_chat_model_cookie(response: Response, model_id: str) -> None:
    response.set_cookie(CHAT_MODEL_COOKIE, model_id, samesite="lax")


def _request_hints(request: Request) -> RequestHints:
    headers = request.headers
    return RequestHints(
        latitude=headers.get("x-vercel-ip-latitude"),
        longitude=headers.get("x-vercel-ip-longitude"),
        city=headers.get("x-vercel-ip-city"),
        country=headers.get("x-vercel-ip-country"),
    )


def _sse_response(frames, status_code: int = 200) -> StreamingResponse:
    return StreamingResponse(
        frames,
        status_code=status_code,
        media_type="text/event-stream",
        headers=UI_STREAM_HEADERS,
    )


async def _empty_stream():
    async def execute(writer):
        return None

    async for frame in to_sse(create_ui_message_stream(execute=execute)):
        yield frame


# ---------- POST /api/chat ----------
@router.post("")
async def post_chat(
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        body = PostRequestBody.model_validate_json(await request.body())
    except (ValidationError, ValueError):
        raise ChatSDKError("bad_request:api")

    try:
        return await _stream_chat(request, body, user, db)
    except ChatSDKError:
        raise
    except Exception as exc:
        if GATEWAY_CARD_ERROR in str(exc):
            raise ChatSDKError("bad_request:activate_gateway")

        logger.exception(
            "Unhandled error in chat API: {} (vercel id {})", exc, request.headers.get("x-vercel-id")
        )
        raise ChatSDKError("offline:chat")


async def _stream_chat(
    request: Request, body: PostRequestBody, user: Optional[User], db: AsyncSession
) -> Response:
    if user is None:
        raise ChatSDKError("unauthorized:chat")

    user_id = user.id
    chat_id = body.id
    model_id = body.selected_chat_model
    chat_model = get_chat_model(model_id)

    # 1. attachments the selected model cannot read
    file_parts = [p for p in body.message.parts if isinstance(p, FilePart)]
    if file_parts:
        incompatible = validate_file_compatibility(
            [FileAttachment(name=p.name, url=str(p.url), mediaType=p.media_type) for p in file_parts],
            model_id,
        )
        if incompatible:
            response = JSONResponse(
                {
                    "error": generate_compatibility_error_message(incompatible),
                    "incompatibleFiles": [e.model_dump(by_alias=True) for e in incompatible],
                },
                status_code=400,
            )
            _set_chat_model_cookie(response, model_id)
            return response

    # 2. plan limits, 3. chat ownership; refusals still remember the selected model
    entitlements = get_entitlements(user.type)
    try:
        if model_id not in entitlements.available_chat_model_ids:
            raise ChatSDKError("forbidden:model")

        message_count = await get_message_count_by_user_id(db, id=user_id, difference_in_hours=24)
        if message_count > entitlements.max_messages_per_day:
            raise ChatSDKError("rate_limit:chat")

        chat = await get_chat_by_id(db, chat_id)
        if chat and chat.user_id != user_id:
            raise ChatSDKError("forbidden:chat")
    except ChatSDKError as exc:
        response = exc.to_response()
        _set_chat_model_cookie(response, model_id)
        return response

    user_message = body.message.ui_message()

    if chat is None:
        title = await generate_title_from_user_message(user_message)
        await save_chat(
            db, id=chat_id, user_id=user_id, title=title, visibility=body.selected_visibility_type
        )

    # 4. history + the new message (the model copy may carry an extra prompt)
    messages_from_db = await get_messages_by_chat_id(db, chat_id)

    has_text = any(p["type"] == "text" for p in user_message["parts"])
    message_for_model = user_message
    if file_parts and not has_text:
        message_for_model = {
            **user_message,
            "parts": [*user_message["parts"], {"type": "text", "text": analyze_attachment_prompt}],
        }

    ui_messages = [*convert_to_ui_messages(messages_from_db), message_for_model]

    await save_messages(db, [{
        "id": body.message.id,
        "chat_id": chat_id,
        "role": "user",
        "parts": user_message["parts"],
        "attachments": [],
        "created_at": utcnow(),
    }])

    stream_id = uuid.uuid4()
    await create_stream_id(db, stream_id=stream_id, chat_id=chat_id)

    try:
        processed = await process_ui_messages_with_text_files(ui_messages)
    except Exception as exc:
        logger.error("Error processing text files: {}", exc)
        processed = ui_messages

    model_messages = convert_to_model_messages(processed)

    # 5. the graph for this turn
    graph = build_chat_graph(
        get_language_model(model_id),
        system_prompt(
            selected_chat_model=model_id,
            request_hints=_request_hints(request),
        ),
        gather_tools(chat_model),
    )

    turn_usage: dict = {}

    async def execute(writer):
        usage = await stream_chat_turn(
            writer,
            graph,
            messages=model_messages,
            model_id=model_id,
            reasoning=chat_model.reasoning,
            config={"configurable": {"writer": writer, "user_id": str(user_id)}},
        )
        turn_usage.update(usage)

    async def on_finish(messages):
        async with AsyncSessionLocal() as session:
            await save_messages(session, [
                {
                    "id": uuid.UUID(m["id"]),
                    "chat_id": chat_id,
                    "role": m["role"],
                    "parts": m["parts"],
                    "attachments": [],
                    "created_at": utcnow(),
                }
                for m in messages
            ])

            if turn_usage:
                try:
                    await update_chat_last_context_by_id(session, chat_id=chat_id, context=turn_usage)
                except ChatSDKError as exc:
                    logger.warning("Unable to persist last usage for chat {}: {}", chat_id, exc.cause)

    def make_stream():
        return to_sse(create_ui_message_stream(
            execute=execute,
            on_finish=on_finish,
            on_error=lambda exc: STREAM_ERROR_TEXT,
            generate_id=generate_uuid,
        ))

    stream_context = get_stream_context()
    if stream_context:
        frames = await stream_context.resumable_stream(str(stream_id), make_stream)
    else:
        frames = run_in_background(make_stream())

    response = _sse_response(frames)
    _set_chat_model_cookie(response, model_id)
    return response


# ---------- DELETE /api/chat?id= ----------
@router.delete("")
async def delete_chat(
    id: Optional[uuid.UUID] = None,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if id is None:
        raise ChatSDKError("bad_request:api")

    if user is None:
        raise ChatSDKError("unauthorized:chat")

    chat = await get_chat_by_id(db, id)
    if chat is None or chat.user_id != user.id:
        raise ChatSDKError("forbidden:chat")

    deleted = await delete_chat_by_id(db, id)
    return ChatOut.model_validate(deleted).to_json()


# ---------- GET /api/chat/{id} ----------
@router.get("/{id}")
async def get_chat(
    id: uuid.UUID,
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    chat = await get_chat_by_id(db, id)
    if chat is None:
        raise ChatSDKError("not_found:chat")

    if user is None:
        raise ChatSDKError("unauthorized:chat")

    if chat.visibility == "private" and user.id != chat.user_id:
        raise ChatSDKError("not_found:chat")

    messages = await get_messages_by_chat_id(db, id)

    initial_chat_model = DEFAULT_CHAT_MODEL
    if request.cookies.get(CHAT_MODEL_COOKIE):
        initial_chat_model = (chat.last_context or {}).get("modelId") or DEFAULT_CHAT_MODEL

    return {
        "chat": ChatOut.model_validate(chat).to_json(),
        "messages": convert_to_ui_messages(messages),
        "isReadonly": user.id != chat.user_id,
        "initialChatModel": initial_chat_model,
    }


# ---------- GET /api/chat/{id}/stream ----------
@router.get("/{id}/stream")
async def resume_chat_stream(
    id: uuid.UUID,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    resume_requested_at = utcnow()

    stream_context = get_stream_context()
    if stream_context is None:
        return Response(status_code=204)

    if user is None:
        raise ChatSDKError("unauthorized:chat")

    chat = await get_chat_by_id(db, id)
    if chat is None:
        raise ChatSDKError("not_found:chat")

    if chat.visibility == "private" and chat.user_id != user.id:
        raise ChatSDKError("forbidden:chat")

    stream_ids = await get_stream_ids_by_chat_id(db, id)
    if not stream_ids:
        raise ChatSDKError("not_found:stream")

    try:
        frames = await stream_context.resume_existing_stream(str(stream_ids[-1]))
    except LookupError:
        return _sse_response(_empty_stream())

    if frames is not None:
        return _sse_response(frames)

    # the producer already finished: hand back the reply if it just landed
    messages = await get_messages_by_chat_id(db, id)
    most_recent = messages[-1] if messages else None

    if (
        most_recent is None
        or most_recent.role != "assistant"
        or resume_requested_at - most_recent.created_at > RESUME_WINDOW
    ):
        return _sse_response(_empty_stream())

    restored = convert_to_ui_messages([most_recent])[0]

    async def execute(writer):
        writer.write({"type": "data-appendMessage", "data": json.dumps(restored), "transient": True})

    return _sse_response(to_sse(create_ui_message_stream(execute=execute)))


# ---------- PATCH /api/chat/{id}/visibility ----------
@router.patch("/{id}/visibility")
async def update_visibility(
    id: uuid.UUID,
    body: VisibilityUpdate,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if user is None:
        raise ChatSDKError("unauthorized:chat")

    chat = await get_chat_by_id(db, id)
    if chat is None:
        raise ChatSDKError("not_found:chat")
    if chat.user_id != user.id:
        raise ChatSDKError("forbidden:chat")

    await update_chat_visibility_by_id(db, chat_id=id, visibility=body.visibility)
    return {"id": str(id), "visibility": body.visibility}
