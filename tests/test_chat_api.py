from datetime import timedelta
import asyncio
import json
import uuid

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from api.routes import chat as chat_routes
from db.database import AsyncSessionLocal
from db.models import utcnow
from db.queries import (
    create_stream_id,
    get_chat_by_id,
    get_messages_by_chat_id,
    save_chat,
    save_messages,
    update_chat_last_context_by_id,
)
from services import chat_stream
from services.prompts import analyze_attachment_prompt


GPT_OSS = "openai/gpt-oss-20b"


class ScriptedModel(FakeListChatModel):
    """Answers from a script and never calls the tools it is given."""

    def bind_tools(self, tools, **kwargs):
        return self


@pytest.fixture(autouse=True)
def offline_helpers(monkeypatch):
    async def title(message):
        return "Greeting"

    async def no_catalog():
        return None

    monkeypatch.setattr(chat_routes, "generate_title_from_user_message", title)
    monkeypatch.setattr(chat_stream, "get_tokenlens_catalog", no_catalog)


@pytest.fixture
def reply(monkeypatch):
    def use(model):
        monkeypatch.setattr(chat_routes, "get_language_model", lambda model_id: model)

    return use


def _body(chat_id=None, model=GPT_OSS, parts=None):
    return {
        "id": str(chat_id or uuid.uuid4()),
        "message": {
            "id": str(uuid.uuid4()),
            "role": "user",
            "parts": parts or [{"type": "text", "text": "Hi"}],
        },
        "selectedChatModel": model,
        "selectedVisibilityType": "private",
    }


def _chunks(response):
    frames = [f for f in response.text.split("\n\n") if f]
    assert frames[-1] == "data: [DONE]"
    return [json.loads(f[len("data: "):]) for f in frames[:-1]]


def _text(chunks, kind):
    return "".join(c["delta"] for c in chunks if c["type"] == f"{kind}-delta")


async def _chat_with_messages(user, count):
    async with AsyncSessionLocal() as s:
        chat = await save_chat(s, id=uuid.uuid4(), user_id=user.id, title="t", visibility="private")
        await save_messages(s, [
            {
                "id": uuid.uuid4(),
                "chat_id": chat.id,
                "role": "user",
                "parts": [{"type": "text", "text": "hi"}],
                "attachments": [],
                "created_at": utcnow(),
            }
            for _ in range(count)
        ])
        return chat.id


async def test_streams_reply_and_persists_turn(client, headers, reply):
    reply(ScriptedModel(responses=["<think>hmm</think>Hello there friend"]))
    body = _body()

    response = await client.post("/api/chat", json=body, headers=headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["x-vercel-ai-ui-message-stream"] == "v1"
    assert response.cookies.get("chat-model") == GPT_OSS

    chunks = _chunks(response)
    assert chunks[0]["type"] == "start"
    assert chunks[-1] == {"type": "finish"}
    assert _text(chunks, "reasoning") == "hmm"
    assert _text(chunks, "text") == "Hello there friend"
    assert {"type": "data-usage", "data": {"modelId": GPT_OSS}} in chunks

    chat_id = uuid.UUID(body["id"])
    async with AsyncSessionLocal() as s:
        chat = await get_chat_by_id(s, chat_id)
        messages = await get_messages_by_chat_id(s, chat_id)

    assert chat.title == "Greeting"
    assert chat.last_context == {"modelId": GPT_OSS}
    assert [m.role for m in messages] == ["user", "assistant"]
    assert str(messages[1].id) == chunks[0]["messageId"]
    assert [p["type"] for p in messages[1].parts] == ["step-start", "reasoning", "text", "data-usage"]


async def test_model_failure_becomes_error_chunk(client, headers, reply):
    reply(ScriptedModel(responses=["never"], error_on_chunk_number=0))

    response = await client.post("/api/chat", json=_body(), headers=headers)

    assert response.status_code == 200
    assert {"type": "error", "errorText": "Oops, an error occurred!"} in _chunks(response)


async def test_rejects_malformed_body(client, headers):
    response = await client.post("/api/chat", json={"id": "nope"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "bad_request:api"

    unknown_model = await client.post("/api/chat", json=_body(model="acme/nope"), headers=headers)
    assert unknown_model.status_code == 400


async def test_requires_login(client):
    response = await client.post("/api/chat", json=_body())
    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized:chat"


async def test_incompatible_attachment(client, headers):
    parts = [
        {"type": "text", "text": "what is this"},
        {"type": "file", "mediaType": "image/png", "name": "a.png", "url": "https://files.test/a.png"},
    ]

    response = await client.post(
        "/api/chat", json=_body(model="deepseek/deepseek-r1", parts=parts), headers=headers
    )

    assert response.status_code == 400
    assert response.json() == {
        "error": '"a.png" is not compatible with DeepSeek r1. This model does not support image files.',
        "incompatibleFiles": [{
            "fileName": "a.png",
            "mediaType": "image/png",
            "reason": "This model does not support image files",
            "modelName": "DeepSeek r1",
        }],
    }
    assert response.cookies.get("chat-model") == "deepseek/deepseek-r1"


async def test_plan_limits(client, make_user, auth_for):
    free = await make_user(email="free@example.com", type="free")

    locked = await client.post("/api/chat", json=_body(model="openai/gpt-4o"), headers=auth_for(free))
    assert locked.status_code == 403
    assert locked.json()["code"] == "forbidden:model"
    assert locked.cookies.get("chat-model") == "openai/gpt-4o"

    await _chat_with_messages(free, 11)
    limited = await client.post("/api/chat", json=_body(), headers=auth_for(free))
    assert limited.status_code == 429
    assert limited.json()["code"] == "rate_limit:chat"
    assert limited.cookies.get("chat-model") == GPT_OSS


async def test_cannot_post_into_foreign_chat(client, headers, make_user):
    other = await make_user(email="other@example.com")
    chat_id = await _chat_with_messages(other, 0)

    response = await client.post("/api/chat", json=_body(chat_id=chat_id), headers=headers)

    assert response.status_code == 403
    assert response.json()["code"] == "forbidden:chat"
    assert response.cookies.get("chat-model") == GPT_OSS


async def test_gateway_card_error(client, headers, monkeypatch):
    def no_card(model_id):
        raise RuntimeError("AI Gateway requires a valid credit card on file to service requests")

    monkeypatch.setattr(chat_routes, "get_language_model", no_card)

    response = await client.post("/api/chat", json=_body(), headers=headers)

    assert response.status_code == 400
    assert response.json()["code"] == "bad_request:activate_gateway"


async def test_unexpected_failure_is_offline(client, headers, monkeypatch):
    def broken(model_id):
        raise RuntimeError("socket closed")

    monkeypatch.setattr(chat_routes, "get_language_model", broken)

    response = await client.post("/api/chat", json=_body(), headers=headers)

    assert response.status_code == 503
    assert response.json()["code"] == "offline:chat"


async def test_get_chat(client, user, headers, make_user, auth_for):
    chat_id = await _chat_with_messages(user, 2)
    async with AsyncSessionLocal() as s:
        await update_chat_last_context_by_id(s, chat_id=chat_id, context={"modelId": "openai/gpt-4o"})

    own = await client.get(f"/api/chat/{chat_id}", headers={**headers, "Cookie": "chat-model=x"})
    body = own.json()
    assert body["chat"]["id"] == str(chat_id)
    assert len(body["messages"]) == 2
    assert body["isReadonly"] is False
    assert body["initialChatModel"] == "openai/gpt-4o"

    stranger = auth_for(await make_user(email="stranger@example.com"))
    hidden = await client.get(f"/api/chat/{chat_id}", headers=stranger)
    assert hidden.status_code == 404

    await client.patch(f"/api/chat/{chat_id}/visibility", json={"visibility": "public"}, headers=headers)
    shared = await client.get(f"/api/chat/{chat_id}", headers=stranger)
    assert shared.json()["isReadonly"] is True

    anonymous = await client.get(f"/api/chat/{chat_id}")
    assert anonymous.status_code == 401
    missing = await client.get(f"/api/chat/{uuid.uuid4()}", headers=headers)
    assert missing.status_code == 404


async def test_visibility_requires_owner(client, user, make_user, auth_for):
    chat_id = await _chat_with_messages(user, 0)
    stranger = auth_for(await make_user(email="stranger@example.com"))

    response = await client.patch(
        f"/api/chat/{chat_id}/visibility", json={"visibility": "public"}, headers=stranger
    )

    assert response.status_code == 403


async def test_delete_chat(client, user, headers, make_user, auth_for):
    chat_id = await _chat_with_messages(user, 1)
    stranger = auth_for(await make_user(email="stranger@example.com"))

    foreign = await client.delete("/api/chat", params={"id": str(chat_id)}, headers=stranger)
    assert foreign.status_code == 403

    deleted = await client.delete("/api/chat", params={"id": str(chat_id)}, headers=headers)
    assert deleted.status_code == 200
    assert deleted.json()["id"] == str(chat_id)

    gone = await client.get(f"/api/chat/{chat_id}", headers=headers)
    assert gone.status_code == 404


async def test_resume_without_redis_is_no_content(client, user, headers):
    chat_id = await _chat_with_messages(user, 0)
    response = await client.get(f"/api/chat/{chat_id}/stream", headers=headers)
    assert response.status_code == 204


async def test_attachment_only_message_gets_analysis_prompt_for_model_only(client, headers, reply, monkeypatch):
    reply(ScriptedModel(responses=["A cat."]))
    seen = []
    convert = chat_routes.convert_to_model_messages

    def spy(messages):
        seen.append(messages)
        return convert(messages)

    monkeypatch.setattr(chat_routes, "convert_to_model_messages", spy)
    image = {"type": "file", "mediaType": "image/png", "name": "cat.png", "url": "https://files.test"}
    body = _body(model="openai/gpt-4o", parts=[image])

    response = await client.post("/api/chat", json=body, headers=headers)
    assert response.status_code == 200
    _chunks(response)

    assert seen[0][-1]["parts"] == [image, {"type": "text", "text": analyze_attachment_prompt}]

    async with AsyncSessionLocal() as s:
        messages = await get_messages_by_chat_id(s, uuid.UUID(body["id"]))
    assert messages[0].parts == [image]


async def test_attachment_count_and_url_checks(client, headers):
    image = {"type": "file", "mediaType": "image/png", "name": "a.png", "url": "https://files.test/a.png"}

    too_many = await client.post(
        "/api/chat", json=_body(model="openai/gpt-4o", parts=[image] * 9), headers=headers
    )
    assert too_many.status_code == 400
    assert too_many.json()["code"] == "bad_request:api"

    not_a_url = await client.post(
        "/api/chat",
        json=_body(model="openai/gpt-4o", parts=[{**image, "url": "not a url"}]),
        headers=headers,
    )
    assert not_a_url.status_code == 400


@pytest.fixture
def resumable(monkeypatch, stream_context):
    monkeypatch.setattr(chat_routes, "get_stream_context", lambda: stream_context)
    return stream_context


@pytest.fixture
def clock(monkeypatch):
    def freeze(at):
        monkeypatch.setattr(chat_routes, "utcnow", lambda: at)

    return freeze


async def _finished_turn(user, resumable, replied_at):
    chat_id = await _chat_with_messages(user, 0)
    message_id = uuid.uuid4()
    stream_id = uuid.uuid4()

    async with AsyncSessionLocal() as s:
        await save_messages(s, [{
            "id": message_id,
            "chat_id": chat_id,
            "role": "assistant",
            "parts": [{"type": "text", "text": "Done."}],
            "attachments": [],
            "created_at": replied_at,
        }])
        await create_stream_id(s, stream_id=stream_id, chat_id=chat_id)

    async def frames():
        yield 'data: {"type":"start"}\n\n'

    follower = await resumable.resumable_stream(str(stream_id), frames)
    [f async for f in follower]
    return chat_id, message_id


async def test_resume_of_finished_turn_appends_recent_reply(client, user, headers, resumable, clock):
    replied_at = utcnow()
    chat_id, message_id = await _finished_turn(user, resumable, replied_at)

    clock(replied_at + timedelta(seconds=10))
    response = await client.get(f"/api/chat/{chat_id}/stream", headers=headers)

    assert response.status_code == 200
    appended = [c for c in _chunks(response) if c["type"] == "data-appendMessage"]
    assert len(appended) == 1
    assert appended[0]["transient"] is True

    restored = json.loads(appended[0]["data"])
    assert restored["id"] == str(message_id)
    assert restored["parts"] == [{"type": "text", "text": "Done."}]


async def test_resume_after_window_is_empty(client, user, headers, resumable, clock):
    replied_at = utcnow()
    chat_id, _ = await _finished_turn(user, resumable, replied_at)

    clock(replied_at + timedelta(seconds=20))
    response = await client.get(f"/api/chat/{chat_id}/stream", headers=headers)

    assert response.status_code == 200
    assert not any(c["type"] == "data-appendMessage" for c in _chunks(response))


async def test_resume_follows_live_stream(client, user, headers, resumable, redis_streams):
    chat_id = await _chat_with_messages(user, 0)
    stream_id = uuid.uuid4()
    async with AsyncSessionLocal() as s:
        await create_stream_id(s, stream_id=stream_id, chat_id=chat_id)

    key = f"resumable-stream:{stream_id}"
    await redis_streams.xadd(key, {"data": 'data: {"type":"start"}\n\n'})
    await redis_streams.xadd(key, {"data": 'data: {"type":"text-start","id":"t1"}\n\n'})

    async def finish_once_followed():
        while not redis_streams.reads:
            await asyncio.sleep(0.01)
        await redis_streams.xadd(key, {"data": "data: [DONE]\n\n"})
        await redis_streams.xadd(key, {"done": "1"})

    producer = asyncio.create_task(finish_once_followed())
    response = await client.get(f"/api/chat/{chat_id}/stream", headers=headers)
    await producer

    assert response.status_code == 200
    assert [c["type"] for c in _chunks(response)] == ["start", "text-start"]


async def test_resume_of_unrecorded_stream_is_empty(client, user, headers, resumable):
    chat_id = await _chat_with_messages(user, 0)
    async with AsyncSessionLocal() as s:
        await create_stream_id(s, stream_id=uuid.uuid4(), chat_id=chat_id)

    response = await client.get(f"/api/chat/{chat_id}/stream", headers=headers)

    assert response.status_code == 200
    assert not any(c["type"] == "data-appendMessage" for c in _chunks(response))

    no_streams = await client.get(
        f"/api/chat/{await _chat_with_messages(user, 0)}/stream", headers=headers
    )
    assert no_streams.status_code == 404
