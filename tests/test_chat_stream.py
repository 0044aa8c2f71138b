import uuid

import pytest
from langchain_core.language_models.fake_chat_models import (
    FakeListChatModel,
    FakeMessagesListChatModel,
)
from langchain_core.messages import AIMessage, HumanMessage
from langchain_core.tools import tool

from graphs.chat_graph import build_chat_graph
from services import chat_stream
from services.chat_stream import stream_chat_turn
from services.ui_stream import UIMessageStreamWriter


class ToolCallingFake(FakeMessagesListChatModel):
    def bind_tools(self, tools, **kwargs):
        return self


@tool
def lookup_forecast(city: str) -> str:
    """Forecast for a city."""
    return f"sunny in {city}"


@tool
def load_document(id: str) -> str:
    """Load a stored document."""
    return str(uuid.UUID(id))


@pytest.fixture(autouse=True)
def no_catalog(monkeypatch):
    async def missing_catalog():
        return None

    monkeypatch.setattr(chat_stream, "get_tokenlens_catalog", missing_catalog)


async def _run(graph, reasoning=False, model_id="openai/gpt-4o"):
    writer = UIMessageStreamWriter("msg")
    result = await stream_chat_turn(
        writer,
        graph,
        messages=[HumanMessage(content="hi")],
        model_id=model_id,
        reasoning=reasoning,
        delay_ms=0,
    )
    writer.close()
    chunks = [c async for c in writer.chunks()]
    return writer, chunks, result


def _text(chunks, kind):
    return "".join(c["delta"] for c in chunks if c["type"] == f"{kind}-delta")


async def test_tool_turn_chunks_and_usage():
    llm = ToolCallingFake(responses=[
        AIMessage(
            id="ai-1",
            content="",
            tool_calls=[{"name": "lookup_forecast", "args": {"city": "Paris"}, "id": "call-1"}],
            usage_metadata={"input_tokens": 10, "output_tokens": 4, "total_tokens": 14},
        ),
        AIMessage(
            id="ai-2",
            content="It is sunny in Paris",
            usage_metadata={"input_tokens": 20, "output_tokens": 6, "total_tokens": 26},
        ),
    ])
    graph = build_chat_graph(llm, "system", [lookup_forecast])

    writer, chunks, result = await _run(graph)

    types = [c["type"] for c in chunks]
    assert types[:4] == ["start-step", "tool-input-available", "finish-step", "tool-output-available"]
    assert types[4] == "start-step"
    assert types[-2:] == ["finish-step", "data-usage"]
    assert types.count("tool-output-available") == 1

    assert chunks[1]["toolName"] == "lookup_forecast"
    assert chunks[1]["input"] == {"city": "Paris"}
    assert chunks[3] == {"type": "tool-output-available", "toolCallId": "call-1", "output": "sunny in Paris"}
    assert _text(chunks, "text") == "It is sunny in Paris"

    assert result["inputTokens"] == 30
    assert result["outputTokens"] == 10
    assert result["totalTokens"] == 44
    assert result["modelId"] == "openai/gpt-4o"
    assert chunks[-1]["data"] == result

    tool_part = next(p for p in writer.parts if p["type"] == "tool-lookup_forecast")
    assert tool_part["state"] == "output-available"


async def test_think_tags_become_reasoning():
    llm = FakeListChatModel(responses=["<think>let me see</think>Hello there friend"])
    graph = build_chat_graph(llm, "system")

    writer, chunks, result = await _run(graph, reasoning=True, model_id="openai/gpt-oss-20b")

    assert _text(chunks, "reasoning") == "let me see"
    assert _text(chunks, "text") == "Hello there friend"

    types = [c["type"] for c in chunks]
    assert types.index("reasoning-end") < types.index("text-start")
    assert result == {"modelId": "openai/gpt-oss-20b"}
    assert [p["type"] for p in writer.parts] == ["step-start", "reasoning", "text", "data-usage"]


async def test_tags_are_plain_text_for_non_reasoning_models():
    llm = FakeListChatModel(responses=["<think>x</think>y"])
    graph = build_chat_graph(llm, "system")

    _, chunks, _ = await _run(graph, reasoning=False)

    assert _text(chunks, "text") == "<think>x</think>y"
    assert not any(c["type"].startswith("reasoning") for c in chunks)


async def test_raising_tool_reports_output_error_and_turn_continues():
    llm = ToolCallingFake(responses=[
        AIMessage(
            id="ai-1",
            content="",
            tool_calls=[{"name": "load_document", "args": {"id": "not-a-uuid"}, "id": "call-1"}],
        ),
        AIMessage(id="ai-2", content="That document id looks wrong"),
    ])
    graph = build_chat_graph(llm, "system", [load_document])

    writer, chunks, _ = await _run(graph)

    types = [c["type"] for c in chunks]
    assert "error" not in types
    assert types.count("start-step") == 2

    error = next(c for c in chunks if c["type"] == "tool-output-error")
    assert error["toolCallId"] == "call-1"
    assert "badly formed hexadecimal UUID string" in error["errorText"]
    assert _text(chunks, "text") == "That document id looks wrong"

    tool_part = next(p for p in writer.parts if p["type"] == "tool-load_document")
    assert tool_part["state"] == "output-error"
