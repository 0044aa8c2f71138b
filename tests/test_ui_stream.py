import pytest

from services.ui_stream import (
    SSE_DONE,
    ThinkTagExtractor,
    UIMessageStreamWriter,
    WordChunker,
    create_ui_message_stream,
    json_to_sse,
    to_sse,
)


def test_word_chunker_releases_whole_words():
    chunker = WordChunker()
    assert chunker.push("Hel") == []
    assert chunker.push("lo wor") == ["Hello "]
    assert chunker.push("ld  and more") == ["world  ", "and "]
    assert chunker.flush() == "more"
    assert chunker.flush() == ""


def test_think_extractor_handles_split_tags():
    extractor = ThinkTagExtractor()
    segments = []
    for piece in ["<thi", "nk>plan", " it</th", "ink>Answer", "<", "b>"]:
        segments += extractor.feed(piece)
    segments += extractor.flush()

    reasoning = "".join(t for kind, t in segments if kind == "reasoning")
    text = "".join(t for kind, t in segments if kind == "text")
    assert reasoning == "plan it"
    assert text == "Answer<b>"
    assert not extractor.in_reasoning


def test_think_extractor_passes_plain_text_through():
    extractor = ThinkTagExtractor()
    assert extractor.feed("no tags here") == [("text", "no tags here")]


def test_writer_folds_chunks_into_message_parts():
    writer = UIMessageStreamWriter("msg-1")
    for chunk in [
        {"type": "start-step"},
        {"type": "reasoning-start", "id": "r"},
        {"type": "reasoning-delta", "id": "r", "delta": "thinking"},
        {"type": "reasoning-end", "id": "r"},
        {"type": "text-start", "id": "t"},
        {"type": "text-delta", "id": "t", "delta": "Hi "},
        {"type": "text-delta", "id": "t", "delta": "there"},
        {"type": "text-end", "id": "t"},
        {"type": "tool-input-available", "toolCallId": "c1", "toolName": "get_weather",
         "input": {"latitude": 1, "longitude": 2}},
        {"type": "tool-output-available", "toolCallId": "c1", "output": {"temp": 20}},
        {"type": "data-kind", "data": "text", "transient": True},
        {"type": "data-usage", "data": {"totalTokens": 3}},
    ]:
        writer.write(chunk)

    assert writer.message() == {
        "id": "msg-1",
        "role": "assistant",
        "parts": [
            {"type": "step-start"},
            {"type": "reasoning", "text": "thinking", "state": "done"},
            {"type": "text", "text": "Hi there", "state": "done"},
            {
                "type": "tool-get_weather",
                "toolCallId": "c1",
                "state": "output-available",
                "input": {"latitude": 1, "longitude": 2},
                "output": {"temp": 20},
            },
            {"type": "data-usage", "data": {"totalTokens": 3}},
        ],
    }


def test_writer_replaces_data_parts_with_same_id():
    writer = UIMessageStreamWriter("m")
    writer.write({"type": "data-status", "id": "s", "data": "loading"})
    writer.write({"type": "data-status", "id": "s", "data": "done"})
    assert writer.parts == [{"type": "data-status", "id": "s", "data": "done"}]


def test_writer_records_tool_errors():
    writer = UIMessageStreamWriter("m")
    writer.write({"type": "tool-input-available", "toolCallId": "c", "toolName": "x", "input": {}})
    writer.write({"type": "tool-output-error", "toolCallId": "c", "errorText": "boom"})
    assert writer.parts[0]["state"] == "output-error"
    assert writer.parts[0]["errorText"] == "boom"


async def test_stream_brackets_chunks_and_calls_on_finish():
    finished = []

    async def execute(writer):
        writer.write({"type": "text-start", "id": "t"})
        writer.write({"type": "text-delta", "id": "t", "delta": "ok"})
        writer.write({"type": "text-end", "id": "t"})

    async def on_finish(messages):
        finished.extend(messages)

    chunks = [
        c async for c in create_ui_message_stream(
            execute=execute, on_finish=on_finish, generate_id=lambda: "fixed"
        )
    ]

    assert chunks[0] == {"type": "start", "messageId": "fixed"}
    assert chunks[-1] == {"type": "finish"}
    assert [c["type"] for c in chunks[1:-1]] == ["text-start", "text-delta", "text-end"]
    assert finished == [
        {"id": "fixed", "role": "assistant", "parts": [{"type": "text", "text": "ok", "state": "done"}]}
    ]


async def test_stream_turns_failures_into_error_chunk():
    async def execute(writer):
        writer.write({"type": "start-step"})
        raise RuntimeError("provider down")

    chunks = [
        c async for c in create_ui_message_stream(
            execute=execute, on_error=lambda exc: "Oops, an error occurred!"
        )
    ]

    assert {"type": "error", "errorText": "Oops, an error occurred!"} in chunks
    assert chunks[-1] == {"type": "finish"}


async def test_sse_framing():
    async def source():
        yield {"type": "start"}

    frames = [f async for f in to_sse(source())]
    assert frames == [json_to_sse({"type": "start"}), SSE_DONE]
    assert frames[0] == 'data: {"type": "start"}\n\n'
    assert SSE_DONE == "data: [DONE]\n\n"
