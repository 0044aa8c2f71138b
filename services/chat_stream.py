# services/chat_stream.py
"""Runs the chat graph for one turn and translates its events into UI stream chunks."""
import asyncio
import json
from typing import Any, Dict, Optional

from langchain_core.messages import ToolMessage
from loguru import logger

from core.config import SMOOTH_STREAM_DELAY_MS
from services.ui_stream import ThinkTagExtractor, UIMessageStreamWriter, WordChunker, generate_uuid
from services.usage import get_tokenlens_catalog, get_usage, merge_usage


def _chunk_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        # providers that stream content blocks
        return "".join(
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        )
    return ""


def _tool_output(content: Any) -> Any:
    if isinstance(content, str):
        try:
            return json.loads(content)
        except ValueError:
            return content
    return content


class _StepStreamer:
    """Text and reasoning parts of one model step, released word by word."""

    def __init__(self, writer: UIMessageStreamWriter, extract_reasoning: bool, delay_ms: int):
        self.writer = writer
        self.extractor = ThinkTagExtractor() if extract_reasoning else None
        self.delay = delay_ms / 1000
        self._chunkers = {"text": WordChunker(), "reasoning": WordChunker()}
        self._open: Dict[str, str] = {}
        self._current: Optional[str] = None
        self.streamed = False

    async def feed(self, text: str) -> None:
        self.streamed = True
        segments = self.extractor.feed(text) if self.extractor else [("text", text)]
        for kind, segment in segments:
            await self.push(kind, segment)

    async def push(self, kind: str, segment: str) -> None:
        if self._current is not None and self._current != kind:
            await self._close(self._current)
        self._current = kind

        for word in self._chunkers[kind].push(segment):
            await self._delta(kind, word)

    async def finish(self) -> None:
        if self.extractor:
            for kind, segment in self.extractor.flush():
                await self.push(kind, segment)
        for kind in ("reasoning", "text"):
            await self._close(kind)

    async def _delta(self, kind: str, delta: str) -> None:
        if kind not in self._open:
            self._open[kind] = generate_uuid()
            self.writer.write({"type": f"{kind}-start", "id": self._open[kind]})

        self.writer.write({"type": f"{kind}-delta", "id": self._open[kind], "delta": delta})
        if self.delay:
            await asyncio.sleep(self.delay)

    async def _close(self, kind: str) -> None:
        rest = self._chunkers[kind].flush()
        if rest:
            await self._delta(kind, rest)

        part_id = self._open.pop(kind, None)
        if part_id is not None:
            self.writer.write({"type": f"{kind}-end", "id": part_id})


async def stream_chat_turn(
    writer: UIMessageStreamWriter,
    graph,
    *,
    messages: list,
    model_id: str,
    reasoning: bool,
    config: Optional[dict] = None,
    delay_ms: int = SMOOTH_STREAM_DELAY_MS,
) -> Dict[str, Any]:
    """Stream one turn of ``graph`` into ``writer``; returns the turn's usage (``data-usage``)."""
    usage: Dict[str, int] = {}
    step: Optional[_StepStreamer] = None
    tool_results_sent: set[str] = set()

    def send_tool_result(message: ToolMessage) -> None:
        if message.tool_call_id in tool_results_sent:
            return
        tool_results_sent.add(message.tool_call_id)

        if message.status == "error":
            writer.write({
                "type": "tool-output-error",
                "toolCallId": message.tool_call_id,
                "errorText": str(message.content),
            })
        else:
            writer.write({
                "type": "tool-output-available",
                "toolCallId": message.tool_call_id,
                "output": _tool_output(message.content),
            })

    async for event in graph.astream_events({"messages": messages}, config=config, version="v2"):
        kind = event["event"]
        node = (event.get("metadata") or {}).get("langgraph_node")
        data = event.get("data") or {}

        # models called from inside tools (artifacts) stream through their own chunks
        if kind.startswith("on_chat_model") and node != "chat":
            continue

        if kind == "on_chat_model_start":
            writer.write({"type": "start-step"})
            step = _StepStreamer(writer, extract_reasoning=reasoning, delay_ms=delay_ms)

        elif kind == "on_chat_model_stream" and step is not None:
            chunk = data.get("chunk")
            reasoning_text = (getattr(chunk, "additional_kwargs", None) or {}).get("reasoning_content")
            if reasoning_text:
                await step.push("reasoning", reasoning_text)

            text = _chunk_text(getattr(chunk, "content", ""))
            if text:
                await step.feed(text)

        elif kind == "on_chat_model_end" and step is not None:
            output = data.get("output")

            # providers without token streaming only report the full message here
            if not step.streamed:
                text = _chunk_text(getattr(output, "content", ""))
                if text:
                    await step.feed(text)

            await step.finish()
            step = None

            for call in getattr(output, "tool_calls", None) or []:
                writer.write({
                    "type": "tool-input-available",
                    "toolCallId": call["id"],
                    "toolName": call["name"],
                    "input": call["args"],
                })
            merge_usage(usage, getattr(output, "usage_metadata", None))
            writer.write({"type": "finish-step"})

        elif kind == "on_tool_end" and isinstance(data.get("output"), ToolMessage):
            send_tool_result(data["output"])

        elif kind == "on_chain_end" and node == "tools" and event.get("name") == "tools":
            # a raising tool has no on_tool_end; its error message only shows up in the node output
            output = data.get("output")
            produced = output.get("messages", []) if isinstance(output, dict) else output
            for message in produced if isinstance(produced, list) else []:
                if isinstance(message, ToolMessage):
                    send_tool_result(message)

    try:
        catalog = await get_tokenlens_catalog()
        final_usage = get_usage(model_id, usage, catalog)
    except Exception as exc:
        logger.warning("TokenLens enrichment failed: {}", exc)
        final_usage = {**usage, "modelId": model_id}

    writer.write({"type": "data-usage", "data": final_usage})
    return final_usage
