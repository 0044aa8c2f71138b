# services/ui_stream.py
"""UI message stream: the chunk protocol the chat frontend consumes.

A turn is streamed as JSON chunks (``start``, ``text-delta``, ``tool-output-available``,
``data-*`` ...) framed as server-sent events and terminated by ``data: [DONE]``.
The writer also folds every chunk into the assistant message so the finished
message can be persisted exactly as the client rendered it.
"""
import asyncio
import json
import re
import uuid
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple

from loguru import logger


SSE_DONE = "data: [DONE]\n\n"

UI_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
    "x-vercel-ai-ui-message-stream": "v1",
}


def generate_uuid() -> str:
    return str(uuid.uuid4())


def json_to_sse(chunk: Dict[str, Any]) -> str:
    return f"data: {json.dumps(chunk, default=str)}\n\n"


async def to_sse(chunks: AsyncIterator[Dict[str, Any]]) -> AsyncIterator[str]:
    async for chunk in chunks:
        yield json_to_sse(chunk)
    yield SSE_DONE


# ---------- smoothing ----------
class WordChunker:
    """Re-chunks streamed text so it is released one word (plus trailing space) at a time."""

    WORD = re.compile(r"\S+\s+")

    def __init__(self):
        self._buffer = ""

    def push(self, text: str) -> List[str]:
        self._buffer += text
        words = []
        while True:
            match = self.WORD.search(self._buffer)
            if match is None:
                break
            words.append(self._buffer[: match.end()])
            self._buffer = self._buffer[match.end():]
        return words

    def flush(self) -> str:
        rest, self._buffer = self._buffer, ""
        return rest


class ThinkTagExtractor:
    """Splits streamed model text into ``("text" | "reasoning", str)`` segments.

    Tags may be cut anywhere between two chunks, so a trailing partial tag is held
    back until the next chunk decides what it is.
    """

    def __init__(self, tag_name: str = "think"):
        self._open = f"<{tag_name}>"
        self._close = f"</{tag_name}>"
        self._buffer = ""
        self.in_reasoning = False

    @property
    def _kind(self) -> str:
        return "reasoning" if self.in_reasoning else "text"

    @staticmethod
    def _partial_suffix(buffer: str, tag: str) -> int:
        for size in range(min(len(tag) - 1, len(buffer)), 0, -1):
            if buffer.endswith(tag[:size]):
                return size
        return 0

    def feed(self, text: str) -> List[Tuple[str, str]]:
        self._buffer += text
        segments = []

        while True:
            tag = self._close if self.in_reasoning else self._open
            index = self._buffer.find(tag)

            if index == -1:
                keep = self._partial_suffix(self._buffer, tag)
                ready = self._buffer[: len(self._buffer) - keep]
                self._buffer = self._buffer[len(self._buffer) - keep:]
                if ready:
                    segments.append((self._kind, ready))
                return segments

            if index:
                segments.append((self._kind, self._buffer[:index]))
            self._buffer = self._buffer[index + len(tag):]
            self.in_reasoning = not self.in_reasoning

    def flush(self) -> List[Tuple[str, str]]:
        rest, self._buffer = self._buffer, ""
        return [(self._kind, rest)] if rest else []


# ---------- writer ----------
_END = object()


class UIMessageStreamWriter:
    def __init__(self, message_id: str):
        self.message_id = message_id
        self.parts: List[Dict[str, Any]] = []
        self._open: Dict[str, Dict[str, Any]] = {}
        self._queue: asyncio.Queue = asyncio.Queue()

    def write(self, chunk: Dict[str, Any]) -> None:
        self._fold(chunk)
        self._queue.put_nowait(chunk)

    def close(self) -> None:
        self._queue.put_nowait(_END)

    async def chunks(self) -> AsyncIterator[Dict[str, Any]]:
        while True:
            chunk = await self._queue.get()
            if chunk is _END:
                return
            yield chunk

    def message(self) -> Dict[str, Any]:
        return {"id": self.message_id, "role": "assistant", "parts": self.parts}

    # fold a chunk into the message parts
    def _fold(self, chunk: Dict[str, Any]) -> None:
        kind = chunk.get("type", "")

        if kind == "start-step":
            self.parts.append({"type": "step-start"})

        elif kind in ("text-start", "reasoning-start"):
            part = {"type": kind.split("-")[0], "text": "", "state": "streaming"}
            self._open[chunk["id"]] = part
            self.parts.append(part)

        elif kind in ("text-delta", "reasoning-delta"):
            self._open[chunk["id"]]["text"] += chunk["delta"]

        elif kind in ("text-end", "reasoning-end"):
            part = self._open.pop(chunk["id"], None)
            if part is not None:
                part["state"] = "done"

        elif kind == "tool-input-available":
            self.parts.append({
                "type": f"tool-{chunk['toolName']}",
                "toolCallId": chunk["toolCallId"],
                "state": "input-available",
                "input": chunk.get("input"),
            })

        elif kind in ("tool-output-available", "tool-output-error"):
            for part in self.parts:
                if part.get("toolCallId") == chunk["toolCallId"]:
                    if kind == "tool-output-available":
                        part["state"] = "output-available"
                        part["output"] = chunk.get("output")
                    else:
                        part["state"] = "output-error"
                        part["errorText"] = chunk.get("errorText")
                    break

        elif kind.startswith("data-") and not chunk.get("transient"):
            part = {"type": kind, "data": chunk.get("data")}
            if chunk.get("id") is not None:
                part["id"] = chunk["id"]
                for i, existing in enumerate(self.parts):
                    if existing.get("type") == kind and existing.get("id") == chunk["id"]:
                        self.parts[i] = part
                        return
            self.parts.append(part)


async def create_ui_message_stream(
    *,
    execute: Callable[[UIMessageStreamWriter], Awaitable[None]],
    on_finish: Optional[Callable[[List[Dict[str, Any]]], Awaitable[None]]] = None,
    on_error: Optional[Callable[[BaseException], str]] = None,
    generate_id: Callable[[], str] = generate_uuid,
) -> AsyncIterator[Dict[str, Any]]:
    """Run ``execute`` and yield every chunk it writes, bracketed by ``start``/``finish``.

    ``on_finish`` receives the assembled assistant message(s) and is awaited
    before the stream ends.
    """
    writer = UIMessageStreamWriter(generate_id())

    async def run():
        try:
            await execute(writer)
        except Exception as exc:
            logger.exception("UI message stream failed: {}", exc)
            error_text = on_error(exc) if on_error else "An error occurred."
            writer.write({"type": "error", "errorText": error_text})
        finally:
            writer.close()

    yield {"type": "start", "messageId": writer.message_id}

    task = asyncio.create_task(run())
    async for chunk in writer.chunks():
        yield chunk
    await task

    yield {"type": "finish"}

    if on_finish is not None:
        await on_finish([writer.message()])
