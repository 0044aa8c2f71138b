"""Turn stored/incoming UI messages into what the model reads.

Text attachments are inlined into the message text (models only see their
content). PDFs are downloaded and embedded as base64 data URLs, since the
gateway's Chat Completions API does not take file URLs. Images stay as URLs.
"""
import asyncio
import base64
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage

from core.config import TEXT_FILE_FETCH_TIMEOUT, TEXT_FILE_MAX_CHARS
from services.file_compatibility import PDF_MEDIA_TYPES, SUPPORTED_FILE_TYPES, TEXT_MEDIA_TYPES

logger = logging.getLogger(__name__)

UIMessage = Dict[str, Any]

PDF_MAX_BYTES = SUPPORTED_FILE_TYPES["application/pdf"]["max_size"]


def _upload_header(file: dict) -> str:
    return f"[File Upload: {file.get('name')} ({file.get('mediaType')})"


async def fetch_text_file_content(file: dict, client: httpx.AsyncClient) -> str:
    """Fetch a text attachment and format it as a block appended to the prompt."""
    name = file.get("name")
    header = "\n\n" + _upload_header(file)

    try:
        resp = await client.get(file["url"], timeout=TEXT_FILE_FETCH_TIMEOUT)

        if resp.status_code >= 400:
            logger.error("Fetching %s failed: %s", name, resp.status_code)
            return f"{header} - Failed: {resp.status_code}]"

        content = resp.text
        if len(content) > TEXT_FILE_MAX_CHARS:
            return f"{header} - File too large ({round(len(content) / 1024)}KB)]"

        return f"{header}]\n{content}"
    except Exception as exc:
        # timeouts, DNS, bad URLs: the model gets a marker instead of the file
        logger.error("Error fetching %s: %s", name, exc)
        return f"{header} - Failed to load]"


async def embed_pdf_file(file: dict, client: httpx.AsyncClient) -> dict:
    """Download a PDF part and return it with a ``data:`` URL.

    Failures come back as a text part carrying the same markers as text files.
    """
    name = file.get("name")
    header = _upload_header(file)

    try:
        resp = await client.get(file["url"], timeout=TEXT_FILE_FETCH_TIMEOUT)

        if resp.status_code >= 400:
            logger.error("Fetching %s failed: %s", name, resp.status_code)
            return {"type": "text", "text": f"{header} - Failed: {resp.status_code}]"}

        data = resp.content
        if len(data) > PDF_MAX_BYTES:
            return {"type": "text", "text": f"{header} - File too large ({round(len(data) / 1024)}KB)]"}

        encoded = base64.b64encode(data).decode("ascii")
        return {**file, "url": f"data:{file.get('mediaType')};base64,{encoded}"}
    except Exception as exc:
        logger.error("Error fetching %s: %s", name, exc)
        return {"type": "text", "text": f"{header} - Failed to load]"}


async def process_ui_messages_with_text_files(
    messages: Sequence[UIMessage], client: Optional[httpx.AsyncClient] = None
) -> List[UIMessage]:
    """Inline text-file parts of user messages into their text and embed PDFs.

    Each URL is fetched once per call, even when several messages share it.
    """
    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(follow_redirects=True)

    cache: Dict[str, asyncio.Task] = {}

    def fetch(file: dict, loader) -> asyncio.Task:
        if file["url"] not in cache:
            cache[file["url"]] = asyncio.ensure_future(loader(file, client))
        return cache[file["url"]]

    async def process(message: UIMessage) -> UIMessage:
        if message.get("role") != "user" or not message.get("parts"):
            return message

        text_files, other_parts = [], []
        for part in message["parts"]:
            if part.get("type") != "file":
                other_parts.append(part)
            elif part.get("mediaType") in TEXT_MEDIA_TYPES:
                text_files.append(part)
            elif part.get("mediaType") in PDF_MEDIA_TYPES and not part["url"].startswith("data:"):
                other_parts.append(fetch(part, embed_pdf_file))
            else:
                other_parts.append(part)

        if not text_files and all(isinstance(p, dict) for p in other_parts):
            return message

        other_parts = [p if isinstance(p, dict) else await p for p in other_parts]
        if not text_files:
            return {**message, "parts": other_parts}

        appended = "".join(await asyncio.gather(*(fetch(f, fetch_text_file_content) for f in text_files)))

        for i, part in enumerate(other_parts):
            if part.get("type") == "text":
                other_parts[i] = {**part, "text": part["text"] + appended}
                break
        else:
            other_parts.append({"type": "text", "text": appended.strip()})

        return {**message, "parts": other_parts}

    try:
        return list(await asyncio.gather(*(process(m) for m in messages)))
    finally:
        if own_client:
            await client.aclose()


def convert_to_ui_messages(db_messages) -> List[UIMessage]:
    return [
        {
            "id": str(m.id),
            "role": m.role,
            "parts": m.parts,
            "metadata": {"createdAt": m.created_at.isoformat() if m.created_at else None},
        }
        for m in db_messages
    ]


def _user_content(parts: List[dict]):
    blocks = []
    for part in parts:
        kind = part.get("type")
        if kind == "text":
            blocks.append({"type": "text", "text": part["text"]})
        elif kind == "file":
            media_type = part.get("mediaType") or ""
            if media_type.startswith("image/"):
                blocks.append({"type": "image_url", "image_url": {"url": part["url"]}})
            elif part["url"].startswith("data:"):
                blocks.append({
                    "type": "file",
                    "file": {"filename": part.get("name"), "file_data": part["url"]},
                })
            else:
                # never downloaded, so the model only learns the file exists
                blocks.append({"type": "text", "text": _upload_header(part) + "]"})

    if len(blocks) == 1 and blocks[0]["type"] == "text":
        return blocks[0]["text"]
    return blocks


def _assistant_messages(parts: List[dict]) -> List[BaseMessage]:
    steps: List[List[dict]] = [[]]
    for part in parts:
        if part.get("type") == "step-start":
            if steps[-1]:
                steps.append([])
        else:
            steps[-1].append(part)

    result: List[BaseMessage] = []
    for step in steps:
        text = "".join(p["text"] for p in step if p.get("type") == "text")
        tool_parts = [
            p
            for p in step
            if p.get("type", "").startswith("tool-") and p.get("state") == "output-available"
        ]
        if not text and not tool_parts:
            continue

        result.append(AIMessage(
            content=text,
            tool_calls=[
                {"name": p["type"][len("tool-"):], "args": p.get("input") or {}, "id": p["toolCallId"]}
                for p in tool_parts
            ],
        ))
        result.extend(
            ToolMessage(content=json.dumps(p.get("output"), default=str), tool_call_id=p["toolCallId"])
            for p in tool_parts
        )
    return result


def convert_to_model_messages(messages: Sequence[UIMessage]) -> List[BaseMessage]:
    model_messages: List[BaseMessage] = []
    for message in messages:
        parts = message.get("parts") or []
        if message.get("role") == "user":
            content = _user_content(parts)
            if content:
                model_messages.append(HumanMessage(content=content))
        elif message.get("role") == "assistant":
            model_messages.extend(_assistant_messages(parts))
    return model_messages
