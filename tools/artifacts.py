# tools/artifacts.py
"""Artifact tools: documents that stream into the side panel while they are written.

Progress is pushed to the client as transient ``data-*`` chunks through the
stream writer found in ``config["configurable"]["writer"]``.
"""
import json
import logging
import uuid
from typing import Literal

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import tool

from db.database import AsyncSessionLocal
from db.models import Suggestion, utcnow
from db.queries import get_document_by_id, save_document, save_suggestions
from services.chat_model import get_artifact_model
from services.prompts import (
    code_prompt, sheet_prompt, suggestions_prompt, text_prompt, update_document_prompt,
)

logger = logging.getLogger(__name__)

_SYSTEM_PROMPTS = {"text": text_prompt, "code": code_prompt, "sheet": sheet_prompt}


def _context(config: RunnableConfig):
    configurable = config.get("configurable") or {}
    return configurable["writer"], uuid.UUID(str(configurable["user_id"]))


async def _stream_content(writer, kind: str, system: str, prompt: str) -> str:
    content = ""
    async for chunk in get_artifact_model().astream([
        SystemMessage(content=system),
        HumanMessage(content=prompt),
    ]):
        delta = chunk.content if isinstance(chunk.content, str) else ""
        if delta:
            content += delta
            writer.write({"type": f"data-{kind}Delta", "data": delta, "transient": True})
    return content


@tool
async def create_document(
    title: str, kind: Literal["text", "code", "sheet"], config: RunnableConfig
) -> dict:
    """Create a document for writing or content creation activities. The content is generated from the title and kind."""

    writer, user_id = _context(config)
    document_id = uuid.uuid4()

    writer.write({"type": "data-kind", "data": kind, "transient": True})
    writer.write({"type": "data-id", "data": str(document_id), "transient": True})
    writer.write({"type": "data-title", "data": title, "transient": True})
    writer.write({"type": "data-clear", "data": None, "transient": True})

    content = await _stream_content(writer, kind, _SYSTEM_PROMPTS[kind], title)

    async with AsyncSessionLocal() as db:
        await save_document(
            db, id=document_id, title=title, kind=kind, content=content, user_id=user_id
        )

    writer.write({"type": "data-finish", "data": None, "transient": True})

    return {
        "id": str(document_id),
        "title": title,
        "kind": kind,
        "content": "A document was created and is now visible to the user.",
    }


@tool
async def update_document(id: str, description: str, config: RunnableConfig) -> dict:
    """Update a document with the given description of changes."""

    writer, user_id = _context(config)

    async with AsyncSessionLocal() as db:
        document = await get_document_by_id(db, uuid.UUID(id))
        if document is None or document.user_id != user_id:
            return {"error": "Document not found"}

        writer.write({"type": "data-clear", "data": None, "transient": True})

        content = await _stream_content(
            writer,
            document.kind,
            update_document_prompt(document.content, document.kind),
            description,
        )
        await save_document(
            db,
            id=document.id,
            title=document.title,
            kind=document.kind,
            content=content,
            user_id=user_id,
        )

    writer.write({"type": "data-finish", "data": None, "transient": True})

    return {
        "id": id,
        "title": document.title,
        "kind": document.kind,
        "content": "The document has been updated successfully.",
    }


def parse_suggestions(raw: str) -> list[dict]:
    """Pull the JSON array out of a model answer, tolerating code fences around it."""
    start, end = raw.find("["), raw.rfind("]")
    if start == -1 or end <= start:
        return []
    try:
        items = json.loads(raw[start : end + 1])
    except json.JSONDecodeError:
        logger.warning("Suggestion output was not valid JSON")
        return []
    return [
        item
        for item in items
        if isinstance(item, dict) and item.get("originalSentence") and item.get("suggestedSentence")
    ][:5]


@tool
async def request_suggestions(document_id: str, config: RunnableConfig) -> dict:
    """Request suggestions for a document."""

    writer, user_id = _context(config)

    async with AsyncSessionLocal() as db:
        document = await get_document_by_id(db, uuid.UUID(document_id))
        if document is None or not document.content or document.user_id != user_id:
            return {"error": "Document not found"}

        answer = await get_artifact_model().ainvoke([
            SystemMessage(content=suggestions_prompt),
            HumanMessage(content=document.content),
        ])

        suggestions = []
        for item in parse_suggestions(str(answer.content)):
            suggestion = Suggestion(
                id=uuid.uuid4(),
                document_id=document.id,
                document_created_at=document.created_at,
                original_text=item["originalSentence"],
                suggested_text=item["suggestedSentence"],
                description=item.get("description"),
                is_resolved=False,
                user_id=user_id,
                created_at=utcnow(),
            )
            writer.write({
                "type": "data-suggestion",
                "data": {
                    "id": str(suggestion.id),
                    "documentId": str(document.id),
                    "originalText": suggestion.original_text,
                    "suggestedText": suggestion.suggested_text,
                    "description": suggestion.description,
                    "isResolved": False,
                },
                "transient": True,
            })
            suggestions.append(suggestion)

        if suggestions:
            await save_suggestions(db, suggestions)

    return {
        "id": document_id,
        "title": document.title,
        "kind": document.kind,
        "message": "Suggestions have been added to the document",
    }
