# schemas/chat.py
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID
from urllib.parse import urlsplit
from pydantic import BaseModel, ConfigDict, Field, field_validator

from services.file_compatibility import MAX_ATTACHMENTS
from services.model_catalog import ALL_MODEL_IDS

MediaTypeLiteral = Literal[
    "image/jpeg",
    "image/png",
    "image/heic",
    "application/pdf",
    "text/plain",
    "text/csv",
    "text/markdown",
    "application/csv",
]


class TextPart(BaseModel):
    type: Literal["text"]
    text: str = Field(min_length=1, max_length=100_000)


class FilePart(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["file"]
    media_type: MediaTypeLiteral = Field(alias="mediaType")
    name: str = Field(min_length=1, max_length=100)
    url: str

    # stored as sent; only checked for being an absolute URL
    @field_validator("url")
    @classmethod
    def absolute_url(cls, v: str) -> str:
        parsed = urlsplit(v)
        if not parsed.scheme or not (parsed.netloc or parsed.path) or any(c.isspace() for c in v):
            raise ValueError("Invalid url")
        return v


Part = Annotated[Union[TextPart, FilePart], Field(discriminator="type")]


class UserMessage(BaseModel):
    id: UUID
    role: Literal["user"]
    parts: List[Part] = Field(min_length=1)

    @field_validator("parts")
    @classmethod
    def attachment_limit(cls, v: List[Part]) -> List[Part]:
        if sum(isinstance(p, FilePart) for p in v) > MAX_ATTACHMENTS:
            raise ValueError(f"At most {MAX_ATTACHMENTS} attachments per message")
        return v

    def ui_parts(self) -> List[dict]:
        """Parts as the client sent them (camelCase keys, plain strings)."""
        return [p.model_dump(mode="json", by_alias=True) for p in self.parts]

    def ui_message(self) -> dict:
        return {"id": str(self.id), "role": self.role, "parts": self.ui_parts()}


class PostRequestBody(BaseModel):
    id: UUID
    message: UserMessage
    selected_chat_model: str = Field(alias="selectedChatModel")
    selected_visibility_type: Literal["public", "private"] = Field(alias="selectedVisibilityType")

    @field_validator("selected_chat_model")
    @classmethod
    def known_model(cls, v: str) -> str:
        if v not in ALL_MODEL_IDS:
            raise ValueError(f"Unknown chat model: {v}")
        return v


class VisibilityUpdate(BaseModel):
    visibility: Literal["public", "private"]


class VoteRequest(BaseModel):
    chat_id: Optional[UUID] = Field(default=None, alias="chatId")
    message_id: Optional[UUID] = Field(default=None, alias="messageId")
    type: Optional[Literal["up", "down"]] = None


class DocumentRequest(BaseModel):
    content: str
    title: str
    kind: Literal["text", "code", "image", "sheet"]


# ---------- responses ----------
class _Out(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ChatOut(_Out):
    id: UUID
    created_at: datetime = Field(serialization_alias="createdAt")
    title: str
    user_id: UUID = Field(serialization_alias="userId")
    visibility: str
    last_context: Optional[dict] = Field(default=None, serialization_alias="lastContext")


class VoteOut(_Out):
    chat_id: UUID = Field(serialization_alias="chatId")
    message_id: UUID = Field(serialization_alias="messageId")
    is_upvoted: bool = Field(serialization_alias="isUpvoted")


class DocumentOut(_Out):
    id: UUID
    created_at: datetime = Field(serialization_alias="createdAt")
    title: str
    content: Optional[str] = None
    kind: str
    user_id: UUID = Field(serialization_alias="userId")


class SuggestionOut(_Out):
    id: UUID
    document_id: UUID = Field(serialization_alias="documentId")
    document_created_at: datetime = Field(serialization_alias="documentCreatedAt")
    original_text: str = Field(serialization_alias="originalText")
    suggested_text: str = Field(serialization_alias="suggestedText")
    description: Optional[str] = None
    is_resolved: bool = Field(serialization_alias="isResolved")
    user_id: UUID = Field(serialization_alias="userId")
    created_at: datetime = Field(serialization_alias="createdAt")
