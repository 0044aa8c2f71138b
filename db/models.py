# db/models.py
from sqlalchemy import (
    Column, String, Text, DateTime, Enum, ForeignKey, ForeignKeyConstraint,
    JSON, Boolean, Uuid, PrimaryKeyConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from .database import Base
import uuid


USER_TYPES = ("plus", "pro", "ultra", "dev", "free")
VISIBILITY_TYPES = ("public", "private")
ARTIFACT_KINDS = ("text", "code", "image", "sheet")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the timezone-less columns below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "User"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(64), unique=True, nullable=False)
    name = Column(String(64), nullable=False)
    profile_url = Column(String(256), nullable=True)
    password = Column(String(64), nullable=True)  # bcrypt hash, empty for OAuth users
    type = Column(
        Enum(*USER_TYPES, name="user_type_enum"),
        nullable=False,
        default="free",
        server_default="free",
    )

    chats = relationship("Chat", back_populates="user", cascade="all,delete")
    personalizations = relationship("Personalization", back_populates="user", cascade="all,delete")


class Chat(Base):
    __tablename__ = "Chat"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column("createdAt", DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at = Column("updatedAt", DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)
    title = Column(Text, nullable=False)
    user_id = Column("userId", Uuid, ForeignKey("User.id"), nullable=False)
    visibility = Column(
        Enum(*VISIBILITY_TYPES, name="chat_visibility", native_enum=False),
        nullable=False,
        default="private",
        server_default="private",
    )
    last_context = Column("lastContext", JSON, nullable=True)  # AppUsage of the last turn

    user = relationship("User", back_populates="chats")
    messages = relationship("Message", back_populates="chat", cascade="all,delete")


class Message(Base):
    __tablename__ = "Message_v2"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    chat_id = Column("chatId", Uuid, ForeignKey("Chat.id"), nullable=False, index=True)
    role = Column(String(32), nullable=False)
    parts = Column(JSON, nullable=False)
    attachments = Column(JSON, nullable=False, default=list)
    created_at = Column("createdAt", DateTime(timezone=False), nullable=False, default=utcnow)

    chat = relationship("Chat", back_populates="messages")


class Vote(Base):
    __tablename__ = "Vote_v2"
    chat_id = Column("chatId", Uuid, ForeignKey("Chat.id"), nullable=False)
    message_id = Column("messageId", Uuid, ForeignKey("Message_v2.id"), nullable=False)
    is_upvoted = Column("isUpvoted", Boolean, nullable=False)

    __table_args__ = (PrimaryKeyConstraint("chatId", "messageId"),)


class Document(Base):
    __tablename__ = "Document"
    id = Column(Uuid, nullable=False, default=uuid.uuid4)
    created_at = Column("createdAt", DateTime(timezone=False), nullable=False, default=utcnow)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=True)
    kind = Column(
        "text",
        Enum(*ARTIFACT_KINDS, name="document_kind", native_enum=False),
        nullable=False,
        default="text",
    )
    user_id = Column("userId", Uuid, ForeignKey("User.id"), nullable=False)

    __table_args__ = (PrimaryKeyConstraint("id", "createdAt"),)


class Suggestion(Base):
    __tablename__ = "Suggestion"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id = Column("documentId", Uuid, nullable=False)
    document_created_at = Column("documentCreatedAt", DateTime(timezone=False), nullable=False)
    original_text = Column("originalText", Text, nullable=False)
    suggested_text = Column("suggestedText", Text, nullable=False)
    description = Column(Text, nullable=True)
    is_resolved = Column("isResolved", Boolean, nullable=False, default=False)
    user_id = Column("userId", Uuid, ForeignKey("User.id"), nullable=False)
    created_at = Column("createdAt", DateTime(timezone=False), nullable=False, default=utcnow)

    __table_args__ = (
        ForeignKeyConstraint(
            ["documentId", "documentCreatedAt"],
            ["Document.id", "Document.createdAt"],
        ),
    )


class Stream(Base):
    __tablename__ = "Stream"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    chat_id = Column("chatId", Uuid, ForeignKey("Chat.id"), nullable=False, index=True)
    created_at = Column("createdAt", DateTime(timezone=False), nullable=False, default=utcnow)


class Personalization(Base):
    __tablename__ = "Personalization"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column("userId", Uuid, ForeignKey("User.id"), nullable=False, index=True)
    information = Column(JSON, nullable=True)  # PersonalInformation
    bio = Column(String(500), nullable=True)

    user = relationship("User", back_populates="personalizations")
