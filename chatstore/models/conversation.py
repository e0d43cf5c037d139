"""Conversation and message models for chat history persistence."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from chatstore.core.ids import as_utc, utcnow


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Conversation(SQLModel, table=True):
    id: str = Field(primary_key=True)
    title: Optional[str] = Field(default=None)
    message_count: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ChatMessage(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("conversation_id", "position"),)

    id: str = Field(primary_key=True)
    conversation_id: str = Field(foreign_key="conversation.id", index=True)
    role: MessageRole
    content: str
    position: int = Field(default=0)  # 0-based, assigned on append
    created_at: datetime = Field(default_factory=utcnow)


class ConversationRead(BaseModel):
    """Snapshot of a conversation handed to callers; detached from any session."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: Optional[str]
    message_count: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Conversation, message_count: int | None = None) -> "ConversationRead":
        return cls(
            id=row.id,
            title=row.title,
            message_count=row.message_count if message_count is None else message_count,
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
        )


class MessageRead(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    conversation_id: str
    role: MessageRole
    content: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: ChatMessage) -> "MessageRead":
        return cls(
            id=row.id,
            conversation_id=row.conversation_id,
            role=row.role,
            content=row.content,
            created_at=as_utc(row.created_at),
        )
