"""Chat and message domain models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class MessageRole(str, Enum):
    """Author of a chat message."""

    user = "user"
    assistant = "assistant"


class MessageStatus(str, Enum):
    """Whether a message belongs to a completed exchange."""

    complete = "complete"
    failed = "failed"  # user turn whose generation failed


class Message(BaseModel):
    """Single chat message."""

    id: UUID
    chat_id: UUID
    role: MessageRole
    content: str
    status: MessageStatus = MessageStatus.complete
    created_at: datetime


class Chat(BaseModel):
    """Chat session bound to one document."""

    id: UUID
    owner_id: UUID
    document_id: UUID | None
    title: str
    created_at: datetime
    updated_at: datetime
    document_filename: str | None = None


class ChatWithMessages(Chat):
    """Chat with its full message history, oldest first."""

    messages: list[Message]


class MessagePair(BaseModel):
    """Result of a successful send: the stored user turn and the reply."""

    user_message: Message
    assistant_message: Message
