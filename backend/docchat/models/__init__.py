"""Models package - re-exports for convenience."""

from backend.docchat.models.chats import (
    Chat,
    ChatWithMessages,
    Message,
    MessagePair,
    MessageRole,
    MessageStatus,
)
from backend.docchat.models.documents import (
    MEDIA_TYPE_ALIASES,
    ChunkMatch,
    Document,
    MediaType,
)
from backend.docchat.models.envelope import ApiResponse, ok

__all__ = [
    # Documents
    "Document",
    "ChunkMatch",
    "MediaType",
    "MEDIA_TYPE_ALIASES",
    # Chats
    "Chat",
    "ChatWithMessages",
    "Message",
    "MessagePair",
    "MessageRole",
    "MessageStatus",
    # Envelope
    "ApiResponse",
    "ok",
]
