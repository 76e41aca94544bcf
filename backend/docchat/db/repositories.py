"""Repository protocol interfaces for data access."""

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Protocol
from uuid import UUID

from backend.docchat.db.context import RequestContext
from backend.docchat.models.chats import Chat, Message, MessageRole, MessageStatus
from backend.docchat.models.documents import ChunkMatch, Document, MediaType


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def next_message_timestamp(newest: datetime | None) -> datetime:
    """Timestamp for a new message, strictly after the chat's newest message."""
    now = utcnow()
    if newest is not None and now <= newest:
        return newest + timedelta(microseconds=1)
    return now


class DocumentRepository(Protocol):
    """Repository for document rows."""

    async def create_document(
        self,
        ctx: RequestContext,
        *,
        filename: str,
        media_type: MediaType,
        storage_path: str,
        file_size: int,
    ) -> UUID:
        """Create a pending document row (no extracted text yet).

        Returns:
            Document ID
        """
        ...

    async def complete_document(
        self, document_id: UUID, *, extracted_text: str, chunk_count: int
    ) -> None:
        """Attach extracted text, marking the document as ingested."""
        ...

    async def get_document(self, ctx: RequestContext, document_id: UUID) -> Document | None:
        """Get an ingested document owned by the caller.

        Returns:
            Document or None if missing, pending, or owned by someone else
        """
        ...

    async def list_documents(self, ctx: RequestContext) -> list[Document]:
        """List the caller's ingested documents, newest first."""
        ...

    async def delete_document(self, document_id: UUID) -> None:
        """Delete a document row. Chunks and chat links are the caller's concern."""
        ...


class VectorStore(Protocol):
    """Chunk/vector storage with document-scoped similarity queries."""

    async def store(
        self,
        document_id: UUID,
        chunks: Sequence[tuple[int, str, list[float]]],
    ) -> None:
        """Persist (ordinal, text, embedding) triples for one document atomically."""
        ...

    async def query(
        self,
        document_id: UUID,
        query_vector: Sequence[float],
        *,
        threshold: float = 0.7,
        k: int = 5,
    ) -> list[ChunkMatch]:
        """Return up to k chunks of document_id with similarity >= threshold.

        Ordered by similarity descending, ties by ascending ordinal.
        """
        ...

    async def delete_document(self, document_id: UUID) -> int:
        """Delete every chunk of a document.

        Returns:
            Number of chunks deleted
        """
        ...

    async def count(self, document_id: UUID) -> int:
        """Number of chunks stored for a document."""
        ...


class ChatRepository(Protocol):
    """Repository for chats and their messages."""

    async def create_chat(self, ctx: RequestContext, document_id: UUID, title: str) -> Chat:
        """Create a chat bound to a document."""
        ...

    async def get_chat(self, ctx: RequestContext, chat_id: UUID) -> Chat | None:
        """Get a chat owned by the caller."""
        ...

    async def list_chats(self, ctx: RequestContext) -> list[Chat]:
        """List the caller's chats, most recently updated first."""
        ...

    async def list_messages(self, chat_id: UUID) -> list[Message]:
        """List a chat's messages in chronological order."""
        ...

    async def add_message(
        self,
        chat_id: UUID,
        role: MessageRole,
        content: str,
        status: MessageStatus = MessageStatus.complete,
    ) -> Message:
        """Append a message and move chat.updated_at to its timestamp."""
        ...

    async def mark_message_failed(self, message_id: UUID) -> None:
        """Flag a user turn whose reply could not be generated."""
        ...

    async def delete_chat(self, ctx: RequestContext, chat_id: UUID) -> bool:
        """Delete a chat and its messages.

        Returns:
            True if a chat owned by the caller was deleted
        """
        ...
